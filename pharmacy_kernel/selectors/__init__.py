"""Selectors for the pharmacy kernel (read side)."""

from pharmacy_kernel.selectors.base import BaseSelector

__all__ = ["BaseSelector"]
