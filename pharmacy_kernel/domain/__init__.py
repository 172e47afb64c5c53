"""
Pure domain layer.

Value objects and state machine definitions with NO dependencies on
the ORM, the database or I/O.  Time comes from an injected Clock.
"""

from pharmacy_kernel.domain.actor import Actor, Role
from pharmacy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from pharmacy_kernel.domain.workflow import Guard, GuardExecutor, Transition, Workflow

__all__ = [
    "Actor",
    "Role",
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Guard",
    "GuardExecutor",
    "Transition",
    "Workflow",
]
