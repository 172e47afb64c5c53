"""
Pharmacy Modules.

Thin orchestration layers over the Pharmacy Kernel.  Each module contains:
- Domain models (the nouns)
- ORM persistence models
- Workflows (state machines)
- Configuration schemas
- A service that owns the transaction boundary

Modules:
- Replenishment: stock requests from low-stock alert to vendor receipt
"""

from pharmacy_modules import replenishment

__all__ = ["replenishment"]
