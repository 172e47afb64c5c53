"""
Pharmacy Kernel

Shared infrastructure for the pharmacy back office:
- Database engine with per-transaction store timeouts
- Inventory ledger with atomic stock increments
- Vendor directory
- Gap-free sequence counters
- Workflow state machine primitives and typed errors
"""

__version__ = "0.1.0"
