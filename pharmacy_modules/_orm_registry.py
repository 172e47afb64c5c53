"""
Module ORM Registry (``pharmacy_modules._orm_registry``).

Ensures every SQLAlchemy ORM model is imported so that ``Base.metadata``
holds all table definitions before ``create_tables()`` runs.

MUST NOT be imported at module level by ``pharmacy_kernel``; the kernel's
``create_tables()`` imports it lazily.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``pharmacy_modules.*.orm`` module.

    Kernel tables go first: stock requests reference inventory items and
    vendors by foreign key.  Idempotent.
    """
    import pharmacy_kernel.models  # noqa: F401
    import pharmacy_kernel.services.sequence_service  # noqa: F401
    import pharmacy_modules.replenishment.orm  # noqa: F401
