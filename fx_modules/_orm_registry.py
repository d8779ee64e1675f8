"""
Module ORM Registry (``fx_modules._orm_registry``).

Ensures every module's SQLAlchemy models are imported so ``Base.metadata``
knows all tables before ``create_all()`` runs.  Called by
``fx_kernel.db.engine.create_tables``.  Idempotent.
"""


def import_all_orm_models() -> None:
    """Import every ``fx_modules.*.orm`` module."""
    # fmt: off
    import fx_modules.accounts.orm  # noqa: F401
    import fx_modules.customers.orm  # noqa: F401
    import fx_modules.orders.orm  # noqa: F401
    import fx_modules.profit.orm  # noqa: F401
    # fmt: on
