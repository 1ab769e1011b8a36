"""
Module ORM Registry (``mill_modules._orm_registry``).

Ensures every SQLAlchemy model, kernel and module, is imported so that
``Base.metadata`` holds all table definitions before ``create_tables()``
runs.  ``mill_kernel.db.engine.create_tables`` calls this lazily.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``mill_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import mill_kernel.models  # noqa: F401
    import mill_kernel.services.sequence_service  # noqa: F401
    import mill_modules.production.orm  # noqa: F401
    import mill_modules.scrap.orm  # noqa: F401
