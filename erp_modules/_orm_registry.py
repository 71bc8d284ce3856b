"""
Module ORM Registry (``erp_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` holds all table definitions before ``create_all`` runs.
``erp_kernel.db.engine.create_tables`` calls ``import_all_orm_models``
itself, so scripts and ``tests/conftest.py`` only need ``create_tables()``.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``erp_modules`` packages.
MUST NOT be imported at module level by ``erp_kernel``.
"""


def import_all_orm_models() -> None:
    """Import every ``erp_modules.*.orm`` module to register its tables.

    Collaborator tables come first because goods issues and invoices carry
    soft references to projects and asset instances.

    This function is idempotent -- repeated calls are harmless.
    """
    # fmt: off
    import erp_modules.collaborators.orm  # noqa: F401
    import erp_modules.inventory.orm  # noqa: F401
    import erp_modules.procurement.orm  # noqa: F401
    import erp_modules.payables.orm  # noqa: F401
    # fmt: on
