"""
Module ORM Registry (``freight_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before tables are created.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``freight_modules``
packages and from ``freight_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``freight_kernel``.

Usage
-----
Entrypoints and ``tests/conftest.py`` call ``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``freight_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import freight_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import freight_modules.ledger.orm  # noqa: F401
    import freight_modules.settlement.orm  # noqa: F401
    import freight_modules.ar.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """Create kernel and module tables.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from freight_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
