"""Database layer - engine, base classes, and transactional scope."""

from freight_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from freight_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
