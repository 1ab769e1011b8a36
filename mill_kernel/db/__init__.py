"""Database layer - engine, base classes, types, and append-only guards."""

from mill_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from mill_kernel.db.engine import create_tables, get_engine, get_session
from mill_kernel.db.types import to_decimal

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "to_decimal",
]
