"""Database layer: declarative base, engine and session management."""

from migration_kernel.db.base import LEGACY_ID_LENGTH, Base, TrackedBase, UUIDString
from migration_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "LEGACY_ID_LENGTH",
    "Base",
    "TrackedBase",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
