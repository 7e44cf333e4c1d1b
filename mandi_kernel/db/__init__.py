"""Database layer - engine, base classes and column types."""

from mandi_kernel.db.base import UUID, Base, TenantScoped, TrackedBase, UUIDString
from mandi_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from mandi_kernel.db.types import Money, Percent, Sequence, Weight, round_money

__all__ = [
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "drop_tables",
    "build_engine",
    "Base",
    "TrackedBase",
    "TenantScoped",
    "UUIDString",
    "UUID",
    "Money",
    "Percent",
    "Weight",
    "Sequence",
    "round_money",
]
