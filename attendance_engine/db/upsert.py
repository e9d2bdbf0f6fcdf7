"""
Dialect-aware ``INSERT ... ON CONFLICT`` constructs.

PostgreSQL in production, SQLite under test; both support the same
``on_conflict_do_update`` / ``on_conflict_do_nothing`` API.
"""

from __future__ import annotations

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(session: AsyncSession, model):
    """Return an ``insert(model)`` that supports ON CONFLICT for the bound dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise RuntimeError(f"Unsupported database dialect for upserts: {dialect}")
