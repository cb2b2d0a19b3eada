"""SQLite persistence."""

from __future__ import annotations

from tdeecoach.db.connection import DatabaseConnection, get_db, set_db
from tdeecoach.db.schema import get_schema_sql

__all__ = ["DatabaseConnection", "get_db", "get_schema_sql", "set_db"]
