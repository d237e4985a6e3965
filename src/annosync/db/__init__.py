"""Database layer for the SQL-backed sync-state store."""

from annosync.db.engine import (
    close_db,
    create_tables,
    get_engine,
    get_session,
    init_db,
)
from annosync.db.models import AnalysedContent

__all__ = [
    "AnalysedContent",
    "close_db",
    "create_tables",
    "get_engine",
    "get_session",
    "init_db",
]
