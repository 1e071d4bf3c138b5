"""Database connection and session management."""

from letterbox.db.session import (
    db_manager,
    get_db,
    init_database,
    close_database,
)

__all__ = [
    "db_manager",
    "get_db",
    "init_database",
    "close_database",
]
