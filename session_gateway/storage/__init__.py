# session_gateway/storage/__init__.py

"""Storage module initialization.

Relational storage for the gateway's local accounts, currently SQLite.
"""

from .sqlite_base import (
    open_sqlite_db_connection,
    init_sqlite_db,
    close_sqlite_db_connection
)

__all__ = [
    "open_sqlite_db_connection",
    "init_sqlite_db",
    "close_sqlite_db_connection"
]
