# session_gateway/storage/sqlite_base.py
import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def open_sqlite_db_connection(db_path: str) -> sqlite3.Connection:
    """
    Open a SQLite connection and make sure the schema exists.

    The connection is shared by worker threads (calls are dispatched with
    asyncio.to_thread), so same-thread checking is disabled and callers
    serialize access themselves.

    Raises:
        sqlite3.Error: If the database cannot be opened or initialized
    """
    resolved = Path(db_path).resolve()
    # Ensure the database directory structure exists
    resolved.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Attempting to connect to SQLite DB at: {resolved}")
    try:
        conn = sqlite3.connect(str(resolved), check_same_thread=False)
        # Enable column access by name instead of index
        conn.row_factory = sqlite3.Row
        init_sqlite_db(conn)
    except sqlite3.Error as e:
        logger.error(f"Error connecting to SQLite database at {resolved}: {e}", exc_info=True)
        raise
    logger.info(f"Successfully connected to SQLite DB: {resolved}")
    return conn


def init_sqlite_db(conn: sqlite3.Connection) -> None:
    """Create the gateway tables if they do not exist yet."""
    cursor = conn.cursor()

    # Local accounts used by the identity provider
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS gateway_users (
        user_id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user',
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    ''')
    logger.info("Ensured 'gateway_users' table exists.")

    conn.commit()
    logger.info("SQLite database schema initialized/verified.")


def close_sqlite_db_connection(conn: sqlite3.Connection) -> None:
    logger.info("Closing SQLite DB connection.")
    conn.close()
    logger.info("SQLite DB connection closed.")
