"""
Database connection and query utilities.

Provides a simple interface for executing queries with psycopg,
returning results as dictionaries. Driver errors are translated into
storyboard.errors.StorageError so nothing above this module handles
psycopg exceptions directly.

Use transaction() when several statements must succeed or fail together.
Inside the block every helper in this module reuses the same connection;
nested transaction() blocks become savepoints. The active connection is
kept in a context variable, so each thread or task gets its own session.

For testing, use set_connection_override() to inject a connection
that will be used instead of creating new ones. This enables
transaction rollback between tests.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row

from storyboard.config import config
from storyboard.errors import DuplicateKeyError, ForeignKeyError, StorageError

logger = logging.getLogger(__name__)

# =============================================================================
# Connection Override (for testing)
# =============================================================================

_connection_override: psycopg.Connection | None = None


def set_connection_override(conn: psycopg.Connection) -> None:
    """
    Set a connection to use instead of creating new ones.

    Used by test fixtures to ensure all database operations run
    within a single transaction that can be rolled back.

    Args:
        conn: The connection to use for all subsequent operations
    """
    global _connection_override
    _connection_override = conn


def clear_connection_override() -> None:
    """Clear the connection override, restoring normal behavior."""
    global _connection_override
    _connection_override = None


# =============================================================================
# Error Translation
# =============================================================================


@contextmanager
def storage_errors():
    """Re-raise psycopg errors as StorageError subclasses."""
    try:
        yield
    except pg_errors.UniqueViolation as e:
        logger.error("Unique constraint violated: %s", e)
        raise DuplicateKeyError(f"Duplicate key: {e}") from e
    except pg_errors.ForeignKeyViolation as e:
        logger.error("Foreign key constraint violated: %s", e)
        raise ForeignKeyError(f"Foreign key violation: {e}") from e
    except psycopg.Error as e:
        logger.error("Database error: %s", e)
        raise StorageError(f"Database error: {e}") from e


# =============================================================================
# Connection Management
# =============================================================================

_active_connection: ContextVar[psycopg.Connection | None] = ContextVar(
    "storyboard_active_connection", default=None
)


@contextmanager
def get_connection():
    """
    Context manager for database connections.

    In normal operation:
        - Opens a new connection
        - Commits on successful exit
        - Rolls back on exception
        - Closes connection when done

    Inside transaction():
        - Returns the session's connection
        - The enclosing transaction() commits or rolls back

    With override set (testing):
        - Returns the override connection
        - Does NOT commit, rollback, or close
        - Caller (test fixture) manages the transaction

    Usage:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT ...")
    """
    active = _active_connection.get()
    if active is not None:
        yield active
        return

    if _connection_override is not None:
        yield _connection_override
        return

    with storage_errors():
        conn = psycopg.connect(config.database_url)
    try:
        yield conn
        with storage_errors():
            conn.commit()
    except Exception:
        try:
            conn.rollback()
        except psycopg.Error as e:
            # Keep the original error
            logger.warning("Rollback failed: %s", e)
        raise
    finally:
        conn.close()


@contextmanager
def transaction():
    """
    Run the enclosed block as one all-or-nothing unit.

    Every query helper called inside the block shares one connection.
    Any exception rolls back everything done in the block and propagates.

    Usage:
        with db.transaction():
            db.execute("INSERT ...")
            db.execute("INSERT ...")
    """
    active = _active_connection.get()
    if active is not None:
        # Nested block: psycopg turns this into a savepoint
        with storage_errors():
            with active.transaction():
                yield active
        return

    with get_connection() as conn:
        token = _active_connection.set(conn)
        try:
            with storage_errors():
                with conn.transaction():
                    yield conn
        finally:
            _active_connection.reset(token)


@contextmanager
def get_cursor():
    """
    Context manager for a cursor with dict rows.

    Convenience wrapper when you just need a cursor.

    Usage:
        with get_cursor() as cur:
            cur.execute("SELECT * FROM user_stories")
            rows = cur.fetchall()  # List of dicts
    """
    with storage_errors():
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                yield cur


# =============================================================================
# Query Helpers
# =============================================================================


def execute(query: str, params: tuple = None) -> int:
    """
    Execute a query without returning rows.

    Use for UPDATE and DELETE when you only need the affected row count.

    Args:
        query: SQL query with %s placeholders
        params: Tuple of parameter values

    Returns:
        Number of rows affected
    """
    with get_cursor() as cur:
        cur.execute(query, params)
        return cur.rowcount


def fetch_one(query: str, params: tuple = None) -> dict[str, Any] | None:
    """
    Execute a query and return a single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Tuple of parameter values

    Returns:
        Dict of column names to values, or None if no row found
    """
    with get_cursor() as cur:
        cur.execute(query, params)
        return cur.fetchone()


def fetch_all(query: str, params: tuple = None) -> list[dict[str, Any]]:
    """
    Execute a query and return all rows as list of dicts.

    Args:
        query: SQL query with %s placeholders
        params: Tuple of parameter values

    Returns:
        List of dicts, empty list if no rows found
    """
    with get_cursor() as cur:
        cur.execute(query, params)
        return cur.fetchall()


def fetch_value(query: str, params: tuple = None, default: Any = None) -> Any:
    """
    Execute a query and return the first column of the first row.

    Handy for COUNT(*) and EXISTS queries.
    """
    row = fetch_one(query, params)
    if row is None:
        return default
    return next(iter(row.values()))


def contains_pattern(text: str) -> str:
    """
    Build a LIKE/ILIKE pattern matching ``text`` anywhere in a value.

    Wildcard characters in ``text`` are escaped so they match literally.
    """
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
