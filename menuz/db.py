"""
PostgreSQL access for the Menuz backend.

One short-lived psycopg connection per unit of work, rows as dicts, and
driver errors re-raised as the DatabaseError family below so callers never
see raw psycopg exceptions.

Usage:
    from menuz.db import transaction, fetch_one, query_one

    job = query_one(f"SELECT * FROM {Tables.MODEL_JOBS} WHERE id = %s", (job_id,))

    with transaction() as cur:
        cur.execute(f"DELETE FROM {Tables.MODEL_JOBS} WHERE item_id = %s", (item_id,))
        cur.execute(f"DELETE FROM {Tables.ITEMS} WHERE id = %s", (item_id,))
"""

from contextlib import contextmanager
from typing import Optional, Any, Dict, List

import psycopg
from psycopg.rows import dict_row

from menuz.config import config

_APP_SCHEMA = config.APP_SCHEMA


# ─────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────
class DatabaseError(Exception):
    """Root of every error this module raises."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class DatabaseNotConfiguredError(DatabaseError):
    """DATABASE_URL is empty."""


class DatabaseConnectionError(DatabaseError):
    """The server could not be reached or refused the login."""


class DatabaseQueryError(DatabaseError):
    """A statement failed for a reason other than a constraint."""


class DatabaseIntegrityError(DatabaseError):
    """A unique or foreign-key constraint rejected the write."""

    def __init__(self, message: str, constraint: str = None, original_error: Exception = None):
        super().__init__(message, original_error)
        self.constraint = constraint


USE_DB = config.HAS_DATABASE

print(f"[DB] DATABASE_URL configured: {USE_DB}")


# ─────────────────────────────────────────────────────────────
# Connections
# ─────────────────────────────────────────────────────────────
def _connect() -> psycopg.Connection:
    if not USE_DB:
        raise DatabaseNotConfiguredError("DATABASE_URL is not set")
    try:
        conn = psycopg.connect(
            config.DATABASE_URL,
            connect_timeout=config.DB_CONNECT_TIMEOUT,
            row_factory=dict_row,
        )
    except psycopg.OperationalError as e:
        raise DatabaseConnectionError(f"cannot connect: {e}", original_error=e)
    with conn.cursor() as cur:
        cur.execute(f"SET search_path TO {_APP_SCHEMA}, public;")
    return conn


def _close_quietly(conn) -> None:
    try:
        conn.close()
    except psycopg.Error as e:
        print(f"[DB] Ignoring error while closing connection: {e}")


@contextmanager
def transaction():
    """
    Cursor inside a transaction: commit when the block finishes, rollback
    when it raises. psycopg errors come out as DatabaseError subclasses.
    """
    conn = _connect()
    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except psycopg.IntegrityError as e:
        conn.rollback()
        raise DatabaseIntegrityError(
            f"constraint violation: {e}",
            constraint=getattr(e.diag, "constraint_name", None),
            original_error=e,
        )
    except psycopg.Error as e:
        conn.rollback()
        raise DatabaseQueryError(f"query failed: {e}", original_error=e)
    except Exception:
        conn.rollback()
        raise
    finally:
        _close_quietly(conn)


# ─────────────────────────────────────────────────────────────
# Row helpers
# ─────────────────────────────────────────────────────────────
def fetch_one(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return dict(row) if row is not None else None


def fetch_all(cur) -> List[Dict[str, Any]]:
    return [dict(row) for row in cur.fetchall()]


def query_one(sql: str, params: tuple = None) -> Optional[Dict[str, Any]]:
    """First row of a query in its own transaction, or None."""
    with transaction() as cur:
        cur.execute(sql, params or ())
        return fetch_one(cur)


def query_all(sql: str, params: tuple = None) -> List[Dict[str, Any]]:
    with transaction() as cur:
        cur.execute(sql, params or ())
        return fetch_all(cur)


def execute(sql: str, params: tuple = None) -> int:
    """
    Run one statement in its own transaction; returns the affected row count.

    Usage:
        count = execute(f"DELETE FROM {Tables.SESSIONS} WHERE expires_at <= %s", (now_ts,))
    """
    with transaction() as cur:
        cur.execute(sql, params or ())
        return cur.rowcount


# ─────────────────────────────────────────────────────────────
# Schema
# ─────────────────────────────────────────────────────────────
class Tables:
    """Schema-qualified table names."""
    USERS = f"{_APP_SCHEMA}.users"
    SESSIONS = f"{_APP_SCHEMA}.sessions"
    RESTAURANTS = f"{_APP_SCHEMA}.restaurants"
    ITEMS = f"{_APP_SCHEMA}.items"
    MODEL_JOBS = f"{_APP_SCHEMA}.model_jobs"
    ORDERS = f"{_APP_SCHEMA}.orders"


SCHEMA_DDL = [
    f"CREATE SCHEMA IF NOT EXISTS {_APP_SCHEMA}",
    f"""
    CREATE TABLE IF NOT EXISTS {Tables.RESTAURANTS} (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        description TEXT NOT NULL DEFAULT ''
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {Tables.USERS} (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        role TEXT NOT NULL,
        restaurant_id TEXT REFERENCES {Tables.RESTAURANTS}(id) ON DELETE CASCADE,
        password_hash TEXT NOT NULL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {Tables.SESSIONS} (
        token_hash TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES {Tables.USERS}(id) ON DELETE CASCADE,
        expires_at BIGINT NOT NULL,
        created_at BIGINT NOT NULL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {Tables.ITEMS} (
        id TEXT PRIMARY KEY,
        restaurant_id TEXT NOT NULL REFERENCES {Tables.RESTAURANTS}(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        price NUMERIC(10, 2) NOT NULL DEFAULT 0,
        image TEXT NOT NULL DEFAULT '',
        model_glb TEXT NOT NULL DEFAULT '',
        model_usdz TEXT NOT NULL DEFAULT '',
        scans JSONB NOT NULL DEFAULT '[]'::jsonb
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {Tables.MODEL_JOBS} (
        id TEXT PRIMARY KEY,
        restaurant_id TEXT NOT NULL REFERENCES {Tables.RESTAURANTS}(id) ON DELETE CASCADE,
        item_id TEXT NOT NULL REFERENCES {Tables.ITEMS}(id) ON DELETE CASCADE,
        source_type TEXT NOT NULL,
        provider TEXT NOT NULL DEFAULT 'manual',
        ai_model TEXT NOT NULL DEFAULT '',
        auto_mode BOOLEAN NOT NULL DEFAULT FALSE,
        status TEXT NOT NULL DEFAULT 'enviado'
            CHECK (status IN ('enviado', 'triagem', 'processando', 'revisao', 'publicado', 'erro')),
        notes TEXT NOT NULL DEFAULT '',
        model_glb TEXT NOT NULL DEFAULT '',
        model_usdz TEXT NOT NULL DEFAULT '',
        reference_images JSONB NOT NULL DEFAULT '[]'::jsonb,
        provider_task_id TEXT NOT NULL DEFAULT '',
        provider_task_endpoint TEXT NOT NULL DEFAULT '',
        provider_status TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        created_by TEXT NOT NULL DEFAULT ''
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {Tables.ORDERS} (
        id TEXT PRIMARY KEY,
        restaurant_id TEXT NOT NULL REFERENCES {Tables.RESTAURANTS}(id) ON DELETE CASCADE,
        table_label TEXT NOT NULL DEFAULT '',
        items JSONB NOT NULL DEFAULT '[]'::jsonb,
        total NUMERIC(10, 2) NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'novo'
            CHECK (status IN ('novo', 'aceito', 'entregue', 'cancelado')),
        created_at TEXT NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_items_restaurant ON {Tables.ITEMS}(restaurant_id)",
    f"CREATE INDEX IF NOT EXISTS idx_orders_restaurant ON {Tables.ORDERS}(restaurant_id)",
    f"CREATE INDEX IF NOT EXISTS idx_jobs_restaurant ON {Tables.MODEL_JOBS}(restaurant_id)",
    f"CREATE INDEX IF NOT EXISTS idx_jobs_item ON {Tables.MODEL_JOBS}(item_id)",
    f"CREATE INDEX IF NOT EXISTS idx_sessions_expires ON {Tables.SESSIONS}(expires_at)",
]


def verify_connection() -> bool:
    """True when SELECT 1 round-trips. Never raises."""
    if not USE_DB:
        return False
    try:
        row = query_one("SELECT 1 AS ok")
    except DatabaseError as e:
        print(f"[DB] Connection check failed: {e}")
        return False
    return bool(row) and row.get("ok") == 1


def ensure_schema() -> None:
    """Create the schema, tables and indexes that are missing."""
    with transaction() as cur:
        for statement in SCHEMA_DDL:
            cur.execute(statement)
    print(f"[DB] Schema ensured ({_APP_SCHEMA})")


def init_db() -> bool:
    """
    Startup hook: check connectivity and ensure the schema.
    Returns False when no database is configured.

    Raises:
        DatabaseConnectionError: DATABASE_URL is set but the server is unreachable
    """
    if not USE_DB:
        print("[DB] DATABASE_URL not set - running without database")
        return False
    if not verify_connection():
        raise DatabaseConnectionError("connection check failed")
    print("[DB] Database connection verified")
    ensure_schema()
    return True
