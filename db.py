# db.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import psycopg2
import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool

from settings import settings

APPLICATION_NAME = "settlement_reconciler"

_pool: SimpleConnectionPool | None = None


def init_pool() -> SimpleConnectionPool:
    """
    Create the shared pool on first use. Workers and the admin API each get
    their own pool in their own process.
    """
    global _pool
    if _pool is None:
        psycopg2.extras.register_uuid()
        _pool = SimpleConnectionPool(
            minconn=1,
            maxconn=max(1, settings.DB_POOL_MAX),
            dsn=settings.DATABASE_URL,
            connect_timeout=5,
            application_name=APPLICATION_NAME,
        )
    return _pool


def close_pool() -> None:
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None


def _bound_session(conn) -> None:
    timeout_ms = int(settings.DB_STATEMENT_TIMEOUT_MS)
    with conn.cursor() as cur:
        cur.execute("SET statement_timeout = %s;", (timeout_ms,))
        cur.execute("SET idle_in_transaction_session_timeout = %s;", (timeout_ms,))


@contextmanager
def get_conn() -> Iterator:
    """
    One transaction per block: commit when it exits cleanly, roll back on any
    exception (which is re-raised).
    """
    pool = init_pool()
    conn = pool.getconn()
    try:
        _bound_session(conn)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)
