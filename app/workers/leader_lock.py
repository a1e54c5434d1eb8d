from __future__ import annotations

import logging
from typing import Any, Callable

import psycopg2

logger = logging.getLogger("settlement.lock")

LOCK_KEYS = {
    "monitor": "settlement:transfer_monitor",
    "dispatch": "settlement:notification_dispatch",
}

_TRY_LOCK_SQL = "SELECT pg_try_advisory_lock(hashtext(%s));"
_UNLOCK_SQL = "SELECT pg_advisory_unlock(hashtext(%s));"

# A single bigint key shows up in pg_locks split into classid (high 32 bits)
# and objid (low 32 bits) with objsubid = 1
_HELD_SQL = """
SELECT EXISTS (
  SELECT 1
  FROM pg_locks
  WHERE locktype = 'advisory'
    AND pid = pg_backend_pid()
    AND granted
    AND objsubid = 1
    AND classid::bigint = ((hashtext(%s)::bigint >> 32) & 4294967295)
    AND objid::bigint = (hashtext(%s)::bigint & 4294967295)
);
"""


class AdvisoryLock:
    """
    Postgres session advisory lock used to keep one active pass runner per kind.

    The lock lives as long as its session, so it owns a dedicated connection
    (not one borrowed from the pool). Postgres drops the lock without notice
    when that session dies, so try_acquire() re-verifies a held lock on every
    call and reconnects after a connection error.
    """

    def __init__(self, connect: Callable[[], Any], key: str):
        self._connect = connect
        self.key = key
        self.conn = None
        self.held = False

    def _fetch_bool(self, sql: str, params: tuple) -> bool:
        with self.conn.cursor() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
        self.conn.commit()
        return bool(row and row[0])

    def _drop_connection(self) -> None:
        self.held = False
        if self.conn is not None and not self.conn.closed:
            self.conn.close()
        self.conn = None

    def try_acquire(self) -> bool:
        """
        True when this session holds the lock right now. Call before every pass.
        """
        was_held = self.held
        try:
            if self.conn is None or self.conn.closed:
                self.held = False
                self.conn = self._connect()

            if self.held and self._fetch_bool(_HELD_SQL, (self.key, self.key)):
                return True

            if self.held:
                logger.warning("advisory lock no longer held key=%s", self.key)
                self.held = False

            self.held = self._fetch_bool(_TRY_LOCK_SQL, (self.key,))
        except psycopg2.Error as exc:
            logger.warning("advisory lock connection failed key=%s err=%s", self.key, exc)
            self._drop_connection()
            return False

        if self.held and not was_held:
            logger.info("acquired advisory lock key=%s", self.key)
        return self.held

    def release(self) -> None:
        if not self.held or self.conn is None:
            return
        try:
            self._fetch_bool(_UNLOCK_SQL, (self.key,))
        except psycopg2.Error as exc:
            # the lock goes away with the session anyway
            logger.warning("advisory lock release failed key=%s err=%s", self.key, exc)
            self._drop_connection()
            return
        self.held = False
        logger.info("released advisory lock key=%s", self.key)

    def close(self) -> None:
        self.release()
        self._drop_connection()
