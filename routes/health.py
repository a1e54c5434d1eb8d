from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from db import get_conn
from app.providers.ledger import LedgerClient
from app.workers.deadline import Deadline

router = APIRouter(tags=["health"])

MIGRATION_REVISION = "0002_regulator_notifications"
HEALTH_CHECK_TIMEOUT_S = 5.0


def _check_db() -> tuple[bool, str | None]:
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True, None
    except Exception as exc:
        return False, f"{type(exc).__name__}: {exc}"


def _check_ledger() -> tuple[bool, str | None]:
    try:
        LedgerClient().health_check(deadline=Deadline(HEALTH_CHECK_TIMEOUT_S))
        return True, None
    except Exception as exc:
        return False, str(exc)


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/healthz")
def healthz():
    db_ok, db_error = _check_db()
    return {
        "ok": True,
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "git_sha": _resolve_git_sha(),
        "db_ok": db_ok,
        "db_error": db_error,
    }


@router.get("/readyz")
def readyz():
    db_ok, db_error = _check_db()
    ledger_ok, ledger_error = _check_ledger()
    ready = bool(db_ok and ledger_ok)
    body = {
        "ready": ready,
        "dependencies": {
            "database": "ok" if db_ok else "error",
            "ledger_api": "ok" if ledger_ok else "error",
        },
        "db_error": db_error,
        "ledger_error": ledger_error,
        "migration_revision": MIGRATION_REVISION,
    }
    return JSONResponse(status_code=200 if ready else 503, content=body)
