# scripts/worker_daemon.py
from __future__ import annotations

import argparse
import logging
import signal
import threading

import psycopg2

from settings import settings, validate_env_settings
from app.workers.deadline import Deadline
from app.workers.factory import build_dispatcher, build_monitor
from app.workers.leader_lock import LOCK_KEYS, AdvisoryLock


logger = logging.getLogger("worker_daemon")

# Running two passes of the same kind at once can double-send notifications.
# Every daemon therefore holds a Postgres advisory lock for its kind and only
# the holder runs passes; other replicas wait as standbys.


def _interval_seconds(kind: str) -> int:
    raw = settings.MONITOR_INTERVAL_SECONDS if kind == "monitor" else settings.DISPATCH_INTERVAL_SECONDS
    return max(1, int(raw))


def main() -> None:
    parser = argparse.ArgumentParser(description="Run reconcile or dispatch passes on a fixed interval.")
    parser.add_argument("kind", choices=("monitor", "dispatch"))
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    validate_env_settings()

    interval = _interval_seconds(args.kind)
    stop = threading.Event()
    current: dict[str, Deadline] = {}

    def _shutdown(signum, _frame):
        logger.info("worker daemon received signal=%s; stopping", signum)
        stop.set()
        if "deadline" in current:
            current["deadline"].cancel()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    if args.kind == "monitor":
        run = build_monitor().run_pass
    else:
        run = build_dispatcher().process_pass

    lock = AdvisoryLock(
        lambda: psycopg2.connect(settings.DATABASE_URL, connect_timeout=5),
        LOCK_KEYS[args.kind],
    )
    logger.info("worker daemon starting; kind=%s interval=%ss", args.kind, interval)

    try:
        while not stop.is_set():
            if not lock.try_acquire():
                logger.info("%s lock not held by this worker; standing by", args.kind)
                stop.wait(interval)
                continue

            deadline = Deadline(settings.PASS_TIMEOUT_SECONDS)
            current["deadline"] = deadline
            try:
                run(deadline)
            except Exception:
                logger.exception("worker pass failed; kind=%s", args.kind)
            finally:
                current.pop("deadline", None)

            stop.wait(interval)
    finally:
        lock.close()
        logger.info("worker daemon exiting")


if __name__ == "__main__":
    main()
