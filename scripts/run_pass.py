from __future__ import annotations

import argparse
import logging

from settings import settings
from app.workers.deadline import Deadline
from app.workers.factory import build_dispatcher, build_monitor


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one reconcile or regulator dispatch pass.")
    parser.add_argument("kind", choices=("monitor", "dispatch"))
    parser.add_argument("--timeout-seconds", type=float, default=settings.PASS_TIMEOUT_SECONDS)
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    deadline = Deadline(args.timeout_seconds)

    if args.kind == "monitor":
        summary = build_monitor().run_pass(deadline)
        print("loaded:", summary.loaded)
        print("outcomes:", " ".join(f"{k}={v}" for k, v in sorted(summary.outcomes.items())))
        print("skipped:", summary.skipped)
    else:
        summary = build_dispatcher().process_pass(deadline)
        print(
            "counts:",
            f"found={summary.found}",
            f"sent={summary.sent}",
            f"failed={summary.failed}",
            f"dead_lettered={summary.dead_lettered}",
            f"persist_errors={summary.persist_errors}",
            f"stale_updates={summary.stale_updates}",
            f"skipped={summary.skipped}",
        )

    if summary.cancelled:
        print("pass stopped early: deadline reached")


if __name__ == "__main__":
    main()
