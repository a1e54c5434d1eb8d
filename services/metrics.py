from __future__ import annotations

from threading import Lock
from typing import Tuple


_lock = Lock()
_counters: dict[str, dict[Tuple[Tuple[str, str], ...], int]] = {}


def _inc(name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
    key = tuple(sorted((labels or {}).items()))
    with _lock:
        series = _counters.setdefault(name, {})
        series[key] = int(series.get(key, 0)) + int(value)


def get_counter(name: str, labels: dict[str, str] | None = None) -> int:
    key = tuple(sorted((labels or {}).items()))
    with _lock:
        return int(_counters.get(name, {}).get(key, 0))


def increment_http_requests(route: str, status: int) -> None:
    _inc("http_requests_total", {"route": route, "status": str(status)})


def increment_reconcile_outcome(outcome: str) -> None:
    _inc("reconcile_transfers_total", {"outcome": outcome})


def increment_notification_attempt(result: str) -> None:
    _inc("regulator_notifications_total", {"result": result})


def increment_notification_queued() -> None:
    _inc("regulator_notifications_queued_total")


def render_prometheus() -> str:
    lines: list[str] = []
    with _lock:
        for name, series in sorted(_counters.items()):
            lines.append(f"# TYPE {name} counter")
            for labels, value in sorted(series.items()):
                if labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in labels)
                    lines.append(f"{name}{{{label_str}}} {value}")
                else:
                    lines.append(f"{name} {value}")
    return "\n".join(lines) + ("\n" if lines else "")
