from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")


class DeadlineExceeded(Exception):
    pass


class Deadline:
    """
    Cancellable time budget handed to a pass and to every outbound call it makes.

    Outbound calls size their HTTP timeout with bound() and run through call(),
    which returns as soon as cancel() fires instead of waiting for the request
    to finish. cancel() is safe from another thread or a signal handler.
    """

    def __init__(self, timeout_s: Optional[float] = None, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if timeout_s is None else clock() + float(timeout_s)
        self._cancelled = False
        # RLock: cancel() may run in a signal handler on a thread already holding it
        self._cond = threading.Condition(threading.RLock())

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        if self.cancelled:
            raise DeadlineExceeded("pass cancelled")
        if self.expired:
            raise DeadlineExceeded("pass deadline exceeded")

    def bound(self, per_call_s: float) -> float:
        """
        Timeout for a single outbound call: per_call_s capped by what is left.
        """
        self.check()
        remaining = self.remaining()
        if remaining is None:
            return float(per_call_s)
        return min(float(per_call_s), remaining)

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run fn on a helper thread and wait for it or for cancel(), whichever
        comes first. On cancel the result is abandoned and DeadlineExceeded is
        raised; the helper ends on its own at the call's bounded timeout.
        """
        self.check()
        outcome: dict[str, Any] = {}

        def _run() -> None:
            try:
                outcome["value"] = fn(*args, **kwargs)
            except BaseException as exc:
                outcome["error"] = exc
            finally:
                with self._cond:
                    outcome["done"] = True
                    self._cond.notify_all()

        threading.Thread(target=_run, name="deadline-call", daemon=True).start()

        with self._cond:
            self._cond.wait_for(lambda: outcome.get("done") or self._cancelled)

        if not outcome.get("done"):
            raise DeadlineExceeded("pass cancelled")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]
