from __future__ import annotations


class StaleUpdateError(Exception):
    """A conditional UPDATE matched no row: another writer changed it first, or it is gone."""


class NotificationQueueError(Exception):
    """Persisting a new regulator notification failed."""
