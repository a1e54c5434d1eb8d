from app.transfers.model import COMPLETED, FAILED, PENDING, PROCESSING


class InvalidTransition(Exception):
    pass


ALLOWED = {
    PENDING: {PROCESSING, COMPLETED, FAILED},
    PROCESSING: {COMPLETED, FAILED},
    COMPLETED: set(),
    FAILED: set(),
}


def assert_transition(old: str, new: str) -> None:
    if new not in ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal transfer transition: {old} -> {new}")


def assert_completed_invariant(status: str, completed_at) -> None:
    """
    Invariant: completed_at is set if and only if the transfer is completed.
    """
    if (status == COMPLETED) != (completed_at is not None):
        raise ValueError("Invariant violation: completed_at must be set iff status=completed")
