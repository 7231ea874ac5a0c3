"""Propagate the acting party (user or job) through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar

SYSTEM_ACTOR = "system"

_current_actor: ContextVar[str | None] = ContextVar("current_actor", default=None)


def get_current_actor() -> str:
    """
    Who is performing the current mutation.

    Falls back to SYSTEM_ACTOR so that scheduled jobs without an explicit
    context are still attributed in the audit trail.
    """
    return _current_actor.get() or SYSTEM_ACTOR


def set_current_actor(actor: str) -> None:
    """Set the acting party, e.g. "user:42" or "job:dunning-scan"."""
    if not actor:
        raise ValueError("actor must be a non-empty string")
    _current_actor.set(actor)


def clear_current_actor() -> None:
    """Clear actor context. Call in a finally block."""
    _current_actor.set(None)


@contextmanager
def acting_as(actor: str):
    """
    Temporarily attribute mutations to the given actor.

    Example:
        with acting_as("job:dunning-scan"):
            dunning_service.run_scan(ScanCommand(today=today))
    """
    token = _current_actor.set(actor)
    try:
        yield
    finally:
        _current_actor.reset(token)
