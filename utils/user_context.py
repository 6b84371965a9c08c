"""Propagate the acting user's identity through the call stack using contextvars."""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_current_actor_id: ContextVar[UUID | None] = ContextVar("current_actor_id", default=None)


def get_current_actor_id() -> UUID:
    """
    Get the acting user's ID from context.

    Raises RuntimeError if no actor is set. Issuance, payments and voids
    must be attributable, so reaching them without an actor is a bug.
    """
    actor_id = _current_actor_id.get()
    if actor_id is None:
        raise RuntimeError(
            "No actor context set. Ledger mutations must run inside an "
            "authenticated request or an explicit actor_context()."
        )
    return actor_id


def get_optional_actor_id() -> UUID | None:
    """Actor ID if one is set, else None (public verification, system jobs)."""
    return _current_actor_id.get()


def set_current_actor_id(actor_id: UUID) -> None:
    """Set the acting user. Called by the API middleware per request."""
    _current_actor_id.set(actor_id)


def clear_current_actor_id() -> None:
    """
    Clear the actor context.

    Must be called in a finally block to prevent context leakage between requests.
    """
    _current_actor_id.set(None)


@contextmanager
def actor_context(actor_id: UUID):
    """
    Temporarily act as the given user.

    Example:
        with actor_context(owner_id):
            invoice_service.issue(invoice_id)
    """
    previous = _current_actor_id.get()
    set_current_actor_id(actor_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_actor_id()
        else:
            set_current_actor_id(previous)
