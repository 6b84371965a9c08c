"""Typed exceptions for ledger operations.

Callers branch on the exception class, never on message text. The API layer
maps each class to a status code in api/errors.py.
"""


class LedgerError(Exception):
    """Base class for all invoice ledger failures."""


class NotFound(LedgerError):
    """Entity id or verification id does not resolve."""

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.replace('_', ' ').capitalize()} {entity_id} not found")


class InvalidStateTransition(LedgerError):
    """Operation attempted from a status that forbids it."""

    def __init__(self, current, target: str, message: str | None = None):
        self.current = getattr(current, "value", current)
        self.target = target
        super().__init__(
            message or f"Cannot {target} an invoice in '{self.current}' status"
        )


class ImmutableInvoice(InvalidStateTransition):
    """Update or delete attempted on an invoice that is no longer a draft."""

    def __init__(self, current, operation: str):
        super().__init__(
            current,
            operation,
            f"Invoice is {getattr(current, 'value', current)} and can no longer be {operation}d",
        )


class PreconditionFailed(LedgerError):
    """Actor-level or input gate not met (reason too short, owner invalid, no recipient)."""


class VerificationRequired(PreconditionFailed):
    """Actor's email is not verified. Unverified actors cannot issue documents."""

    def __init__(self, message: str = "Email verification required"):
        super().__init__(message)


class IntegrityMismatch(LedgerError):
    """
    Recomputed hash disagrees with the stored hash.

    Signals tampering or a bug. Never treated as verified.
    """

    def __init__(self, document_type: str, document_id):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"Integrity check failed for {document_type} {document_id}")


class ConcurrencyConflict(LedgerError):
    """A compare-and-set on status lost a race. Re-fetch before retrying."""


class AuditWriteError(LedgerError):
    """Audit entry could not be written. The triggering operation is aborted."""


class Unexpected(LedgerError):
    """Anything else. Message is safe to show; details stay in the logs."""
