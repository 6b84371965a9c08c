"""
Domain events for the invoice ledger.

Immutable event objects describing facts that already committed. Services
publish after their transaction commits; handlers (notifications, analytics)
react without the publisher knowing who is listening.

Events carry the full domain objects so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class LedgerEvent:
    """Base class for all ledger domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class InvoiceEvent(LedgerEvent):
    """Events related to invoice lifecycle."""
    pass


@dataclass(frozen=True)
class InvoiceIssued(InvoiceEvent):
    """Draft was sealed: snapshots frozen, hash and verification id assigned."""
    invoice: Any = None  # Invoice, typed loosely to avoid circular imports

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceIssued":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceSent(InvoiceEvent):
    """Invoice was sent to the recipient."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceSent":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceViewed(InvoiceEvent):
    """Recipient opened the invoice."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceViewed":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice was fully paid."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceVoided(InvoiceEvent):
    """Invoice was voided and reversed by a credit note."""
    invoice: Any = None
    credit_note: Any = None

    @classmethod
    def create(cls, invoice: Any, credit_note: Any) -> "InvoiceVoided":
        return cls(invoice=invoice, credit_note=credit_note)


@dataclass(frozen=True)
class PaymentRecorded(LedgerEvent):
    """A payment and its receipt were recorded against an invoice."""
    invoice: Any = None
    payment: Any = None
    receipt: Any = None

    @classmethod
    def create(cls, invoice: Any, payment: Any, receipt: Any) -> "PaymentRecorded":
        return cls(invoice=invoice, payment=payment, receipt=receipt)
