"""Payment and receipt domain models.

Payments are recorded, never processed: they describe money that already
settled elsewhere. Both payments and their receipts are append-only.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.models.invoice import InvoiceStatus
from core.models.snapshot import IssuerSnapshot, RecipientSnapshot

_MARKUP = re.compile(r"<[^>]*>")


def _clean_text(value: str | None) -> str | None:
    """Strip markup and surrounding whitespace. Empty becomes None."""
    if value is None:
        return None
    cleaned = _MARKUP.sub("", value).strip()
    return cleaned or None


class PaymentCreate(BaseModel):
    """Data required to record a payment against an issued invoice."""

    amount: Decimal = Field(..., gt=0, le=Decimal("999999999.99"), decimal_places=2)
    payment_method: str | None = Field(None, max_length=100)
    payment_reference: str | None = Field(None, max_length=255)
    payment_date: date | None = None  # Defaults to today (UTC)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("payment_method", "payment_reference", "notes")
    @classmethod
    def strip_markup(cls, v: str | None) -> str | None:
        return _clean_text(v)


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_method: str | None
    payment_reference: str | None
    payment_date: date
    notes: str | None
    recorded_by: UUID | None
    retention_locked_until: date | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class Receipt(BaseModel):
    """Hashed, publicly verifiable proof of one recorded payment."""

    id: UUID
    receipt_number: str
    invoice_id: UUID
    payment_id: UUID
    amount: Decimal
    currency: str
    issued_at: datetime
    receipt_hash: str
    verification_id: UUID
    issuer_snapshot: IssuerSnapshot | None = None
    payer_snapshot: RecipientSnapshot | None = None
    retention_locked_until: date | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentResult(BaseModel):
    """Outcome of recording a payment."""

    payment: Payment
    invoice_status: InvoiceStatus
    amount_paid: Decimal
    balance_due: Decimal
    receipt: Receipt


class Reconciliation(BaseModel):
    """Running total on the invoice compared with the sum of its payments."""

    invoice_id: UUID
    amount_paid: Decimal
    payments_total: Decimal
    payment_count: int

    @property
    def balanced(self) -> bool:
        return self.amount_paid == self.payments_total
