"""Invoice domain models.

Amounts are Decimal with two decimal places (NUMERIC(15,2) in PostgreSQL).
total_amount = subtotal - discount_amount + tax_amount is supplied by the
caller and validated, never computed; tax is stored, not calculated.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.models.line_item import InvoiceItemCreate
from core.models.snapshot import IssuerSnapshot, RecipientSnapshot, TemplateSnapshot


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    ISSUED = "issued"
    SENT = "sent"
    VIEWED = "viewed"
    PAID = "paid"
    VOIDED = "voided"
    CREDITED = "credited"  # Display only: a voided invoice with its credit note


class InvoiceCreate(BaseModel):
    """Data required to create a draft invoice.

    Exactly one of user_id / business_id owns the invoice.
    """

    user_id: UUID | None = None
    business_id: UUID | None = None
    client_id: UUID | None = None
    template_id: UUID | None = None
    currency: str = Field("NGN", min_length=3, max_length=3)
    exchange_rate_to_primary: Decimal | None = Field(None, gt=0)
    subtotal: Decimal = Field(..., ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    tax_amount: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)
    issue_date: date | None = None
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)
    items: list[InvoiceItemCreate] = Field(default_factory=list)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class InvoiceUpdate(BaseModel):
    """Draft fields that can be edited. All optional.

    When items is provided the draft's line items are replaced wholesale.
    """

    client_id: UUID | None = None
    template_id: UUID | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    exchange_rate_to_primary: Decimal | None = Field(None, gt=0)
    subtotal: Decimal | None = Field(None, ge=0)
    discount_amount: Decimal | None = Field(None, ge=0)
    tax_amount: Decimal | None = Field(None, ge=0)
    total_amount: Decimal | None = Field(None, ge=0)
    issue_date: date | None = None
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)
    items: list[InvoiceItemCreate] | None = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    user_id: UUID | None
    business_id: UUID | None
    client_id: UUID | None
    template_id: UUID | None
    invoice_number: str
    status: InvoiceStatus
    currency: str
    exchange_rate_to_primary: Decimal | None = None
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    issue_date: date | None
    due_date: date | None
    notes: str | None
    issued_at: datetime | None = None
    issued_by: UUID | None = None
    sent_at: datetime | None = None
    viewed_at: datetime | None = None
    paid_at: datetime | None = None
    voided_at: datetime | None = None
    voided_by: UUID | None = None
    void_reason: str | None = None
    issuer_snapshot: IssuerSnapshot | None = None
    recipient_snapshot: RecipientSnapshot | None = None
    template_snapshot: TemplateSnapshot | None = None
    invoice_hash: str | None = None
    verification_id: UUID | None = None
    retention_locked_until: date | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def balance_due(self) -> Decimal:
        """Remaining amount to be paid."""
        return self.total_amount - self.amount_paid

    @property
    def is_sealed(self) -> bool:
        """Whether the invoice has left draft and is immutable."""
        return self.status != InvoiceStatus.DRAFT
