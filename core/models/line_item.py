"""Invoice line item domain models.

Amounts are Decimal with two decimal places, matching NUMERIC(15,2) columns.
Line items belong to exactly one invoice and are replaced wholesale while
the invoice is a draft. Once the invoice is issued they are frozen.
"""

from decimal import Decimal
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

_CENT = Decimal("0.01")


class InvoiceItemCreate(BaseModel):
    """Data required to create a line item."""

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_price: Decimal = Field(..., ge=0)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    amount: Decimal | None = Field(None, ge=0)

    @model_validator(mode="after")
    def compute_amount_if_missing(self) -> "InvoiceItemCreate":
        """Compute amount from quantity * unit_price if not provided."""
        if self.amount is None:
            self.amount = (self.quantity * self.unit_price).quantize(_CENT)
        return self


class InvoiceItem(BaseModel):
    """Full line item entity as stored."""

    id: UUID
    invoice_id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    amount: Decimal
    sort_order: int
    created_at: datetime

    model_config = {"from_attributes": True}
