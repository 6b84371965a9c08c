"""Credit note domain model.

A credit note fully reverses a voided invoice. Its amount is copied from the
invoice's frozen total and it carries its own hash and verification id.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class CreditNote(BaseModel):
    """Full credit note entity as stored."""

    id: UUID
    credit_note_number: str
    original_invoice_id: UUID
    amount: Decimal
    currency: str
    reason: str
    issued_by: UUID | None
    issued_at: datetime
    verification_id: UUID
    credit_note_hash: str
    retention_locked_until: date | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
