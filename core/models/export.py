"""Compliance export models."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, model_validator

from core.models.audit_entry import AuditLogEntry, ChainVerification
from core.models.credit_note import CreditNote
from core.models.payment import Payment, Receipt


class ExportRequest(BaseModel):
    """Scope of a records export: one owner, optionally a creation date range."""

    user_id: UUID | None = None
    business_id: UUID | None = None
    date_from: date | None = None
    date_to: date | None = None

    @model_validator(mode="after")
    def range_ordered(self) -> "ExportRequest":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class ComplianceExport(BaseModel):
    """
    Everything an auditor needs for one owner's invoices.

    Invoices carry their frozen snapshots and line items. integrity_hash is a
    SHA-256 over the exported records and is also written to the
    DATA_EXPORTED audit entry, so a copy can later be matched to its export.
    """

    export_id: UUID
    generated_at: datetime
    generated_by: UUID
    user_id: UUID | None
    business_id: UUID | None
    date_from: date | None
    date_to: date | None
    invoices: list[dict]
    payments: list[Payment]
    receipts: list[Receipt]
    credit_notes: list[CreditNote]
    audit_entries: list[AuditLogEntry]
    chains: list[ChainVerification]
    integrity_hash: str

    @property
    def record_count(self) -> int:
        return (
            len(self.invoices) + len(self.payments) + len(self.receipts)
            + len(self.credit_notes) + len(self.audit_entries)
        )

    @property
    def chains_valid(self) -> bool:
        return all(chain.valid for chain in self.chains)
