"""
Public verification resolver.

Anyone holding a verification id can confirm that an invoice, receipt or
credit note is genuine and untampered. Lookup is by verification id only,
never by primary key. The hash is recomputed from the stored frozen fields
and compared with the stored hash.

Public callers get one generic "not verified" answer for malformed, unknown
and tampered ids alike. Tampering is logged internally. Each public lookup
of a sealed document is recorded as DOCUMENT_VERIFIED on the document's
"verification" chain. Internal callers use check(), which raises specific
errors instead.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger
from core.errors import IntegrityMismatch, NotFound, Unexpected
from core.integrity import (
    compute_hash,
    credit_note_fields,
    hashes_match,
    invoice_fields,
    receipt_fields,
)
from core.models import (
    AuditEventType,
    InvoiceStatus,
    IssuerSnapshot,
    RecipientSnapshot,
    RedactedSummary,
    VerificationResult,
)

logger = logging.getLogger(__name__)


def payment_status_label(status: str, total_amount: Decimal, amount_paid: Decimal) -> str:
    """Public payment status wording for an invoice."""
    if status == InvoiceStatus.VOIDED.value:
        return "voided"
    if status == InvoiceStatus.PAID.value or amount_paid >= total_amount:
        return "paid"
    if amount_paid > 0:
        return "partially paid"
    return "unpaid"


def _issuer_name(snapshot: dict[str, Any] | None) -> str:
    if not snapshot:
        return "Unknown issuer"
    return IssuerSnapshot.model_validate(snapshot).display_name


def _counterpart_name(snapshot: dict[str, Any] | None) -> str | None:
    if not snapshot:
        return None
    return RecipientSnapshot.model_validate(snapshot).name


class VerificationService:
    """Resolve verification ids to redacted, integrity-checked summaries."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def resolve(self, verification_id: str) -> VerificationResult:
        """
        Public entry point. Never raises.

        Returns:
            verified/integrity_valid True with a redacted summary for a genuine
            document; the generic not-verified result for everything else.
        """
        try:
            vid = UUID(str(verification_id))
        except ValueError:
            return VerificationResult.not_verified()

        try:
            found = self._lookup(vid)
            if found is None:
                return VerificationResult.not_verified()

            document_type, row = found
            integrity_valid = self._integrity_valid(document_type, row)
            redacted = self._redact(document_type, row) if integrity_valid else None
        except Exception:
            logger.exception("Verification of %s failed", vid)
            return VerificationResult.not_verified()

        # Public access gets its own chain, apart from the owner's document history
        self.audit.record_best_effort(
            AuditEventType.DOCUMENT_VERIFIED,
            entity_type="verification",
            entity_id=row["id"],
            metadata={
                "document_type": document_type,
                "source": "public_verification",
                "integrity_valid": integrity_valid,
            },
        )

        if not integrity_valid:
            logger.warning(
                "Integrity mismatch on %s %s (verification id %s)",
                document_type, row["id"], vid,
            )
            return VerificationResult.not_verified()

        return VerificationResult(
            verified=True,
            integrity_valid=True,
            document_type=document_type,
            redacted=redacted,
        )

    def check(self, verification_id: UUID) -> VerificationResult:
        """
        Internal variant with specific errors.

        Raises:
            NotFound: No document carries this verification id.
            IntegrityMismatch: Stored hash disagrees with the recomputed one.
            Unexpected: Stored snapshot can no longer be read.
        """
        found = self._lookup(verification_id)
        if found is None:
            raise NotFound("document", verification_id)

        document_type, row = found
        if not self._integrity_valid(document_type, row):
            raise IntegrityMismatch(document_type, row["id"])

        try:
            redacted = self._redact(document_type, row)
        except ValidationError as exc:
            raise Unexpected(f"Stored snapshot on {document_type} {row['id']} is unreadable") from exc

        return VerificationResult(
            verified=True,
            integrity_valid=True,
            document_type=document_type,
            redacted=redacted,
        )

    def _lookup(self, vid: UUID) -> tuple[str, dict[str, Any]] | None:
        """Find a sealed document by verification id: invoices, then receipts, then credit notes."""
        row = self.postgres.execute_single(
            """
            SELECT id, invoice_number, status, total_amount, amount_paid, currency,
                   issued_at, invoice_hash, issuer_snapshot, recipient_snapshot
            FROM invoices
            WHERE verification_id = %s AND status <> 'draft'
            """,
            (vid,)
        )
        if row is not None:
            return "invoice", row

        row = self.postgres.execute_single(
            """
            SELECT id, receipt_number, invoice_id, payment_id, amount, currency,
                   issued_at, receipt_hash, issuer_snapshot, payer_snapshot
            FROM receipts
            WHERE verification_id = %s
            """,
            (vid,)
        )
        if row is not None:
            return "receipt", row

        row = self.postgres.execute_single(
            """
            SELECT cn.id, cn.credit_note_number, cn.original_invoice_id, cn.amount,
                   cn.currency, cn.issued_at, cn.credit_note_hash,
                   i.issuer_snapshot, i.recipient_snapshot
            FROM credit_notes cn
            JOIN invoices i ON i.id = cn.original_invoice_id
            WHERE cn.verification_id = %s
            """,
            (vid,)
        )
        if row is not None:
            return "credit_note", row

        return None

    def _integrity_valid(self, document_type: str, row: dict[str, Any]) -> bool:
        if document_type == "invoice":
            if row["issued_at"] is None:
                return False
            fields = invoice_fields(
                row["id"], row["invoice_number"], row["total_amount"],
                row["currency"], row["issued_at"],
            )
            stored = row["invoice_hash"]
        elif document_type == "receipt":
            fields = receipt_fields(
                row["receipt_number"], row["invoice_id"], row["payment_id"],
                row["amount"], row["currency"], row["issued_at"],
            )
            stored = row["receipt_hash"]
        else:
            fields = credit_note_fields(
                row["credit_note_number"], row["original_invoice_id"],
                row["amount"], row["currency"], row["issued_at"],
            )
            stored = row["credit_note_hash"]

        return hashes_match(stored, compute_hash(fields))

    def _redact(self, document_type: str, row: dict[str, Any]) -> RedactedSummary:
        if document_type == "invoice":
            return RedactedSummary(
                document_type=document_type,
                document_number=row["invoice_number"],
                issuer_name=_issuer_name(row["issuer_snapshot"]),
                counterpart_name=_counterpart_name(row["recipient_snapshot"]),
                amount=row["total_amount"],
                currency=row["currency"],
                issued_at=row["issued_at"],
                payment_status=payment_status_label(
                    row["status"], row["total_amount"], row["amount_paid"]
                ),
            )

        if document_type == "receipt":
            return RedactedSummary(
                document_type=document_type,
                document_number=row["receipt_number"],
                issuer_name=_issuer_name(row["issuer_snapshot"]),
                counterpart_name=_counterpart_name(row["payer_snapshot"]),
                amount=row["amount"],
                currency=row["currency"],
                issued_at=row["issued_at"],
            )

        return RedactedSummary(
            document_type=document_type,
            document_number=row["credit_note_number"],
            issuer_name=_issuer_name(row["issuer_snapshot"]),
            counterpart_name=_counterpart_name(row["recipient_snapshot"]),
            amount=row["amount"],
            currency=row["currency"],
            issued_at=row["issued_at"],
        )
