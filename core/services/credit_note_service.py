"""
Void / credit-note generator.

Voiding never deletes or blanks an invoice. It flips the invoice to voided,
stamps the void metadata and emits exactly one credit note for the full
frozen total, with its own hash and verification id. The row lock, the
status compare-and-set and the unique original_invoice_id constraint make
the gate one-way under concurrency.
"""

import logging
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core import lifecycle
from core.audit import AuditLogger
from core.config import ComplianceConfig
from core.errors import ConcurrencyConflict, NotFound
from core.event_bus import EventBus
from core.events import InvoiceVoided
from core.integrity import compute_hash, credit_note_fields
from core.models import AuditEventType, CreditNote, Invoice, InvoiceStatus
from core.services.directory_service import DirectoryService
from core.services.retention_service import RetentionService
from utils.user_context import get_current_actor_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class CreditNoteService:
    """Service for voiding invoices and reading credit notes."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        directory: DirectoryService,
        retention: RetentionService,
        config: ComplianceConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.directory = directory
        self.retention = retention
        self.config = config or ComplianceConfig()

    def void(self, invoice_id: UUID, reason: str) -> CreditNote:
        """
        Void an issued, sent or viewed invoice and emit its credit note.

        Args:
            invoice_id: Invoice to void
            reason: Why; trimmed, minimum length from config

        Returns:
            The credit note (amount = invoice total_amount)

        Raises:
            PreconditionFailed: Reason too short.
            NotFound: Invoice doesn't exist.
            InvalidStateTransition: Invoice is draft, paid or already voided.
            ConcurrencyConflict: Status compare-and-set lost a race.
        """
        reason = lifecycle.normalize_void_reason(reason, self.config.void_reason_min_length)
        actor_id = get_current_actor_id()

        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                "SELECT * FROM invoices WHERE id = %s FOR UPDATE",
                (invoice_id,)
            )
            if row is None:
                raise NotFound("invoice", invoice_id)
            current = Invoice.model_validate(row)
            lifecycle.ensure_transition(current.status, InvoiceStatus.VOIDED)

            now = now_utc()
            number = lifecycle.credit_note_number(current.invoice_number)
            credit_note_hash = compute_hash(credit_note_fields(
                number, current.id, current.total_amount, current.currency, now
            ))
            jurisdiction = self.directory.jurisdiction_for(current, tx=tx)

            credit_note = CreditNote.model_validate(tx.execute_returning(
                """
                INSERT INTO credit_notes (
                    id, credit_note_number, original_invoice_id, amount, currency,
                    reason, issued_by, issued_at, verification_id, credit_note_hash,
                    retention_locked_until, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), number, current.id, current.total_amount, current.currency,
                    reason, actor_id, now, uuid4(), credit_note_hash,
                    self.retention.locked_until(now.date(), jurisdiction, "credit_note", tx=tx),
                    now,
                )
            )[0])

            row = tx.execute_single(
                """
                UPDATE invoices SET
                    status = %s, voided_at = %s, voided_by = %s, void_reason = %s, updated_at = %s
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (
                    InvoiceStatus.VOIDED.value, now, actor_id, reason, now,
                    invoice_id, current.status.value,
                )
            )
            if row is None:
                raise ConcurrencyConflict(f"Invoice {invoice_id} changed status during void")
            voided = Invoice.model_validate(row)

            self.audit.record(
                AuditEventType.INVOICE_VOIDED,
                entity_type="invoice",
                entity_id=invoice_id,
                actor_id=actor_id,
                previous_state={
                    "status": current.status.value,
                    "invoice_number": current.invoice_number,
                },
                new_state={
                    "status": voided.status.value,
                    "void_reason": reason,
                    "credit_note_id": str(credit_note.id),
                },
                metadata={
                    "credit_note_number": credit_note.credit_note_number,
                    "credit_note_amount": str(credit_note.amount),
                },
                tx=tx,
            )

        logger.info("Invoice %s voided, credit note %s", invoice_id, credit_note.credit_note_number)
        self.event_bus.publish(InvoiceVoided.create(invoice=voided, credit_note=credit_note))
        return credit_note

    def get_by_id(self, credit_note_id: UUID) -> CreditNote | None:
        row = self.postgres.execute_single(
            "SELECT * FROM credit_notes WHERE id = %s",
            (credit_note_id,)
        )
        if row is None:
            return None
        return CreditNote.model_validate(row)

    def get_for_invoice(self, invoice_id: UUID) -> CreditNote | None:
        """The credit note that reversed an invoice, if it was voided."""
        row = self.postgres.execute_single(
            "SELECT * FROM credit_notes WHERE original_invoice_id = %s",
            (invoice_id,)
        )
        if row is None:
            return None
        return CreditNote.model_validate(row)

    def list_for_owner(
        self,
        user_id: UUID | None = None,
        business_id: UUID | None = None,
        limit: int = 50,
    ) -> list[CreditNote]:
        """Credit notes for an owner's invoices, newest first."""
        lifecycle.ensure_single_owner(user_id, business_id)
        if business_id is not None:
            clause, owner_id = "i.business_id = %s", business_id
        else:
            clause, owner_id = "i.user_id = %s AND i.business_id IS NULL", user_id

        rows = self.postgres.execute(
            f"""
            SELECT cn.* FROM credit_notes cn
            JOIN invoices i ON i.id = cn.original_invoice_id
            WHERE {clause}
            ORDER BY cn.issued_at DESC
            LIMIT %s
            """,
            (owner_id, limit)
        )
        return [CreditNote.model_validate(row) for row in rows]
