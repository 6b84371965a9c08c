"""
Invoice lifecycle service.

Drafts are created, edited and deleted freely by their owner. issue() seals a
draft: it freezes issuer/recipient/template snapshots, computes the content
hash, assigns a verification id and writes the audit entry, all in one
transaction guarded by a row lock and a compare-and-set on status. After
that the invoice only moves forward through the transition table in
core.lifecycle.
"""

import logging
from typing import Any
from uuid import UUID, uuid4

import psycopg2.errors
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, Transaction
from core import lifecycle
from core.audit import AuditLogger, compute_changes
from core.config import ComplianceConfig
from core.errors import ConcurrencyConflict, NotFound, PreconditionFailed, VerificationRequired
from core.event_bus import EventBus
from core.events import InvoiceIssued, InvoiceSent, InvoiceViewed
from core.integrity import compute_hash, invoice_fields
from core.models import (
    AuditEventType,
    Invoice,
    InvoiceCreate,
    InvoiceItem,
    InvoiceItemCreate,
    InvoiceStatus,
    InvoiceUpdate,
)
from core.services.directory_service import DirectoryService
from core.services.retention_service import RetentionService
from utils.user_context import get_current_actor_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Draft columns an update may touch
_EDITABLE_FIELDS = (
    "client_id", "template_id", "currency", "exchange_rate_to_primary",
    "subtotal", "discount_amount", "tax_amount", "total_amount",
    "issue_date", "due_date", "notes",
)

# Editable columns that cannot be cleared
_REQUIRED_FIELDS = frozenset({
    "currency", "subtotal", "discount_amount", "tax_amount", "total_amount",
})


def _owner_clause(user_id: UUID | None, business_id: UUID | None) -> tuple[str, UUID]:
    if business_id is not None:
        return "business_id = %s", business_id
    return "user_id = %s AND business_id IS NULL", user_id


class InvoiceService:
    """Service for invoice lifecycle operations."""

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

    # =========================================================================
    # READS
    # =========================================================================

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """Invoice if found, None otherwise."""
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (invoice_id,)
        )
        if row is None:
            return None
        return Invoice.model_validate(row)

    def get_items(self, invoice_id: UUID) -> list[InvoiceItem]:
        rows = self.postgres.execute(
            "SELECT * FROM invoice_items WHERE invoice_id = %s ORDER BY sort_order",
            (invoice_id,)
        )
        return [InvoiceItem.model_validate(row) for row in rows]

    def list_for_owner(
        self,
        user_id: UUID | None = None,
        business_id: UUID | None = None,
        status: InvoiceStatus | None = None,
        limit: int = 50,
    ) -> list[Invoice]:
        """
        List an owner's invoices, newest first.

        Raises:
            PreconditionFailed: Neither or both owners given.
        """
        lifecycle.ensure_single_owner(user_id, business_id)
        clause, owner_id = _owner_clause(user_id, business_id)

        params: list[Any] = [owner_id]
        status_clause = ""
        if status is not None:
            status_clause = "AND status = %s"
            params.append(InvoiceStatus(status).value)
        params.append(limit)

        rows = self.postgres.execute(
            f"""
            SELECT * FROM invoices
            WHERE {clause} {status_clause}
            ORDER BY created_at DESC
            LIMIT %s
            """,
            tuple(params)
        )
        return [Invoice.model_validate(row) for row in rows]

    # =========================================================================
    # DRAFTS
    # =========================================================================

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Create a draft invoice with its line items.

        The invoice number is the owner's highest trailing number + 1. Numbering
        is serialized per owner with an advisory lock; a unique index backs it
        up and a collision is retried.

        Raises:
            PreconditionFailed: Ownership invariant or totals invalid.
            ConcurrencyConflict: Number still collided after all retries.
        """
        lifecycle.ensure_single_owner(data.user_id, data.business_id)
        lifecycle.ensure_totals_consistent(
            data.subtotal, data.discount_amount, data.tax_amount, data.total_amount
        )

        retries = self.config.invoice_number_retries
        for attempt in range(1, retries + 1):
            try:
                return self._insert_draft(data)
            except psycopg2.errors.UniqueViolation:
                logger.warning(
                    "Invoice number collision for owner %s (attempt %s/%s)",
                    data.business_id or data.user_id, attempt, retries,
                )

        raise ConcurrencyConflict(
            f"Could not allocate an invoice number after {retries} attempts"
        )

    def _insert_draft(self, data: InvoiceCreate) -> Invoice:
        clause, owner_id = _owner_clause(data.user_id, data.business_id)
        invoice_id = uuid4()
        now = now_utc()

        with self.postgres.transaction() as tx:
            tx.advisory_lock(f"invoice_number:{owner_id}")

            rows = tx.execute(
                f"SELECT invoice_number FROM invoices WHERE {clause}",
                (owner_id,)
            )
            invoice_number = lifecycle.next_invoice_number(
                [r["invoice_number"] for r in rows],
                self.config.invoice_number_prefix,
            )

            row = tx.execute_returning(
                """
                INSERT INTO invoices (
                    id, user_id, business_id, client_id, template_id,
                    invoice_number, status, currency, exchange_rate_to_primary,
                    subtotal, discount_amount, tax_amount, total_amount, amount_paid,
                    issue_date, due_date, notes,
                    created_at, updated_at
                ) VALUES (
                    %s, %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s, %s, %s, %s,
                    %s, %s, %s,
                    %s, %s
                )
                RETURNING *
                """,
                (
                    invoice_id, data.user_id, data.business_id, data.client_id, data.template_id,
                    invoice_number, InvoiceStatus.DRAFT.value, data.currency, data.exchange_rate_to_primary,
                    data.subtotal, data.discount_amount, data.tax_amount, data.total_amount, 0,
                    data.issue_date, data.due_date, data.notes,
                    now, now,
                )
            )[0]
            invoice = Invoice.model_validate(row)
            items = self._replace_items(tx, invoice.id, data.items)

            self.audit.record(
                AuditEventType.INVOICE_CREATED,
                entity_type="invoice",
                entity_id=invoice.id,
                new_state=_state(invoice, items),
                tx=tx,
            )

        return invoice

    def update(self, invoice_id: UUID, data: InvoiceUpdate) -> Invoice:
        """
        Edit a draft. Line items are replaced wholesale when data.items is set.

        Raises:
            NotFound: Invoice doesn't exist.
            ImmutableInvoice: Invoice is no longer a draft.
            PreconditionFailed: Resulting totals are inconsistent.
        """
        updates = {
            key: value
            for key, value in data.model_dump(exclude_unset=True, exclude={"items"}).items()
            if value is not None or key not in _REQUIRED_FIELDS
        }

        with self.postgres.transaction() as tx:
            current = self._lock(tx, invoice_id)
            lifecycle.ensure_editable(current.status)
            before_items = self._items(tx, invoice_id)

            merged = current.model_dump()
            merged.update(updates)
            lifecycle.ensure_totals_consistent(
                merged["subtotal"], merged["discount_amount"],
                merged["tax_amount"], merged["total_amount"],
            )

            fields = [f for f in _EDITABLE_FIELDS if f in updates]
            if fields:
                assignments = ", ".join(f"{f} = %s" for f in fields)
                row = tx.execute_returning(
                    f"""
                    UPDATE invoices SET {assignments}, updated_at = %s
                    WHERE id = %s
                    RETURNING *
                    """,
                    tuple(updates[f] for f in fields) + (now_utc(), invoice_id)
                )[0]
                updated = Invoice.model_validate(row)
            else:
                updated = current

            if data.items is not None:
                after_items = self._replace_items(tx, invoice_id, data.items)
            else:
                after_items = before_items

            before = _state(current, before_items)
            after = _state(updated, after_items)
            self.audit.record(
                AuditEventType.INVOICE_UPDATED,
                entity_type="invoice",
                entity_id=invoice_id,
                previous_state=before,
                new_state=after,
                metadata={"changed_fields": sorted(compute_changes(before, after))},
                tx=tx,
            )

        return updated

    def delete(self, invoice_id: UUID) -> bool:
        """
        Delete a draft and its line items.

        Raises:
            NotFound: Invoice doesn't exist.
            ImmutableInvoice: Invoice is no longer a draft.
        """
        with self.postgres.transaction() as tx:
            current = self._lock(tx, invoice_id)
            lifecycle.ensure_deletable(current.status)
            items = self._items(tx, invoice_id)

            self.audit.record(
                AuditEventType.INVOICE_DELETED,
                entity_type="invoice",
                entity_id=invoice_id,
                previous_state=_state(current, items),
                tx=tx,
            )

            tx.execute("DELETE FROM invoice_items WHERE invoice_id = %s", (invoice_id,))
            tx.execute("DELETE FROM invoices WHERE id = %s", (invoice_id,))

        return True

    # =========================================================================
    # ISSUANCE
    # =========================================================================

    def issue(self, invoice_id: UUID) -> Invoice:
        """
        Seal a draft into an immutable, verifiable invoice.

        Exactly once: a second call fails with InvalidStateTransition and
        never re-hashes. Two racing calls serialize on the row lock; the loser
        sees the issued status and fails the same way.

        Returns:
            The issued invoice (invoice_hash, verification_id, issued_at set)

        Raises:
            NotFound: Invoice doesn't exist.
            InvalidStateTransition: Invoice is not a draft.
            VerificationRequired: Actor's email isn't verified.
            PreconditionFailed: No recipient, or owner/client record missing.
            ConcurrencyConflict: Status compare-and-set lost a race.
        """
        actor_id = get_current_actor_id()

        with self.postgres.transaction() as tx:
            current = self._lock(tx, invoice_id)
            lifecycle.ensure_transition(current.status, InvoiceStatus.ISSUED)

            if not self.directory.is_email_verified(actor_id, tx):
                raise VerificationRequired()

            if current.client_id is None:
                raise PreconditionFailed("An invoice needs a recipient before it can be issued")

            items = self._items(tx, invoice_id)
            issuer = self.directory.issuer_snapshot(current, tx)
            recipient = self.directory.recipient_snapshot(current.client_id, tx)
            template = self.directory.template_snapshot(current.template_id, tx)

            issued_at = now_utc()
            issue_date = current.issue_date or issued_at.date()
            locked_until = self.retention.locked_until(
                issue_date, issuer.jurisdiction, "invoice", tx=tx
            )
            verification_id = uuid4()
            invoice_hash = compute_hash(invoice_fields(
                current.id, current.invoice_number, current.total_amount,
                current.currency, issued_at,
            ))

            row = tx.execute_single(
                """
                UPDATE invoices SET
                    status = %s, issued_at = %s, issued_by = %s, issue_date = %s,
                    issuer_snapshot = %s, recipient_snapshot = %s, template_snapshot = %s,
                    invoice_hash = %s, verification_id = %s,
                    retention_locked_until = %s, updated_at = %s
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (
                    InvoiceStatus.ISSUED.value, issued_at, actor_id, issue_date,
                    Json(issuer.model_dump(mode="json")),
                    Json(recipient.model_dump(mode="json")),
                    Json(template.model_dump(mode="json")),
                    invoice_hash, verification_id,
                    locked_until, issued_at,
                    invoice_id, InvoiceStatus.DRAFT.value,
                )
            )
            if row is None:
                raise ConcurrencyConflict(f"Invoice {invoice_id} changed status during issuance")
            issued = Invoice.model_validate(row)

            self.audit.record(
                AuditEventType.INVOICE_ISSUED,
                entity_type="invoice",
                entity_id=invoice_id,
                actor_id=actor_id,
                previous_state=_state(current, items),
                new_state=_state(issued, items),
                metadata={
                    "invoice_number": issued.invoice_number,
                    "invoice_hash": invoice_hash,
                    "verification_id": str(verification_id),
                    "retention_locked_until": locked_until.isoformat(),
                },
                tx=tx,
            )

        logger.info("Invoice %s issued as %s", invoice_id, issued.invoice_number)
        self.event_bus.publish(InvoiceIssued.create(invoice=issued))
        return issued

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def mark_sent(self, invoice_id: UUID) -> Invoice:
        """Record that the invoice was sent to its recipient."""
        invoice = self._advance(
            invoice_id, InvoiceStatus.SENT, "sent_at", AuditEventType.INVOICE_SENT
        )
        self.event_bus.publish(InvoiceSent.create(invoice=invoice))
        return invoice

    def mark_viewed(self, invoice_id: UUID) -> Invoice:
        """Record that the recipient opened the invoice."""
        invoice = self._advance(
            invoice_id, InvoiceStatus.VIEWED, "viewed_at", AuditEventType.INVOICE_VIEWED
        )
        self.event_bus.publish(InvoiceViewed.create(invoice=invoice))
        return invoice

    def _advance(
        self,
        invoice_id: UUID,
        target: InvoiceStatus,
        timestamp_column: str,
        event_type: AuditEventType,
    ) -> Invoice:
        with self.postgres.transaction() as tx:
            current = self._lock(tx, invoice_id)
            lifecycle.ensure_transition(current.status, target)

            now = now_utc()
            row = tx.execute_single(
                f"""
                UPDATE invoices SET status = %s, {timestamp_column} = %s, updated_at = %s
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (target.value, now, now, invoice_id, current.status.value)
            )
            if row is None:
                raise ConcurrencyConflict(f"Invoice {invoice_id} changed status concurrently")
            updated = Invoice.model_validate(row)

            self.audit.record(
                event_type,
                entity_type="invoice",
                entity_id=invoice_id,
                previous_state={"status": current.status.value},
                new_state={"status": updated.status.value, timestamp_column: now.isoformat()},
                tx=tx,
            )

        return updated

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _lock(self, tx: Transaction, invoice_id: UUID) -> Invoice:
        row = tx.execute_single(
            "SELECT * FROM invoices WHERE id = %s FOR UPDATE",
            (invoice_id,)
        )
        if row is None:
            raise NotFound("invoice", invoice_id)
        return Invoice.model_validate(row)

    def _items(self, tx: Transaction, invoice_id: UUID) -> list[InvoiceItem]:
        rows = tx.execute(
            "SELECT * FROM invoice_items WHERE invoice_id = %s ORDER BY sort_order",
            (invoice_id,)
        )
        return [InvoiceItem.model_validate(row) for row in rows]

    def _replace_items(
        self,
        tx: Transaction,
        invoice_id: UUID,
        items: list[InvoiceItemCreate],
    ) -> list[InvoiceItem]:
        """Delete-all-then-reinsert. Only legal while the invoice is a draft."""
        tx.execute("DELETE FROM invoice_items WHERE invoice_id = %s", (invoice_id,))

        created = []
        now = now_utc()
        for sort_order, item in enumerate(items):
            row = tx.execute_returning(
                """
                INSERT INTO invoice_items (
                    id, invoice_id, description, quantity, unit_price, tax_rate,
                    amount, sort_order, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), invoice_id, item.description, item.quantity, item.unit_price,
                    item.tax_rate, item.amount, sort_order, now,
                )
            )[0]
            created.append(InvoiceItem.model_validate(row))
        return created


def _state(invoice: Invoice, items: list[InvoiceItem]) -> dict[str, Any]:
    """Full invoice capture for audit entries, line items included."""
    state = invoice.model_dump(mode="json")
    state["items"] = [item.model_dump(mode="json") for item in items]
    return state
