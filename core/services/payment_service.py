"""
Payment recorder.

Records externally-settled payments against issued invoices. Each payment:
- locks the invoice row so concurrent recordings serialize
- increments amount_paid in SQL (never read-modify-write in Python)
- promotes the invoice to paid once amount_paid covers total_amount
- gets a hashed, publicly verifiable receipt
- is audited in the same transaction

Payments and receipts are append-only.
"""

import logging
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, Transaction
from core import lifecycle
from core.audit import AuditLogger
from core.config import ComplianceConfig
from core.errors import ConcurrencyConflict, NotFound, PreconditionFailed
from core.event_bus import EventBus
from core.events import InvoicePaid, PaymentRecorded
from core.integrity import compute_hash, receipt_fields
from core.models import (
    AuditEventType,
    Invoice,
    Payment,
    PaymentCreate,
    PaymentResult,
    Receipt,
    Reconciliation,
)
from core.services.directory_service import DirectoryService
from core.services.retention_service import RetentionService
from utils.user_context import get_current_actor_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for recording payments and issuing receipts."""

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

    def record_payment(self, invoice_id: UUID, data: PaymentCreate) -> PaymentResult:
        """
        Record a payment against an issued, sent or viewed invoice.

        Args:
            invoice_id: Invoice being paid
            data: Amount and optional method/reference/date/notes

        Returns:
            PaymentResult with the payment, its receipt and the invoice's new status

        Raises:
            NotFound: Invoice doesn't exist.
            InvalidStateTransition: Invoice is draft, paid or voided.
            PreconditionFailed: Amount invalid or exceeds the balance due.
        """
        actor_id = get_current_actor_id()

        if data.amount > self.config.max_payment_amount:
            raise PreconditionFailed(
                f"Payment amount exceeds the maximum of {self.config.max_payment_amount}"
            )

        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                "SELECT * FROM invoices WHERE id = %s FOR UPDATE",
                (invoice_id,)
            )
            if row is None:
                raise NotFound("invoice", invoice_id)
            current = Invoice.model_validate(row)

            outcome = lifecycle.apply_payment(
                current.total_amount,
                current.amount_paid,
                data.amount,
                current.status,
                allow_overpayment=self.config.allow_overpayment,
            )

            now = now_utc()
            payment_date = data.payment_date or now.date()
            jurisdiction = self.directory.jurisdiction_for(current, tx=tx)

            payment = Payment.model_validate(tx.execute_returning(
                """
                INSERT INTO payments (
                    id, invoice_id, amount, payment_method, payment_reference,
                    payment_date, notes, recorded_by, retention_locked_until, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), invoice_id, data.amount, data.payment_method,
                    data.payment_reference, payment_date, data.notes, actor_id,
                    self.retention.locked_until(payment_date, jurisdiction, "payment", tx=tx),
                    now,
                )
            )[0])

            row = tx.execute_single(
                """
                UPDATE invoices SET
                    amount_paid = amount_paid + %s,
                    status = %s,
                    paid_at = CASE WHEN %s THEN %s ELSE paid_at END,
                    updated_at = %s
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (
                    data.amount, outcome.new_status.value,
                    outcome.fully_paid, now, now,
                    invoice_id, current.status.value,
                )
            )
            if row is None:
                raise ConcurrencyConflict(f"Invoice {invoice_id} changed status during payment")
            updated = Invoice.model_validate(row)

            receipt = self._issue_receipt(tx, updated, payment, jurisdiction)

            self.audit.record(
                AuditEventType.PAYMENT_RECORDED,
                entity_type="payment",
                entity_id=payment.id,
                actor_id=actor_id,
                previous_state={
                    "status": current.status.value,
                    "amount_paid": str(current.amount_paid),
                },
                new_state={
                    "status": updated.status.value,
                    "amount_paid": str(updated.amount_paid),
                    "payment_amount": str(payment.amount),
                },
                metadata={
                    "invoice_id": str(invoice_id),
                    "payment_method": payment.payment_method,
                    "fully_paid": outcome.fully_paid,
                },
                tx=tx,
            )
            self.audit.record(
                AuditEventType.RECEIPT_ISSUED,
                entity_type="receipt",
                entity_id=receipt.id,
                actor_id=actor_id,
                new_state=receipt.model_dump(mode="json"),
                metadata={"invoice_id": str(invoice_id), "payment_id": str(payment.id)},
                tx=tx,
            )

        logger.info(
            "Payment %s recorded on invoice %s (%s %s, status=%s)",
            payment.id, invoice_id, payment.amount, updated.currency, updated.status.value,
        )

        self.event_bus.publish(PaymentRecorded.create(
            invoice=updated, payment=payment, receipt=receipt
        ))
        if outcome.fully_paid:
            self.event_bus.publish(InvoicePaid.create(invoice=updated))

        return PaymentResult(
            payment=payment,
            invoice_status=updated.status,
            amount_paid=updated.amount_paid,
            balance_due=updated.balance_due,
            receipt=receipt,
        )

    def _issue_receipt(
        self,
        tx: Transaction,
        invoice: Invoice,
        payment: Payment,
        jurisdiction: str | None,
    ) -> Receipt:
        """Receipt numbered by the payment's ordinal on the (locked) invoice."""
        ordinal = tx.execute_scalar(
            "SELECT COUNT(*) FROM payments WHERE invoice_id = %s",
            (invoice.id,)
        )
        number = lifecycle.receipt_number(invoice.invoice_number, ordinal)
        issued_at = now_utc()
        receipt_hash = compute_hash(receipt_fields(
            number, invoice.id, payment.id, payment.amount, invoice.currency, issued_at
        ))

        row = tx.execute_returning(
            """
            INSERT INTO receipts (
                id, receipt_number, invoice_id, payment_id, amount, currency,
                issued_at, receipt_hash, verification_id,
                issuer_snapshot, payer_snapshot, retention_locked_until, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                uuid4(), number, invoice.id, payment.id, payment.amount, invoice.currency,
                issued_at, receipt_hash, uuid4(),
                Json(invoice.issuer_snapshot.model_dump(mode="json")) if invoice.issuer_snapshot else None,
                Json(invoice.recipient_snapshot.model_dump(mode="json")) if invoice.recipient_snapshot else None,
                self.retention.locked_until(issued_at.date(), jurisdiction, "receipt", tx=tx),
                issued_at,
            )
        )[0]
        return Receipt.model_validate(row)

    def list_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        """Payments on an invoice, oldest first."""
        rows = self.postgres.execute(
            "SELECT * FROM payments WHERE invoice_id = %s ORDER BY created_at, id",
            (invoice_id,)
        )
        return [Payment.model_validate(row) for row in rows]

    def list_receipts(self, invoice_id: UUID) -> list[Receipt]:
        rows = self.postgres.execute(
            "SELECT * FROM receipts WHERE invoice_id = %s ORDER BY receipt_number",
            (invoice_id,)
        )
        return [Receipt.model_validate(row) for row in rows]

    def get_receipt(self, receipt_id: UUID) -> Receipt | None:
        row = self.postgres.execute_single(
            "SELECT * FROM receipts WHERE id = %s",
            (receipt_id,)
        )
        if row is None:
            return None
        return Receipt.model_validate(row)

    def reconcile(self, invoice_id: UUID) -> Reconciliation:
        """
        Compare the invoice's running amount_paid with the sum of its payments.

        Raises:
            NotFound: Invoice doesn't exist.
        """
        row = self.postgres.execute_single(
            """
            SELECT i.amount_paid,
                   COALESCE(SUM(p.amount), 0) AS payments_total,
                   COUNT(p.id) AS payment_count
            FROM invoices i
            LEFT JOIN payments p ON p.invoice_id = i.id
            WHERE i.id = %s
            GROUP BY i.id, i.amount_paid
            """,
            (invoice_id,)
        )
        if row is None:
            raise NotFound("invoice", invoice_id)

        result = Reconciliation(invoice_id=invoice_id, **row)
        if not result.balanced:
            logger.error(
                "Invoice %s amount_paid %s disagrees with payments total %s",
                invoice_id, result.amount_paid, result.payments_total,
            )
        return result
