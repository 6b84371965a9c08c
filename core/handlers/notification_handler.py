"""
Notification handlers for ledger events.

Each factory returns a handler that queues an in-app notification for the
invoice's owner. Delivery is fire-and-forget: the event bus logs handler
failures and never propagates them back to the ledger operation.
"""

import logging
from typing import Callable

from core.currency import format_currency_amount
from core.event_bus import EventBus
from core.events import InvoiceIssued, InvoicePaid, InvoiceVoided, PaymentRecorded
from core.models import NotificationCreate

logger = logging.getLogger(__name__)


def _recipient(invoice):
    """Who hears about an invoice: its issuer, else its individual owner."""
    return invoice.issued_by or invoice.user_id


def handle_invoice_issued(notification_service) -> Callable:
    def handler(event: InvoiceIssued):
        invoice = event.invoice
        recipient_id = _recipient(invoice)
        if recipient_id is None:
            logger.debug("No notification recipient for invoice %s", invoice.id)
            return

        notification_service.create(NotificationCreate(
            recipient_id=recipient_id,
            kind="invoice_issued",
            title=f"Invoice {invoice.invoice_number} issued",
            body=(
                f"Invoice {invoice.invoice_number} for "
                f"{format_currency_amount(invoice.total_amount, invoice.currency)} "
                f"is sealed and ready to send."
            ),
            entity_type="invoice",
            entity_id=invoice.id,
        ))

    return handler


def handle_payment_recorded(notification_service) -> Callable:
    """
    Factory that returns a PaymentRecorded handler.

    Args:
        notification_service: NotificationService instance

    Returns:
        Handler callable that queues a "payment received" notification
    """

    def handler(event: PaymentRecorded):
        invoice = event.invoice
        recipient_id = _recipient(invoice)
        if recipient_id is None:
            logger.debug("No notification recipient for invoice %s", invoice.id)
            return

        notification_service.create(NotificationCreate(
            recipient_id=recipient_id,
            kind="payment_recorded",
            title="Payment received",
            body=(
                f"{format_currency_amount(event.payment.amount, invoice.currency)} "
                f"recorded on invoice {invoice.invoice_number}. "
                f"Receipt {event.receipt.receipt_number}."
            ),
            entity_type="payment",
            entity_id=event.payment.id,
        ))

    return handler


def handle_invoice_paid(notification_service) -> Callable:
    def handler(event: InvoicePaid):
        invoice = event.invoice
        recipient_id = _recipient(invoice)
        if recipient_id is None:
            return

        notification_service.create(NotificationCreate(
            recipient_id=recipient_id,
            kind="invoice_paid",
            title=f"Invoice {invoice.invoice_number} paid in full",
            body=f"Invoice {invoice.invoice_number} has been paid in full.",
            entity_type="invoice",
            entity_id=invoice.id,
        ))

    return handler


def handle_invoice_voided(notification_service) -> Callable:
    def handler(event: InvoiceVoided):
        invoice = event.invoice
        recipient_id = _recipient(invoice)
        if recipient_id is None:
            return

        notification_service.create(NotificationCreate(
            recipient_id=recipient_id,
            kind="invoice_voided",
            title=f"Invoice {invoice.invoice_number} voided",
            body=(
                f"Invoice {invoice.invoice_number} was voided. "
                f"Credit note {event.credit_note.credit_note_number} issued."
            ),
            entity_type="credit_note",
            entity_id=event.credit_note.id,
        ))

    return handler


def register_notification_handlers(event_bus: EventBus, notification_service) -> None:
    """Subscribe every notification handler to its event."""
    event_bus.subscribe("InvoiceIssued", handle_invoice_issued(notification_service))
    event_bus.subscribe("PaymentRecorded", handle_payment_recorded(notification_service))
    event_bus.subscribe("InvoicePaid", handle_invoice_paid(notification_service))
    event_bus.subscribe("InvoiceVoided", handle_invoice_voided(notification_service))
