"""Tests for domain event models."""

from dataclasses import FrozenInstanceError
from datetime import timezone
from uuid import UUID

import pytest

from core.events import (
    LedgerEvent,
    InvoiceEvent, InvoiceIssued, InvoiceSent, InvoiceViewed, InvoicePaid, InvoiceVoided,
    PaymentRecorded,
)


class TestEventBase:

    def test_event_id_is_uuid_string(self, make_issued_invoice):
        event = InvoiceIssued.create(invoice=make_issued_invoice())
        UUID(event.event_id)

    def test_occurred_at_is_utc(self, make_issued_invoice):
        event = InvoiceIssued.create(invoice=make_issued_invoice())
        assert event.occurred_at.tzinfo == timezone.utc

    def test_event_ids_unique(self, make_issued_invoice):
        invoice = make_issued_invoice()
        assert InvoiceSent.create(invoice=invoice).event_id != InvoiceSent.create(invoice=invoice).event_id

    def test_frozen(self, make_issued_invoice):
        event = InvoicePaid.create(invoice=make_issued_invoice())
        with pytest.raises(FrozenInstanceError):
            event.invoice = None


class TestHierarchy:

    @pytest.mark.parametrize("event_cls", [InvoiceIssued, InvoiceSent, InvoiceViewed, InvoicePaid])
    def test_invoice_events(self, event_cls, make_issued_invoice):
        event = event_cls.create(invoice=make_issued_invoice())
        assert isinstance(event, InvoiceEvent)
        assert isinstance(event, LedgerEvent)

    def test_payment_recorded_is_not_invoice_event(self, make_issued_invoice, make_payment, make_receipt):
        invoice = make_issued_invoice()
        payment = make_payment(invoice.id)
        event = PaymentRecorded.create(invoice=invoice, payment=payment, receipt=make_receipt(invoice, payment))

        assert isinstance(event, LedgerEvent)
        assert not isinstance(event, InvoiceEvent)
        assert event.payment is payment


class TestPayloads:

    def test_voided_carries_credit_note(self, make_issued_invoice, make_credit_note):
        invoice = make_issued_invoice()
        credit_note = make_credit_note(invoice)

        event = InvoiceVoided.create(invoice=invoice, credit_note=credit_note)

        assert event.invoice is invoice
        assert event.credit_note.amount == invoice.total_amount
