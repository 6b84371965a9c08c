"""Fixtures for ledger service tests.

Two flavours: spec'd mocks of every collaborator for guard and ordering
tests, and real services wired to the test database for end-to-end flows.
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from core.audit import AuditLogger
from core.event_bus import EventBus
from core.services.directory_service import DirectoryService
from core.services.retention_service import RetentionService


# =============================================================================
# MOCK COLLABORATORS
# =============================================================================


@pytest.fixture
def mock_audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def mock_bus():
    return Mock(spec=EventBus)


@pytest.fixture
def mock_directory():
    directory = Mock(spec=DirectoryService)
    directory.jurisdiction_for.return_value = "NG"
    return directory


@pytest.fixture
def mock_retention():
    from datetime import date

    retention = Mock(spec=RetentionService)
    retention.locked_until.return_value = date(2033, 1, 1)
    return retention


# =============================================================================
# REAL SERVICES (DB)
# =============================================================================


@pytest.fixture
def audit(clean_db):
    return AuditLogger(clean_db)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def retention_service(clean_db, audit):
    return RetentionService(clean_db, audit)


@pytest.fixture
def directory_service(clean_db):
    return DirectoryService(clean_db)


@pytest.fixture
def invoice_service(clean_db, audit, event_bus, directory_service, retention_service):
    from core.services.invoice_service import InvoiceService

    return InvoiceService(clean_db, audit, event_bus, directory_service, retention_service)


@pytest.fixture
def payment_service(clean_db, audit, event_bus, directory_service, retention_service):
    from core.services.payment_service import PaymentService

    return PaymentService(clean_db, audit, event_bus, directory_service, retention_service)


@pytest.fixture
def credit_note_service(clean_db, audit, event_bus, directory_service, retention_service):
    from core.services.credit_note_service import CreditNoteService

    return CreditNoteService(clean_db, audit, event_bus, directory_service, retention_service)


@pytest.fixture
def verification_service(clean_db, audit):
    from core.services.verification_service import VerificationService

    return VerificationService(clean_db, audit)


@pytest.fixture
def draft_data(test_user_id, test_client_id):
    """InvoiceCreate for a 1,000 + 75 VAT naira invoice with two line items."""
    from core.models import InvoiceCreate, InvoiceItemCreate

    return InvoiceCreate(
        user_id=test_user_id,
        client_id=test_client_id,
        currency="NGN",
        subtotal=Decimal("1000.00"),
        tax_amount=Decimal("75.00"),
        total_amount=Decimal("1075.00"),
        items=[
            InvoiceItemCreate(description="Logo design", quantity=Decimal("1"), unit_price=Decimal("600")),
            InvoiceItemCreate(description="Brand guide", quantity=Decimal("2"), unit_price=Decimal("200")),
        ],
    )


@pytest.fixture
def draft(as_test_user, invoice_service, draft_data):
    """A persisted draft owned by the primary test actor."""
    return invoice_service.create(draft_data)


@pytest.fixture
def issued(as_test_user, invoice_service, draft):
    """A persisted, issued invoice."""
    return invoice_service.issue(draft.id)


@pytest.fixture
def export_service(clean_db, audit):
    from core.services.export_service import ExportService

    return ExportService(clean_db, audit)
