"""API test fixtures - TestClient over the full app with spec'd service mocks.

Routes, middleware and error mapping are exercised for real; the services
behind them are Mock(spec=...) so each test states exactly what the ledger
returns or raises. test_flow.py runs the same app against the database.
"""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from core.audit import AuditLogger
from core.services.credit_note_service import CreditNoteService
from core.services.export_service import ExportService
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from core.services.report_service import ReportService
from core.services.retention_service import RetentionService
from core.services.verification_service import VerificationService


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services():
    return {
        "audit": Mock(spec=AuditLogger),
        "invoice": Mock(spec=InvoiceService),
        "payment": Mock(spec=PaymentService),
        "credit_note": Mock(spec=CreditNoteService),
        "retention": Mock(spec=RetentionService),
        "report": Mock(spec=ReportService),
        "verification": Mock(spec=VerificationService),
        "export": Mock(spec=ExportService),
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """Ledger app with actor middleware, error handlers and all routes."""
    return create_app(services)


@pytest.fixture
def client(app, test_user_id):
    """Client acting as the primary test user."""
    return TestClient(app, raise_server_exceptions=False, headers={"X-Actor-Id": str(test_user_id)})


@pytest.fixture
def anonymous_client(app):
    """Client without an actor header."""
    return TestClient(app, raise_server_exceptions=False)
