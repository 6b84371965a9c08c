"""Shared test fixtures for the invoice ledger test suite."""

import os
import pytest
from uuid import UUID
from pathlib import Path
from unittest.mock import MagicMock

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from utils.user_context import actor_context, clear_current_actor_id


SCHEMA_PATH = Path(__file__).parent.parent / "db" / "schema.sql"


# =============================================================================
# TEST ACTOR CONSTANTS
# =============================================================================

# Primary test actor - email verified, owns individual invoices
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "testuser@test.local"

# Secondary test actor - email NOT verified
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "testuser-b@test.local"

# Business owned by the primary actor
TEST_BUSINESS_ID = UUID("00000000-0000-0000-0000-0000000000b1")

# Client invoiced in tests
TEST_CLIENT_ID = UUID("00000000-0000-0000-0000-0000000000c1")


# =============================================================================
# ACTOR CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor_id()
    yield
    clear_current_actor_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test actor's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary (unverified) test actor's ID."""
    return TEST_USER_B_ID


@pytest.fixture
def test_business_id() -> UUID:
    return TEST_BUSINESS_ID


@pytest.fixture
def test_client_id() -> UUID:
    return TEST_CLIENT_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Act as the primary (verified) test actor."""
    with actor_context(test_user_id):
        yield test_user_id


@pytest.fixture
def as_test_user_b(test_user_b_id):
    """Act as the secondary (unverified) test actor."""
    with actor_context(test_user_b_id):
        yield test_user_b_id


# =============================================================================
# MODEL FACTORIES - in-memory entities, no DB needed
# =============================================================================


@pytest.fixture
def make_invoice():
    """Build an Invoice; keyword overrides replace the draft defaults."""
    from decimal import Decimal
    from uuid import uuid4

    from core.models import Invoice, InvoiceStatus
    from utils.timezone import now_utc

    def _make(**overrides) -> Invoice:
        now = now_utc()
        data = dict(
            id=uuid4(), user_id=TEST_USER_ID, business_id=None,
            client_id=TEST_CLIENT_ID, template_id=None,
            invoice_number="INV-0001", status=InvoiceStatus.DRAFT, currency="NGN",
            subtotal=Decimal("1000.00"), discount_amount=Decimal("0.00"),
            tax_amount=Decimal("75.00"), total_amount=Decimal("1075.00"),
            amount_paid=Decimal("0.00"),
            issue_date=None, due_date=None, notes=None,
            created_at=now, updated_at=now,
        )
        data.update(overrides)
        return Invoice(**data)

    return _make


@pytest.fixture
def make_issued_invoice(make_invoice):
    """Build a sealed Invoice with snapshots, hash and verification id."""
    from uuid import uuid4

    from core.integrity import compute_hash, invoice_fields
    from core.models import InvoiceStatus, IssuerSnapshot, RecipientSnapshot, TemplateSnapshot
    from utils.timezone import now_utc

    def _make(**overrides):
        issued_at = overrides.pop("issued_at", now_utc())
        invoice = make_invoice(
            status=overrides.pop("status", InvoiceStatus.ISSUED),
            issued_at=issued_at,
            issued_by=TEST_USER_ID,
            issue_date=issued_at.date(),
            issuer_snapshot=IssuerSnapshot(business_name="Ada Designs", jurisdiction="NG"),
            recipient_snapshot=RecipientSnapshot(name="Acme Nigeria Ltd"),
            template_snapshot=TemplateSnapshot(),
            verification_id=uuid4(),
            **overrides,
        )
        invoice_hash = compute_hash(invoice_fields(
            invoice.id, invoice.invoice_number, invoice.total_amount,
            invoice.currency, issued_at,
        ))
        return invoice.model_copy(update={"invoice_hash": invoice_hash})

    return _make


@pytest.fixture
def make_payment():
    from decimal import Decimal
    from uuid import uuid4

    from core.models import Payment
    from utils.timezone import now_utc

    def _make(invoice_id, amount="500.00", **overrides) -> Payment:
        now = now_utc()
        data = dict(
            id=uuid4(), invoice_id=invoice_id, amount=Decimal(amount),
            payment_method="bank_transfer", payment_reference="TRX-1",
            payment_date=now.date(), notes=None, recorded_by=TEST_USER_ID,
            created_at=now,
        )
        data.update(overrides)
        return Payment(**data)

    return _make


@pytest.fixture
def make_receipt():
    from uuid import uuid4

    from core.integrity import compute_hash, receipt_fields
    from core.models import Receipt
    from utils.timezone import now_utc

    def _make(invoice, payment, ordinal=1) -> Receipt:
        now = now_utc()
        number = f"RCP-{invoice.invoice_number}-{ordinal:03d}"
        return Receipt(
            id=uuid4(), receipt_number=number, invoice_id=invoice.id,
            payment_id=payment.id, amount=payment.amount, currency=invoice.currency,
            issued_at=now,
            receipt_hash=compute_hash(receipt_fields(
                number, invoice.id, payment.id, payment.amount, invoice.currency, now
            )),
            verification_id=uuid4(),
            issuer_snapshot=invoice.issuer_snapshot,
            payer_snapshot=invoice.recipient_snapshot,
            created_at=now,
        )

    return _make


@pytest.fixture
def make_credit_note():
    from uuid import uuid4

    from core.integrity import compute_hash, credit_note_fields
    from core.models import CreditNote
    from utils.timezone import now_utc

    def _make(invoice, reason="Client cancelled the order") -> CreditNote:
        now = now_utc()
        number = f"CN-{invoice.invoice_number}"
        return CreditNote(
            id=uuid4(), credit_note_number=number, original_invoice_id=invoice.id,
            amount=invoice.total_amount, currency=invoice.currency, reason=reason,
            issued_by=TEST_USER_ID, issued_at=now, verification_id=uuid4(),
            credit_note_hash=compute_hash(credit_note_fields(
                number, invoice.id, invoice.total_amount, invoice.currency, now
            )),
            created_at=now,
        )

    return _make


# =============================================================================
# MOCK DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def tx():
    """Mock Transaction handed out by mock_db.transaction()."""
    from clients.postgres_client import Transaction

    return MagicMock(spec=Transaction)


@pytest.fixture
def mock_db(tx):
    """Mock PostgresClient whose transaction() yields the tx mock and propagates errors."""
    from clients.postgres_client import PostgresClient

    db = MagicMock(spec=PostgresClient)
    db.transaction.return_value.__enter__.return_value = tx
    db.transaction.return_value.__exit__.return_value = False
    return db


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db_url():
    """Test database URL. Tests needing a real database skip without one."""
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")
    return url


@pytest.fixture(scope="session")
def db(db_url):
    """Session-scoped PostgresClient with the ledger schema applied."""
    from clients.postgres_client import PostgresClient

    client = PostgresClient(db_url)
    client.execute(SCHEMA_PATH.read_text())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Reset ledger tables and seed the directory records tests rely on."""
    db.execute("""
        TRUNCATE
            notifications, audit_logs, receipts, payments, credit_notes,
            invoice_items, invoices, clients, invoice_templates, businesses, profiles
        CASCADE
    """)

    db.execute("""
        INSERT INTO profiles (id, email, email_verified, full_name, business_name, jurisdiction)
        VALUES
            (%s, %s, true, 'Ada Obi', 'Ada Designs', 'NG'),
            (%s, %s, false, 'Bola Ade', NULL, 'NG')
    """, (TEST_USER_ID, TEST_USER_EMAIL, TEST_USER_B_ID, TEST_USER_B_EMAIL))

    db.execute("""
        INSERT INTO businesses (id, owner_id, name, legal_name, tax_id, jurisdiction)
        VALUES (%s, %s, 'Obi Studio', 'Obi Studio Limited', 'TIN-0001', 'NG')
    """, (TEST_BUSINESS_ID, TEST_USER_ID))

    db.execute("""
        INSERT INTO clients (id, user_id, name, email, contact_person)
        VALUES (%s, %s, 'Acme Nigeria Ltd', 'accounts@acme.test', 'Chidi')
    """, (TEST_CLIENT_ID, TEST_USER_ID))

    yield db


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def valkey():
    """Session-scoped ValkeyClient. Skips without TEST_VALKEY_URL."""
    from clients.valkey_client import ValkeyClient

    url = os.getenv("TEST_VALKEY_URL")
    if not url:
        pytest.skip("TEST_VALKEY_URL not set")

    client = ValkeyClient(url)
    yield client
    client.close()
