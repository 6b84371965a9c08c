"""Tests for document content hashing."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from core.integrity import (
    HASH_VERSION,
    HashFields,
    canonical_string,
    compute_hash,
    credit_note_fields,
    hashes_match,
    invoice_fields,
    receipt_fields,
)


INVOICE_ID = UUID("11111111-1111-1111-1111-111111111111")
PAYMENT_ID = UUID("22222222-2222-2222-2222-222222222222")
ISSUED_AT = datetime(2026, 1, 15, 9, 30, 0, 123456, tzinfo=timezone.utc)


@pytest.fixture
def fields():
    return invoice_fields(INVOICE_ID, "INV-0001", Decimal("1075"), "ngn", ISSUED_AT)


class TestCanonicalString:
    """Tests for the canonical hash input."""

    def test_invoice_layout(self, fields):
        assert canonical_string(fields) == (
            "v1|invoice|INV-0001|11111111-1111-1111-1111-111111111111||"
            "1075.00|NGN|2026-01-15T09:30:00.123456+00:00"
        )

    def test_starts_with_version(self, fields):
        assert canonical_string(fields).startswith(f"{HASH_VERSION}|")

    def test_receipt_includes_payment_id(self):
        result = canonical_string(receipt_fields(
            "RCP-INV-0001-001", INVOICE_ID, PAYMENT_ID, Decimal("500.5"), "NGN", ISSUED_AT
        ))
        parts = result.split("|")
        assert parts[1] == "receipt"
        assert parts[4] == str(PAYMENT_ID)
        assert parts[5] == "500.50"

    def test_credit_note_links_original_invoice(self):
        result = canonical_string(credit_note_fields(
            "CN-INV-0001", INVOICE_ID, Decimal("1075.00"), "NGN", ISSUED_AT
        ))
        parts = result.split("|")
        assert parts[1] == "credit_note"
        assert parts[3] == str(INVOICE_ID)
        assert parts[4] == ""

    def test_non_utc_timestamp_normalized(self, fields):
        """Same instant in another offset hashes identically."""
        lagos = ISSUED_AT.astimezone(timezone(timedelta(hours=1)))
        assert canonical_string(replace(fields, issued_at=lagos)) == canonical_string(fields)

    def test_naive_timestamp_rejected(self, fields):
        with pytest.raises(ValueError, match="naive"):
            canonical_string(replace(fields, issued_at=datetime(2026, 1, 15, 9, 30)))

    def test_unknown_document_type_rejected(self, fields):
        with pytest.raises(ValueError, match="Unknown document type"):
            canonical_string(replace(fields, document_type="quote"))


class TestComputeHash:
    """Tests for compute_hash()."""

    def test_is_sha256_hex(self, fields):
        digest = compute_hash(fields)
        assert len(digest) == 64
        int(digest, 16)

    def test_deterministic(self, fields):
        assert compute_hash(fields) == compute_hash(fields)

    def test_amount_formatting_is_stable(self, fields):
        """1075, 1075.0 and 1075.00 are the same amount."""
        a = compute_hash(replace(fields, amount=Decimal("1075")))
        b = compute_hash(replace(fields, amount=Decimal("1075.0")))
        c = compute_hash(replace(fields, amount=Decimal("1075.00")))
        assert a == b == c

    @pytest.mark.parametrize("change", [
        {"number": "INV-0002"},
        {"invoice_id": UUID("33333333-3333-3333-3333-333333333333")},
        {"payment_id": PAYMENT_ID},
        {"amount": Decimal("1075.01")},
        {"currency": "USD"},
        {"issued_at": ISSUED_AT + timedelta(microseconds=1)},
        {"document_type": "credit_note"},
    ])
    def test_any_field_change_changes_digest(self, fields, change):
        assert compute_hash(replace(fields, **change)) != compute_hash(fields)


class TestHashesMatch:
    """Tests for hashes_match()."""

    def test_equal(self, fields):
        digest = compute_hash(fields)
        assert hashes_match(digest, digest) is True

    def test_case_insensitive(self, fields):
        digest = compute_hash(fields)
        assert hashes_match(digest.upper(), digest) is True

    def test_different(self, fields):
        assert hashes_match(compute_hash(fields), "0" * 64) is False

    @pytest.mark.parametrize("expected,actual", [(None, "abc"), ("abc", None), ("", "")])
    def test_missing_never_matches(self, expected, actual):
        assert hashes_match(expected, actual) is False


class TestHashFields:

    def test_frozen(self, fields):
        with pytest.raises(Exception):
            fields.number = "INV-9999"

    def test_builders_set_document_type(self):
        assert isinstance(invoice_fields(INVOICE_ID, "A", Decimal("1"), "NGN", ISSUED_AT), HashFields)
        assert invoice_fields(INVOICE_ID, "A", Decimal("1"), "NGN", ISSUED_AT).payment_id is None
