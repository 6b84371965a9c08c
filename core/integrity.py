"""
Content hashing for sealed financial documents.

Invoices, credit notes and receipts each carry a SHA-256 digest over a
canonical, pipe-delimited string of their frozen identity fields. The same
function sets the hash at sealing time and recomputes it during public
verification, so the canonical form below is a wire contract.

Canonical form (version v1), fields in this exact order:

    v1|document_type|number|invoice_id|payment_id|amount|currency|issued_at

- document_type: "invoice", "credit_note" or "receipt"
- invoice_id: the linked invoice (an invoice links to itself)
- payment_id: empty unless the document is a receipt
- amount: fixed two decimal places
- currency: upper-case ISO 4217 code
- issued_at: UTC, ISO 8601 with microseconds

Changing the order or formatting of any field requires a new HASH_VERSION.
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from utils.timezone import to_utc

HASH_VERSION = "v1"

DOCUMENT_TYPES = frozenset({"invoice", "credit_note", "receipt"})


@dataclass(frozen=True)
class HashFields:
    """The frozen identity fields of a sealed document."""

    document_type: str
    number: str
    invoice_id: UUID | None
    payment_id: UUID | None
    amount: Decimal
    currency: str
    issued_at: datetime


def canonical_string(fields: HashFields) -> str:
    """
    Build the canonical hash input.

    Raises:
        ValueError: On an unknown document type or a naive issued_at.
    """
    if fields.document_type not in DOCUMENT_TYPES:
        raise ValueError(f"Unknown document type '{fields.document_type}'")

    issued_at = to_utc(fields.issued_at).isoformat(timespec="microseconds")
    amount = format(Decimal(fields.amount), ".2f")

    return "|".join([
        HASH_VERSION,
        fields.document_type,
        fields.number,
        str(fields.invoice_id) if fields.invoice_id else "",
        str(fields.payment_id) if fields.payment_id else "",
        amount,
        fields.currency.upper(),
        issued_at,
    ])


def compute_hash(fields: HashFields) -> str:
    """SHA-256 hex digest (64 chars) of the canonical string."""
    return hashlib.sha256(canonical_string(fields).encode("utf-8")).hexdigest()


def hashes_match(expected: str | None, actual: str | None) -> bool:
    """Constant-time comparison. A missing hash never matches."""
    if not expected or not actual:
        return False
    return hmac.compare_digest(expected.lower(), actual.lower())


def invoice_fields(
    invoice_id: UUID,
    invoice_number: str,
    total_amount: Decimal,
    currency: str,
    issued_at: datetime,
) -> HashFields:
    return HashFields(
        document_type="invoice",
        number=invoice_number,
        invoice_id=invoice_id,
        payment_id=None,
        amount=total_amount,
        currency=currency,
        issued_at=issued_at,
    )


def credit_note_fields(
    credit_note_number: str,
    original_invoice_id: UUID,
    amount: Decimal,
    currency: str,
    issued_at: datetime,
) -> HashFields:
    return HashFields(
        document_type="credit_note",
        number=credit_note_number,
        invoice_id=original_invoice_id,
        payment_id=None,
        amount=amount,
        currency=currency,
        issued_at=issued_at,
    )


def receipt_fields(
    receipt_number: str,
    invoice_id: UUID,
    payment_id: UUID,
    amount: Decimal,
    currency: str,
    issued_at: datetime,
) -> HashFields:
    return HashFields(
        document_type="receipt",
        number=receipt_number,
        invoice_id=invoice_id,
        payment_id=payment_id,
        amount=amount,
        currency=currency,
        issued_at=issued_at,
    )
