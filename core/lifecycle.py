"""
Invoice lifecycle rules.

Every status guard in the system goes through this module. Services lock
the invoice row, then ask here whether the move is allowed; nothing else
compares status strings.

    draft -> issued -> sent -> viewed -> paid
                 \\        \\        \\
                  +--------+--------+--> voided  (+ credit note, shown as "credited")

draft is the only deletable and the only editable status. Nothing returns
to draft and nothing leaves paid or voided.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from core.errors import ImmutableInvoice, InvalidStateTransition, PreconditionFailed
from core.models.invoice import InvoiceStatus

ALLOWED_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.ISSUED}),
    InvoiceStatus.ISSUED: frozenset({
        InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PAID, InvoiceStatus.VOIDED,
    }),
    InvoiceStatus.SENT: frozenset({
        InvoiceStatus.VIEWED, InvoiceStatus.PAID, InvoiceStatus.VOIDED,
    }),
    InvoiceStatus.VIEWED: frozenset({InvoiceStatus.PAID, InvoiceStatus.VOIDED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.VOIDED: frozenset(),
    InvoiceStatus.CREDITED: frozenset(),
}

# Statuses a payment may be recorded against
PAYABLE_STATUSES = frozenset({InvoiceStatus.ISSUED, InvoiceStatus.SENT, InvoiceStatus.VIEWED})

# Verbs used in InvalidStateTransition messages
_TRANSITION_VERBS = {
    InvoiceStatus.ISSUED: "issue",
    InvoiceStatus.SENT: "send",
    InvoiceStatus.VIEWED: "mark viewed",
    InvoiceStatus.PAID: "mark paid",
    InvoiceStatus.VOIDED: "void",
}

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(InvoiceStatus(current), frozenset())


def ensure_transition(current: InvoiceStatus, target: InvoiceStatus) -> None:
    """
    Raise unless current -> target is in the transition table.

    Raises:
        InvalidStateTransition: The move is not allowed.
    """
    if not can_transition(current, target):
        raise InvalidStateTransition(current, _TRANSITION_VERBS.get(target, target.value))


def ensure_editable(current: InvoiceStatus) -> None:
    """Drafts only. Raises ImmutableInvoice otherwise."""
    if InvoiceStatus(current) != InvoiceStatus.DRAFT:
        raise ImmutableInvoice(current, "update")


def ensure_deletable(current: InvoiceStatus) -> None:
    """Drafts only. Raises ImmutableInvoice otherwise."""
    if InvoiceStatus(current) != InvoiceStatus.DRAFT:
        raise ImmutableInvoice(current, "delete")


def ensure_payable(current: InvoiceStatus) -> None:
    """Payments only against issued, sent or viewed invoices."""
    if InvoiceStatus(current) not in PAYABLE_STATUSES:
        raise InvalidStateTransition(current, "record a payment on")


def display_status(status: InvoiceStatus, has_credit_note: bool) -> InvoiceStatus:
    """Voided invoices with a credit note display as credited."""
    if InvoiceStatus(status) == InvoiceStatus.VOIDED and has_credit_note:
        return InvoiceStatus.CREDITED
    return InvoiceStatus(status)


def ensure_single_owner(user_id: UUID | None, business_id: UUID | None) -> None:
    """Exactly one of user / business owns an invoice."""
    if (user_id is None) == (business_id is None):
        raise PreconditionFailed(
            "An invoice must be owned by exactly one of a user or a business"
        )


def ensure_totals_consistent(
    subtotal: Decimal,
    discount_amount: Decimal,
    tax_amount: Decimal,
    total_amount: Decimal,
) -> None:
    """total_amount must equal subtotal - discount_amount + tax_amount."""
    expected = subtotal - discount_amount + tax_amount
    if expected != total_amount:
        raise PreconditionFailed(
            f"total_amount {total_amount} does not equal "
            f"subtotal - discount + tax ({expected})"
        )


def next_invoice_number(existing_numbers: list[str], prefix: str = "INV-") -> str:
    """
    Next sequential number for an owner.

    Parses trailing digits of every existing number and takes max + 1, so
    gaps and hand-edited prefixes are tolerated.
    """
    highest = 0
    for number in existing_numbers:
        match = _TRAILING_DIGITS.search(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:04d}"


def credit_note_number(invoice_number: str) -> str:
    return f"CN-{invoice_number}"


def receipt_number(invoice_number: str, ordinal: int) -> str:
    return f"RCP-{invoice_number}-{ordinal:03d}"


def normalize_void_reason(reason: str | None, min_length: int) -> str:
    """Trimmed reason, or PreconditionFailed if shorter than min_length."""
    cleaned = (reason or "").strip()
    if len(cleaned) < min_length:
        raise PreconditionFailed(
            f"Void reason must be at least {min_length} characters"
        )
    return cleaned


@dataclass(frozen=True)
class PaymentOutcome:
    new_amount_paid: Decimal
    new_status: InvoiceStatus
    fully_paid: bool


def apply_payment(
    total_amount: Decimal,
    amount_paid: Decimal,
    payment_amount: Decimal,
    status: InvoiceStatus,
    allow_overpayment: bool = False,
) -> PaymentOutcome:
    """
    Work out the invoice's state after a payment.

    Status becomes paid once the running total covers total_amount,
    otherwise it is unchanged.

    Raises:
        InvalidStateTransition: Invoice is not payable.
        PreconditionFailed: Amount not positive, or exceeds the balance due
            while overpayment is disallowed.
    """
    ensure_payable(status)

    if payment_amount <= 0:
        raise PreconditionFailed("Payment amount must be greater than zero")

    balance_due = total_amount - amount_paid
    if not allow_overpayment and payment_amount > balance_due:
        raise PreconditionFailed(
            f"Payment of {payment_amount} exceeds balance due of {balance_due}"
        )

    new_amount_paid = amount_paid + payment_amount
    fully_paid = new_amount_paid >= total_amount

    if fully_paid:
        ensure_transition(status, InvoiceStatus.PAID)
        new_status = InvoiceStatus.PAID
    else:
        new_status = InvoiceStatus(status)

    return PaymentOutcome(
        new_amount_paid=new_amount_paid,
        new_status=new_status,
        fully_paid=fully_paid,
    )
