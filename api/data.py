"""GET /api/data - unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core import lifecycle
from core.errors import NotFound


VALID_TYPES = {
    "invoices", "credit_notes", "payments", "audit", "activity",
    "verification", "retention", "summary",
}


def _parse_id(value: str, entity_type: str) -> UUID:
    """Parse an id; a malformed one is NotFound, same as an unknown one."""
    try:
        return UUID(value)
    except ValueError:
        raise NotFound(entity_type, value) from None


def _optional_id(value: str | None, entity_type: str) -> UUID | None:
    return _parse_id(value, entity_type) if value else None


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]
    payment_svc = services["payment"]
    credit_note_svc = services["credit_note"]
    retention_svc = services["retention"]
    report_svc = services["report"]
    verification_svc = services["verification"]
    audit = services["audit"]

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        user_id: str | None = Query(None),
        business_id: str | None = Query(None),
        invoice_id: str | None = Query(None),
        actor_id: str | None = Query(None),
        entity_type: str | None = Query(None),
        status: str | None = Query(None),
        currency: str = Query("NGN", min_length=3, max_length=3),
        include: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        includes = set(include.split(",")) if include else set()
        owner = {
            "user_id": _optional_id(user_id, "profile"),
            "business_id": _optional_id(business_id, "business"),
        }

        if type == "invoices":
            data = _handle_invoices(
                invoice_svc, payment_svc, credit_note_svc, id, owner, status, includes, limit
            )
        elif type == "credit_notes":
            data = _handle_credit_notes(credit_note_svc, id, invoice_id, owner, limit)
        elif type == "payments":
            data = _handle_payments(payment_svc, invoice_id, includes)
        elif type == "audit":
            data = _handle_audit(audit, entity_type, id, includes)
        elif type == "activity":
            entries = audit.get_actor_activity(_optional_id(actor_id, "actor"), limit=limit)
            data = [e.model_dump(mode="json") for e in entries]
        elif type == "verification":
            data = _handle_verification(verification_svc, id)
        elif type == "retention":
            data = [p.model_dump(mode="json") for p in retention_svc.list_policies()]
        else:
            data = report_svc.revenue_summary(currency, **owner).model_dump(mode="json")

        return success_response(data, request).model_dump(mode="json")

    return router


def _handle_invoices(invoice_svc, payment_svc, credit_note_svc, id, owner, status, includes, limit):
    if id:
        invoice = invoice_svc.get_by_id(_parse_id(id, "invoice"))
        if invoice is None:
            raise NotFound("invoice", id)

        credit_note = credit_note_svc.get_for_invoice(invoice.id)
        data = invoice.model_dump(mode="json")
        data["display_status"] = lifecycle.display_status(
            invoice.status, credit_note is not None
        ).value
        data["balance_due"] = str(invoice.balance_due)

        if "items" in includes:
            data["items"] = [i.model_dump(mode="json") for i in invoice_svc.get_items(invoice.id)]
        if "payments" in includes:
            data["payments"] = [p.model_dump(mode="json") for p in payment_svc.list_for_invoice(invoice.id)]
        if "credit_note" in includes:
            data["credit_note"] = credit_note.model_dump(mode="json") if credit_note else None

        return data

    invoices = invoice_svc.list_for_owner(status=status, limit=limit, **owner)
    return [i.model_dump(mode="json") for i in invoices]


def _handle_credit_notes(credit_note_svc, id, invoice_id, owner, limit):
    if id:
        credit_note = credit_note_svc.get_by_id(_parse_id(id, "credit_note"))
        if credit_note is None:
            raise NotFound("credit_note", id)
        return credit_note.model_dump(mode="json")

    if invoice_id:
        credit_note = credit_note_svc.get_for_invoice(_parse_id(invoice_id, "invoice"))
        return credit_note.model_dump(mode="json") if credit_note else None

    credit_notes = credit_note_svc.list_for_owner(limit=limit, **owner)
    return [c.model_dump(mode="json") for c in credit_notes]


def _handle_payments(payment_svc, invoice_id, includes):
    if not invoice_id:
        raise ValueError("'invoice_id' is required for payments")

    parsed_id = _parse_id(invoice_id, "invoice")
    payments = payment_svc.list_for_invoice(parsed_id)
    data = {"payments": [p.model_dump(mode="json") for p in payments]}

    if "receipts" in includes:
        data["receipts"] = [r.model_dump(mode="json") for r in payment_svc.list_receipts(parsed_id)]
    if "reconciliation" in includes:
        reconciliation = payment_svc.reconcile(parsed_id)
        data["reconciliation"] = {
            **reconciliation.model_dump(mode="json"),
            "balanced": reconciliation.balanced,
        }

    return data


def _handle_audit(audit, entity_type, id, includes):
    if not entity_type or not id:
        raise ValueError("'entity_type' and 'id' are required for audit")

    entity_id = _parse_id(id, entity_type)
    history = audit.get_entity_history(entity_type, entity_id)
    data = {"entries": [e.model_dump(mode="json") for e in history]}

    if "chain" in includes:
        data["chain"] = audit.verify_chain(entity_type, entity_id).model_dump(mode="json")

    return data


def _handle_verification(verification_svc, id):
    """Authenticated integrity check: specific errors instead of the public generic answer."""
    if not id:
        raise ValueError("'id' (verification id) is required for verification")

    return verification_svc.check(_parse_id(id, "document")).model_dump(mode="json")
