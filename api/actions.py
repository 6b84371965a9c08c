"""POST /api/actions - unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.errors import NotFound
from core.models import (
    ExportRequest,
    InvoiceCreate,
    InvoiceUpdate,
    PaymentCreate,
    RetentionPolicyUpsert,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "invoice": InvoiceHandler(
            services["invoice"], services["payment"], services["credit_note"]
        ),
        "retention": RetentionHandler(services["retention"]),
        "export": ExportHandler(services["export"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(result, request).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


def _require_id(data: dict, key: str = "id", entity_type: str = "invoice") -> UUID:
    """Pop an id from the payload; absent or malformed ids are NotFound."""
    raw = data.pop(key, None)
    try:
        return UUID(str(raw))
    except ValueError:
        raise NotFound(entity_type, raw) from None


class InvoiceHandler:
    ALLOWED_ACTIONS = {
        "create", "update", "delete", "issue", "send", "view", "record_payment", "void",
    }

    def __init__(self, invoice_service, payment_service, credit_note_service):
        self.invoice_service = invoice_service
        self.payment_service = payment_service
        self.credit_note_service = credit_note_service

    def _handle_create(self, data: dict):
        invoice = self.invoice_service.create(InvoiceCreate(**data))
        return invoice.model_dump(mode="json")

    def _handle_update(self, data: dict):
        invoice_id = _require_id(data)
        invoice = self.invoice_service.update(invoice_id, InvoiceUpdate(**data))
        return invoice.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        self.invoice_service.delete(_require_id(data))
        return {"deleted": True}

    def _handle_issue(self, data: dict):
        invoice = self.invoice_service.issue(_require_id(data))
        return {
            "id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "verification_id": str(invoice.verification_id),
            "issued_at": invoice.issued_at.isoformat(),
            "invoice_hash": invoice.invoice_hash,
        }

    def _handle_send(self, data: dict):
        invoice = self.invoice_service.mark_sent(_require_id(data))
        return invoice.model_dump(mode="json")

    def _handle_view(self, data: dict):
        invoice = self.invoice_service.mark_viewed(_require_id(data))
        return invoice.model_dump(mode="json")

    def _handle_record_payment(self, data: dict):
        invoice_id = _require_id(data)
        result = self.payment_service.record_payment(invoice_id, PaymentCreate(**data))
        return result.model_dump(mode="json")

    def _handle_void(self, data: dict):
        invoice_id = _require_id(data)
        credit_note = self.credit_note_service.void(invoice_id, data.get("reason", ""))
        return {"credit_note": credit_note.model_dump(mode="json")}


class RetentionHandler:
    ALLOWED_ACTIONS = {"upsert"}

    def __init__(self, service):
        self.service = service

    def _handle_upsert(self, data: dict):
        policy = self.service.upsert_policy(RetentionPolicyUpsert(**data))
        return policy.model_dump(mode="json")


class ExportHandler:
    ALLOWED_ACTIONS = {"records"}

    def __init__(self, service):
        self.service = service

    def _handle_records(self, data: dict):
        export = self.service.export_records(ExportRequest(**data))
        return {
            **export.model_dump(mode="json"),
            "record_count": export.record_count,
            "chains_valid": export.chains_valid,
        }
