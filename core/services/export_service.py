"""
Compliance records export.

One owner's invoices with their frozen snapshots and line items, the payments
and receipts against them, their credit notes, and every audit entry on those
entities with the recomputed state of each hash chain. The export itself is
audited as DATA_EXPORTED in the same transaction that reads the records; if
that entry cannot be written, no export is returned.
"""

import hashlib
import logging
from typing import Any
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, Transaction
from core import lifecycle
from core.audit import AuditLogger, canonical_json, verify_entries
from core.models import (
    AuditEventType,
    AuditLogEntry,
    ChainVerification,
    ComplianceExport,
    CreditNote,
    ExportRequest,
    Invoice,
    InvoiceItem,
    Payment,
    Receipt,
)
from utils.timezone import now_utc
from utils.user_context import get_current_actor_id

logger = logging.getLogger(__name__)


def export_hash(sections: dict[str, list[Any]]) -> str:
    """SHA-256 over the canonical JSON of the exported sections."""
    return hashlib.sha256(canonical_json(sections).encode("utf-8")).hexdigest()


class ExportService:
    """Builds audited compliance exports."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def export_records(self, request: ExportRequest) -> ComplianceExport:
        """
        Export an owner's records.

        Raises:
            PreconditionFailed: Neither or both owners given.
            AuditWriteError: DATA_EXPORTED entry could not be written.
        """
        lifecycle.ensure_single_owner(request.user_id, request.business_id)
        actor_id = get_current_actor_id()
        export_id = uuid4()

        with self.postgres.transaction() as tx:
            invoices = self._invoices(tx, request)
            invoice_ids = [invoice.id for invoice in invoices]
            items = self._items(tx, invoice_ids)

            payments = [Payment.model_validate(row) for row in tx.execute(
                "SELECT * FROM payments WHERE invoice_id = ANY(%s::uuid[]) ORDER BY created_at, id",
                (invoice_ids,)
            )]
            receipts = [Receipt.model_validate(row) for row in tx.execute(
                "SELECT * FROM receipts WHERE invoice_id = ANY(%s::uuid[]) ORDER BY receipt_number",
                (invoice_ids,)
            )]
            credit_notes = [CreditNote.model_validate(row) for row in tx.execute(
                "SELECT * FROM credit_notes WHERE original_invoice_id = ANY(%s::uuid[]) ORDER BY issued_at",
                (invoice_ids,)
            )]

            entity_ids = (
                invoice_ids
                + [p.id for p in payments]
                + [r.id for r in receipts]
                + [c.id for c in credit_notes]
            )
            audit_entries = [AuditLogEntry.model_validate(row) for row in tx.execute(
                "SELECT * FROM audit_logs WHERE entity_id = ANY(%s::uuid[]) ORDER BY seq",
                (entity_ids,)
            )]

            sections = {
                "invoices": [
                    {**invoice.model_dump(mode="json"),
                     "items": [i.model_dump(mode="json") for i in items.get(invoice.id, [])]}
                    for invoice in invoices
                ],
                "payments": [p.model_dump(mode="json") for p in payments],
                "receipts": [r.model_dump(mode="json") for r in receipts],
                "credit_notes": [c.model_dump(mode="json") for c in credit_notes],
                "audit_entries": [e.model_dump(mode="json") for e in audit_entries],
            }
            integrity_hash = export_hash(sections)
            chains = _verify_chains(audit_entries)
            generated_at = now_utc()

            self.audit.record(
                AuditEventType.DATA_EXPORTED,
                entity_type="export",
                entity_id=export_id,
                actor_id=actor_id,
                metadata={
                    "export_id": str(export_id),
                    "user_id": str(request.user_id) if request.user_id else None,
                    "business_id": str(request.business_id) if request.business_id else None,
                    "date_range": {
                        "from": request.date_from.isoformat() if request.date_from else None,
                        "to": request.date_to.isoformat() if request.date_to else None,
                    },
                    "record_counts": {name: len(rows) for name, rows in sections.items()},
                    "broken_chains": sum(1 for chain in chains if not chain.valid),
                    "integrity_hash": integrity_hash,
                },
                tx=tx,
            )

        export = ComplianceExport(
            export_id=export_id,
            generated_at=generated_at,
            generated_by=actor_id,
            user_id=request.user_id,
            business_id=request.business_id,
            date_from=request.date_from,
            date_to=request.date_to,
            invoices=sections["invoices"],
            payments=payments,
            receipts=receipts,
            credit_notes=credit_notes,
            audit_entries=audit_entries,
            chains=chains,
            integrity_hash=integrity_hash,
        )
        logger.info(
            "Export %s by %s: %d records, chains_valid=%s",
            export_id, actor_id, export.record_count, export.chains_valid,
        )
        return export

    def _invoices(self, tx: Transaction, request: ExportRequest) -> list[Invoice]:
        if request.business_id is not None:
            clauses, params = ["business_id = %s"], [request.business_id]
        else:
            clauses, params = ["user_id = %s AND business_id IS NULL"], [request.user_id]

        if request.date_from is not None:
            clauses.append("created_at::date >= %s")
            params.append(request.date_from)
        if request.date_to is not None:
            clauses.append("created_at::date <= %s")
            params.append(request.date_to)

        rows = tx.execute(
            f"SELECT * FROM invoices WHERE {' AND '.join(clauses)} ORDER BY created_at, id",
            tuple(params)
        )
        return [Invoice.model_validate(row) for row in rows]

    def _items(self, tx: Transaction, invoice_ids: list[UUID]) -> dict[UUID, list[InvoiceItem]]:
        rows = tx.execute(
            "SELECT * FROM invoice_items WHERE invoice_id = ANY(%s::uuid[]) ORDER BY invoice_id, sort_order",
            (invoice_ids,)
        )
        items: dict[UUID, list[InvoiceItem]] = {}
        for row in rows:
            item = InvoiceItem.model_validate(row)
            items.setdefault(item.invoice_id, []).append(item)
        return items


def _verify_chains(entries: list[AuditLogEntry]) -> list[ChainVerification]:
    """One ChainVerification per (entity_type, entity_id). Entries arrive in seq order."""
    chains: dict[tuple[str, UUID], list[AuditLogEntry]] = {}
    for entry in entries:
        chains.setdefault((entry.entity_type, entry.entity_id), []).append(entry)
    return [
        verify_entries(entity_type, entity_id, chain)
        for (entity_type, entity_id), chain in chains.items()
    ]
