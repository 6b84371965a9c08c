"""
Append-only, hash-chained compliance audit trail.

Every state-changing ledger action is recorded here with full before/after
state. The log is:
- Append-only (this class has no update or delete; the database rejects both)
- Actor-attributed (who made the change, from the actor context by default)
- Tamper-evident (each entry hashes the previous entry of the same entity)

Chain, per (entity_type, entity_id), oldest first:

    event_hash = sha256("audit-v1|" + previous_hash + "|" + event_type + "|"
                        + entity_type + "|" + entity_id + "|" + actor_id + "|"
                        + timestamp_utc + "|" + json(previous_state) + "|"
                        + json(new_state) + "|" + json(metadata))

The first entry of an entity chains from the empty string.
"""

import hashlib
import json
import logging
import re
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, Transaction
from core.errors import AuditWriteError
from core.models.audit_entry import AuditEventType, AuditLogEntry, ChainVerification
from utils.user_context import get_optional_actor_id
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)

AUDIT_HASH_VERSION = "audit-v1"

_ENTITY_TYPE_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    all_keys = set(old.keys()) | set(new.keys())
    for key in all_keys:
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


def sanitize_entity_type(entity_type: str) -> str:
    """Restrict entity_type to [A-Za-z0-9_-], at most 100 characters."""
    cleaned = _ENTITY_TYPE_UNSAFE.sub("", entity_type or "")[:100]
    if not cleaned:
        raise ValueError(f"Invalid entity_type {entity_type!r}")
    return cleaned


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def _normalize(value: dict[str, Any] | None) -> dict[str, Any] | None:
    """Round-trip through JSON so what we hash is exactly what JSONB returns."""
    if value is None:
        return None
    return json.loads(canonical_json(value))


def compute_event_hash(
    previous_hash: str,
    event_type: str,
    entity_type: str,
    entity_id: UUID,
    actor_id: UUID | None,
    timestamp_utc: datetime,
    previous_state: dict[str, Any] | None,
    new_state: dict[str, Any] | None,
    metadata: dict[str, Any] | None,
) -> str:
    """Hash one audit entry onto its predecessor."""
    payload = "|".join([
        AUDIT_HASH_VERSION,
        previous_hash,
        event_type,
        entity_type,
        str(entity_id),
        str(actor_id) if actor_id else "",
        to_utc(timestamp_utc).isoformat(timespec="microseconds"),
        canonical_json(previous_state),
        canonical_json(new_state),
        canonical_json(metadata),
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class AuditLogger:
    """
    Compliance audit writer. Injected into every ledger service.

    IMPORTANT: Pass Pydantic models through model_dump(mode="json") so UUIDs,
    Decimals and datetimes arrive as JSON-compatible strings.

    Usage:
        audit = AuditLogger(postgres)

        # Strict: same transaction as the state change it describes
        with postgres.transaction() as tx:
            ...
            audit.record(
                AuditEventType.INVOICE_ISSUED,
                entity_type="invoice",
                entity_id=invoice.id,
                previous_state=before.model_dump(mode="json"),
                new_state=after.model_dump(mode="json"),
                tx=tx,
            )

        # Best effort: never raises (access logs, view counters)
        audit.record_best_effort(AuditEventType.INVOICE_VIEWED, "invoice", invoice.id)

        # Read and verify
        history = audit.get_entity_history("invoice", invoice.id)
        check = audit.verify_chain("invoice", invoice.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def record(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        actor_id: UUID | None = None,
        previous_state: dict[str, Any] | None = None,
        new_state: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        tx: Transaction | None = None,
    ) -> AuditLogEntry:
        """
        Append an audit entry.

        With tx, the entry is written on the caller's transaction and commits
        or rolls back with the state change. Without tx it commits on its own.

        Args:
            event_type: What happened
            entity_type: Kind of entity ("invoice", "payment", ...)
            entity_id: ID of the entity
            actor_id: Who did it (defaults to current actor context, may be None)
            previous_state: Full object before the change
            new_state: Full object after the change
            metadata: Extra context
            tx: Caller's open transaction

        Raises:
            AuditWriteError: The entry could not be written.
        """
        entity_type = sanitize_entity_type(entity_type)
        event_type = AuditEventType(event_type)
        if actor_id is None:
            actor_id = get_optional_actor_id()

        if tx is None:
            with self.postgres.transaction() as own_tx:
                return self._append(
                    own_tx, event_type, entity_type, entity_id, actor_id,
                    previous_state, new_state, metadata,
                )

        return self._append(
            tx, event_type, entity_type, entity_id, actor_id,
            previous_state, new_state, metadata,
        )

    def record_best_effort(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        actor_id: UUID | None = None,
        previous_state: dict[str, Any] | None = None,
        new_state: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogEntry | None:
        """
        Append an audit entry in its own transaction, never raising.

        For non-compliance-critical events only. Failures are logged and
        None is returned.
        """
        try:
            return self.record(
                event_type,
                entity_type,
                entity_id,
                actor_id=actor_id,
                previous_state=previous_state,
                new_state=new_state,
                metadata=metadata,
            )
        except Exception:
            logger.warning(
                "Best-effort audit write failed: %s %s %s",
                getattr(event_type, "value", event_type),
                entity_type,
                entity_id,
                exc_info=True,
            )
            return None

    def _append(
        self,
        tx: Transaction,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        actor_id: UUID | None,
        previous_state: dict[str, Any] | None,
        new_state: dict[str, Any] | None,
        metadata: dict[str, Any] | None,
    ) -> AuditLogEntry:
        previous_state = _normalize(previous_state)
        new_state = _normalize(new_state)
        metadata = _normalize(metadata)

        try:
            # Serialize writers per entity so the chain never forks
            tx.advisory_lock(f"audit:{entity_type}:{entity_id}")

            previous_hash = tx.execute_scalar(
                """
                SELECT event_hash FROM audit_logs
                WHERE entity_type = %s AND entity_id = %s
                ORDER BY seq DESC
                LIMIT 1
                """,
                (entity_type, entity_id)
            ) or ""

            timestamp = now_utc()
            event_hash = compute_event_hash(
                previous_hash, event_type.value, entity_type, entity_id, actor_id,
                timestamp, previous_state, new_state, metadata,
            )

            row = tx.execute_returning(
                """
                INSERT INTO audit_logs (
                    id, event_type, entity_type, entity_id, actor_id, timestamp_utc,
                    previous_state, new_state, metadata, previous_hash, event_hash
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(),
                    event_type.value,
                    entity_type,
                    entity_id,
                    actor_id,
                    timestamp,
                    Json(previous_state) if previous_state is not None else None,
                    Json(new_state) if new_state is not None else None,
                    Json(metadata) if metadata is not None else None,
                    previous_hash,
                    event_hash,
                )
            )[0]
        except Exception as e:
            raise AuditWriteError(
                f"Failed to write {event_type.value} audit entry for {entity_type} {entity_id}"
            ) from e

        return AuditLogEntry.model_validate(row)

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: UUID
    ) -> list[AuditLogEntry]:
        """
        Full audit history for an entity, oldest first.

        Args:
            entity_type: Kind of entity ("invoice", "payment", ...)
            entity_id: ID of the entity
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM audit_logs
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY seq ASC
            """,
            (sanitize_entity_type(entity_type), entity_id)
        )
        return [AuditLogEntry.model_validate(row) for row in rows]

    def get_actor_activity(
        self,
        actor_id: UUID | None = None,
        limit: int = 100
    ) -> list[AuditLogEntry]:
        """
        Recent activity by an actor, newest first.

        Args:
            actor_id: Actor to get activity for (defaults to current context)
            limit: Maximum entries to return
        """
        if actor_id is None:
            actor_id = get_optional_actor_id()
        if actor_id is None:
            return []

        rows = self.postgres.execute(
            """
            SELECT * FROM audit_logs
            WHERE actor_id = %s
            ORDER BY seq DESC
            LIMIT %s
            """,
            (actor_id, limit)
        )
        return [AuditLogEntry.model_validate(row) for row in rows]

    def verify_chain(self, entity_type: str, entity_id: UUID) -> ChainVerification:
        """
        Recompute an entity's hash chain from the stored entries.

        Returns the first entry whose link or content hash does not match,
        or valid=True if the whole chain checks out.
        """
        entries = self.get_entity_history(entity_type, entity_id)
        return verify_entries(sanitize_entity_type(entity_type), entity_id, entries)


def verify_entries(
    entity_type: str,
    entity_id: UUID,
    entries: list[AuditLogEntry],
) -> ChainVerification:
    """Check a list of entries (oldest first) against each other."""
    expected_previous = ""
    for checked, entry in enumerate(entries, start=1):
        recomputed = compute_event_hash(
            entry.previous_hash,
            entry.event_type.value,
            entry.entity_type,
            entry.entity_id,
            entry.actor_id,
            entry.timestamp_utc,
            entry.previous_state,
            entry.new_state,
            entry.metadata,
        )
        if entry.previous_hash != expected_previous or recomputed != entry.event_hash:
            logger.warning(
                "Audit chain broken for %s %s at entry %s",
                entity_type, entity_id, entry.id,
            )
            return ChainVerification(
                entity_type=entity_type,
                entity_id=entity_id,
                valid=False,
                entries_checked=checked,
                broken_at=entry.id,
            )
        expected_previous = entry.event_hash

    return ChainVerification(
        entity_type=entity_type,
        entity_id=entity_id,
        valid=True,
        entries_checked=len(entries),
    )
