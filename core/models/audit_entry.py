"""Audit log domain models."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class AuditEventType(str, Enum):
    """Closed set of auditable events."""

    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_SIGNUP = "USER_SIGNUP"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    PASSWORD_RESET = "PASSWORD_RESET"
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    INVOICE_DELETED = "INVOICE_DELETED"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    INVOICE_SENT = "INVOICE_SENT"
    INVOICE_VIEWED = "INVOICE_VIEWED"
    INVOICE_VOIDED = "INVOICE_VOIDED"
    INVOICE_CREDITED = "INVOICE_CREDITED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    RECEIPT_ISSUED = "RECEIPT_ISSUED"
    CLIENT_CREATED = "CLIENT_CREATED"
    CLIENT_UPDATED = "CLIENT_UPDATED"
    BUSINESS_CREATED = "BUSINESS_CREATED"
    BUSINESS_UPDATED = "BUSINESS_UPDATED"
    TEAM_MEMBER_ADDED = "TEAM_MEMBER_ADDED"
    TEAM_MEMBER_REMOVED = "TEAM_MEMBER_REMOVED"
    ROLE_CHANGED = "ROLE_CHANGED"
    DATA_EXPORTED = "DATA_EXPORTED"
    DOCUMENT_VERIFIED = "DOCUMENT_VERIFIED"
    SUBSCRIPTION_CHANGED = "SUBSCRIPTION_CHANGED"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"
    ACCOUNT_CLOSED = "ACCOUNT_CLOSED"


class AuditLogEntry(BaseModel):
    """One append-only audit entry as stored."""

    id: UUID
    seq: int
    event_type: AuditEventType
    entity_type: str
    entity_id: UUID
    actor_id: UUID | None
    timestamp_utc: datetime
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    previous_hash: str
    event_hash: str

    model_config = {"from_attributes": True}


class ChainVerification(BaseModel):
    """Result of recomputing an entity's audit hash chain."""

    entity_type: str
    entity_id: UUID
    valid: bool
    entries_checked: int
    broken_at: UUID | None = None
