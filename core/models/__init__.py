"""Core domain models."""

from core.models.snapshot import IssuerSnapshot, RecipientSnapshot, TemplateSnapshot
from core.models.line_item import InvoiceItem, InvoiceItemCreate
from core.models.invoice import Invoice, InvoiceCreate, InvoiceUpdate, InvoiceStatus
from core.models.payment import Payment, PaymentCreate, PaymentResult, Receipt, Reconciliation
from core.models.credit_note import CreditNote
from core.models.audit_entry import AuditEventType, AuditLogEntry, ChainVerification
from core.models.retention import RetentionPolicy, RetentionPolicyUpsert
from core.models.verification import RedactedSummary, VerificationResult
from core.models.notification import Notification, NotificationCreate
from core.models.export import ComplianceExport, ExportRequest

__all__ = [
    # Snapshots
    "IssuerSnapshot", "RecipientSnapshot", "TemplateSnapshot",
    # Line items
    "InvoiceItem", "InvoiceItemCreate",
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceUpdate", "InvoiceStatus",
    # Payment
    "Payment", "PaymentCreate", "PaymentResult", "Receipt", "Reconciliation",
    # Credit note
    "CreditNote",
    # Audit
    "AuditEventType", "AuditLogEntry", "ChainVerification",
    # Retention
    "RetentionPolicy", "RetentionPolicyUpsert",
    # Verification
    "RedactedSummary", "VerificationResult",
    # Notification
    "Notification", "NotificationCreate",
    # Export
    "ComplianceExport", "ExportRequest",
]
