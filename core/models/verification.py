"""Public verification result models.

Only the minimum needed for third-party trust leaves the system, and only
from frozen snapshots, never from live records.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class RedactedSummary(BaseModel):
    document_type: str
    document_number: str
    issuer_name: str
    counterpart_name: str | None
    amount: Decimal
    currency: str
    issued_at: datetime
    payment_status: str | None = None


class VerificationResult(BaseModel):
    """Public outcome of a verification lookup."""

    verified: bool
    integrity_valid: bool
    document_type: str | None = None
    redacted: RedactedSummary | None = None
    error: str | None = None

    @classmethod
    def not_verified(cls) -> "VerificationResult":
        """Generic failure. Malformed, unknown and tampered ids all look alike."""
        return cls(verified=False, integrity_valid=False, error="not verified")
