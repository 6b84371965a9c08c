"""Compliance configuration."""

from decimal import Decimal

from pydantic import BaseModel, Field


class ComplianceConfig(BaseModel):
    """
    Ledger and compliance configuration.

    Defaults match the Nigerian (FIRS) baseline the product launched with.
    Jurisdiction-specific retention lives in the retention_policies table;
    default_retention_years is only the fallback when no policy row exists.
    """

    # Voiding
    void_reason_min_length: int = Field(
        default=10,
        description="Minimum characters in a void reason after trimming",
        ge=1,
        le=500,
    )

    # Retention
    default_retention_years: int = Field(
        default=7,
        description="Retention floor when no jurisdiction policy matches",
        ge=1,
        le=100,
    )
    default_jurisdiction: str = Field(
        default="NG",
        description="Jurisdiction assumed when the issuer has none on file",
        min_length=2,
        max_length=2,
    )

    # Numbering
    invoice_number_prefix: str = Field(
        default="INV-",
        description="Prefix for per-owner sequential invoice numbers",
        max_length=20,
    )
    invoice_number_retries: int = Field(
        default=3,
        description="Insert attempts before a numbering collision is reported",
        ge=1,
        le=10,
    )

    # Payments
    max_payment_amount: Decimal = Field(
        default=Decimal("999999999.99"),
        description="Largest single payment that may be recorded",
        gt=0,
    )
    allow_overpayment: bool = Field(
        default=False,
        description="Whether a payment may push amount_paid above total_amount",
    )

    # Database
    statement_timeout_seconds: int = Field(
        default=10,
        description="Per-statement timeout applied to every pooled connection",
        ge=1,
        le=300,
    )

    # Public verification
    verify_rate_limit_attempts: int = Field(
        default=30,
        description="Max verification lookups per client IP per window",
        ge=1,
        le=1000,
    )
    verify_rate_limit_window_seconds: int = Field(
        default=60,
        description="Sliding rate limit window for verification lookups",
        ge=1,
        le=3600,
    )
