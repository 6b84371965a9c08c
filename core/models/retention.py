"""Retention policy domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class RetentionPolicyUpsert(BaseModel):
    """Data required to create or replace a jurisdiction's retention policy."""

    jurisdiction: str = Field(..., min_length=2, max_length=2)
    entity_type: str = Field(..., pattern="^(invoice|payment|receipt|credit_note|audit_log)$")
    retention_years: int = Field(..., ge=1, le=100)
    legal_basis: str | None = Field(None, max_length=500)

    @field_validator("jurisdiction")
    @classmethod
    def upper_jurisdiction(cls, v: str) -> str:
        return v.upper()


class RetentionPolicy(BaseModel):
    """Full retention policy entity as stored."""

    id: UUID
    jurisdiction: str
    entity_type: str
    retention_years: int
    legal_basis: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
