"""In-app notification domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    """Data required to queue an in-app notification."""

    recipient_id: UUID
    kind: str = Field(..., max_length=50)
    title: str = Field(..., max_length=200)
    body: str = Field(..., max_length=2000)
    entity_type: str | None = Field(None, max_length=100)
    entity_id: UUID | None = None


class Notification(BaseModel):
    """Full notification entity as stored."""

    id: UUID
    recipient_id: UUID
    kind: str
    title: str
    body: str
    entity_type: str | None
    entity_id: UUID | None
    read_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
