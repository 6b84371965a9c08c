"""In-app notifications queued by event handlers.

Delivery (email, push) is handled elsewhere and reads from this table.
"""

from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.models import Notification, NotificationCreate
from utils.timezone import now_utc


class NotificationService:
    """Service for queuing and reading notifications."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def create(self, data: NotificationCreate) -> Notification:
        row = self.postgres.execute_returning(
            """
            INSERT INTO notifications (
                id, recipient_id, kind, title, body, entity_type, entity_id, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                uuid4(), data.recipient_id, data.kind, data.title, data.body,
                data.entity_type, data.entity_id, now_utc(),
            )
        )[0]
        return Notification.model_validate(row)

    def list_for_recipient(self, recipient_id: UUID, limit: int = 50) -> list[Notification]:
        rows = self.postgres.execute(
            """
            SELECT * FROM notifications
            WHERE recipient_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (recipient_id, limit)
        )
        return [Notification.model_validate(row) for row in rows]
