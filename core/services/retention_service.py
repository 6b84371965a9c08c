"""
Jurisdiction-based retention policies.

A retention policy is a floor: the earliest date a financial record may be
deleted or anonymized. Deletion itself is a separate job; this service only
answers "how long" and stamps retention_locked_until on sealed records.
"""

import logging
from datetime import date
from uuid import uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger
from core.models import AuditEventType, RetentionPolicy, RetentionPolicyUpsert
from utils.timezone import add_years, now_utc, today_utc

logger = logging.getLogger(__name__)


class RetentionService:
    """Service for retention policy lookups and administration."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, default_years: int = 7):
        self.postgres = postgres
        self.audit = audit
        self.default_years = default_years

    def get_policy(
        self,
        jurisdiction: str,
        entity_type: str,
        tx: Transaction | None = None,
    ) -> RetentionPolicy | None:
        db = tx if tx is not None else self.postgres
        row = db.execute_single(
            """
            SELECT * FROM retention_policies
            WHERE jurisdiction = %s AND entity_type = %s
            """,
            (jurisdiction.upper(), entity_type)
        )
        if row is None:
            return None
        return RetentionPolicy.model_validate(row)

    def retention_years(
        self,
        jurisdiction: str | None,
        entity_type: str,
        tx: Transaction | None = None,
    ) -> int:
        """Years to retain, falling back to the configured default."""
        if not jurisdiction:
            return self.default_years

        policy = self.get_policy(jurisdiction, entity_type, tx=tx)
        if policy is None:
            logger.debug(
                "No retention policy for %s/%s, using %s years",
                jurisdiction, entity_type, self.default_years,
            )
            return self.default_years
        return policy.retention_years

    def locked_until(
        self,
        from_date: date,
        jurisdiction: str | None,
        entity_type: str,
        tx: Transaction | None = None,
    ) -> date:
        """Earliest permissible deletion date for a record dated from_date."""
        return add_years(from_date, self.retention_years(jurisdiction, entity_type, tx=tx))

    def list_policies(self) -> list[RetentionPolicy]:
        rows = self.postgres.execute(
            "SELECT * FROM retention_policies ORDER BY jurisdiction, entity_type"
        )
        return [RetentionPolicy.model_validate(row) for row in rows]

    def upsert_policy(self, data: RetentionPolicyUpsert) -> RetentionPolicy:
        """
        Create or replace the policy for (jurisdiction, entity_type).

        Audited as SETTINGS_UPDATED with the previous policy, if any.
        """
        now = now_utc()

        with self.postgres.transaction() as tx:
            previous = self.get_policy(data.jurisdiction, data.entity_type, tx=tx)

            row = tx.execute_returning(
                """
                INSERT INTO retention_policies (
                    id, jurisdiction, entity_type, retention_years, legal_basis,
                    created_at, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (jurisdiction, entity_type) DO UPDATE SET
                    retention_years = EXCLUDED.retention_years,
                    legal_basis = EXCLUDED.legal_basis,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
                """,
                (
                    uuid4(), data.jurisdiction, data.entity_type, data.retention_years,
                    data.legal_basis, now, now,
                )
            )[0]
            policy = RetentionPolicy.model_validate(row)

            self.audit.record(
                AuditEventType.SETTINGS_UPDATED,
                entity_type="retention_policy",
                entity_id=policy.id,
                previous_state=previous.model_dump(mode="json") if previous else None,
                new_state=policy.model_dump(mode="json"),
                metadata={"setting": "retention_policy"},
                tx=tx,
            )

        logger.info(
            "Retention policy %s/%s set to %s years",
            policy.jurisdiction, policy.entity_type, policy.retention_years,
        )
        return policy

    @staticmethod
    def is_deletable(locked_until: date | None, today: date | None = None) -> bool:
        """
        Whether a record may be deleted today.

        Records without a lock (drafts) carry no retention floor.
        """
        if locked_until is None:
            return True
        return (today or today_utc()) >= locked_until
