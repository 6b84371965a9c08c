"""
Read-only access to the profile/business directory, clients and templates.

These records are owned by other parts of the product. The ledger only reads
them, once, inside the issuing transaction, to freeze snapshots.
"""

import logging
from uuid import UUID

from clients.postgres_client import PostgresClient, Transaction
from core.errors import PreconditionFailed
from core.models import Invoice, IssuerSnapshot, RecipientSnapshot, TemplateSnapshot

logger = logging.getLogger(__name__)


class DirectoryService:
    """Snapshot builder over live directory records."""

    def __init__(self, postgres: PostgresClient, default_jurisdiction: str = "NG"):
        self.postgres = postgres
        self.default_jurisdiction = default_jurisdiction

    def _db(self, tx: Transaction | None):
        return tx if tx is not None else self.postgres

    def is_email_verified(self, actor_id: UUID, tx: Transaction | None = None) -> bool:
        """Whether the actor's profile has a verified email. Unknown actors are not verified."""
        verified = self._db(tx).execute_scalar(
            "SELECT email_verified FROM profiles WHERE id = %s",
            (actor_id,)
        )
        return bool(verified)

    def issuer_snapshot(self, invoice: Invoice, tx: Transaction | None = None) -> IssuerSnapshot:
        """
        Freeze the invoice owner's current profile.

        Business-owned invoices snapshot the business record; individual
        invoices snapshot the owner's profile.

        Raises:
            PreconditionFailed: Owner record is missing.
        """
        db = self._db(tx)

        if invoice.business_id is not None:
            row = db.execute_single(
                """
                SELECT name, legal_name, tax_id, cac_number, vat_registration_number,
                       contact_email, contact_phone, address, logo_url, jurisdiction,
                       is_vat_registered
                FROM businesses WHERE id = %s
                """,
                (invoice.business_id,)
            )
            if row is None:
                raise PreconditionFailed("Issuing business not found")

            return IssuerSnapshot(
                business_name=row["name"],
                legal_name=row["legal_name"],
                tax_id=row["tax_id"],
                cac_number=row["cac_number"],
                vat_registration_number=row["vat_registration_number"],
                contact_email=row["contact_email"],
                contact_phone=row["contact_phone"],
                address=row["address"],
                logo_url=row["logo_url"],
                jurisdiction=row["jurisdiction"] or self.default_jurisdiction,
                is_vat_registered=bool(row["is_vat_registered"]),
            )

        row = db.execute_single(
            """
            SELECT full_name, business_name, tax_id, email, phone, address, jurisdiction
            FROM profiles WHERE id = %s
            """,
            (invoice.user_id,)
        )
        if row is None:
            raise PreconditionFailed("Issuer profile not found")

        return IssuerSnapshot(
            business_name=row["business_name"] or row["full_name"],
            legal_name=row["full_name"],
            tax_id=row["tax_id"],
            contact_email=row["email"],
            contact_phone=row["phone"],
            address=row["address"],
            jurisdiction=row["jurisdiction"] or self.default_jurisdiction,
        )

    def jurisdiction_for(self, invoice: Invoice, tx: Transaction | None = None) -> str:
        """
        Jurisdiction whose retention rules govern the invoice's records.

        The frozen issuer snapshot wins; drafts and snapshots without one fall
        back to the live owner record, then to the configured default.
        """
        if invoice.issuer_snapshot is not None and invoice.issuer_snapshot.jurisdiction:
            return invoice.issuer_snapshot.jurisdiction

        db = self._db(tx)
        if invoice.business_id is not None:
            live = db.execute_scalar(
                "SELECT jurisdiction FROM businesses WHERE id = %s", (invoice.business_id,)
            )
        else:
            live = db.execute_scalar(
                "SELECT jurisdiction FROM profiles WHERE id = %s", (invoice.user_id,)
            )
        return live or self.default_jurisdiction

    def recipient_snapshot(self, client_id: UUID, tx: Transaction | None = None) -> RecipientSnapshot:
        """
        Freeze the client's current record.

        Raises:
            PreconditionFailed: Client is missing.
        """
        row = self._db(tx).execute_single(
            """
            SELECT name, email, phone, address, contact_person, tax_id, cac_number
            FROM clients WHERE id = %s
            """,
            (client_id,)
        )
        if row is None:
            raise PreconditionFailed(f"Client {client_id} not found")

        return RecipientSnapshot.model_validate(row)

    def template_snapshot(
        self,
        template_id: UUID | None,
        tx: Transaction | None = None,
    ) -> TemplateSnapshot:
        """Freeze template capabilities. No template means the plain default."""
        if template_id is None:
            return TemplateSnapshot()

        row = self._db(tx).execute_single(
            """
            SELECT id, name, requires_watermark, supports_custom_branding
            FROM invoice_templates WHERE id = %s
            """,
            (template_id,)
        )
        if row is None:
            logger.warning("Template %s not found, snapshotting default", template_id)
            return TemplateSnapshot()

        return TemplateSnapshot(
            template_id=str(row["id"]),
            name=row["name"],
            requires_watermark=bool(row["requires_watermark"]),
            supports_custom_branding=bool(row["supports_custom_branding"]),
        )
