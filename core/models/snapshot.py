"""Frozen point-in-time copies captured at issuance.

Each snapshot is copied by value from the live directory record at the
instant an invoice is issued and never updated afterwards, even if the
business, profile, client or template it came from changes later.
"""

from pydantic import BaseModel, ConfigDict


class IssuerSnapshot(BaseModel):
    """The issuing business (or individual) as it was at issuance."""

    model_config = ConfigDict(frozen=True)

    business_name: str | None = None
    legal_name: str | None = None
    tax_id: str | None = None
    cac_number: str | None = None
    vat_registration_number: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    address: str | None = None
    logo_url: str | None = None
    jurisdiction: str | None = None
    is_vat_registered: bool = False

    @property
    def display_name(self) -> str:
        return self.legal_name or self.business_name or "Unknown issuer"


class RecipientSnapshot(BaseModel):
    """The invoiced client as it was at issuance."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    contact_person: str | None = None
    tax_id: str | None = None
    cac_number: str | None = None


class TemplateSnapshot(BaseModel):
    """Rendering template capabilities as they were at issuance."""

    model_config = ConfigDict(frozen=True)

    template_id: str | None = None
    name: str = "default"
    requires_watermark: bool = False
    supports_custom_branding: bool = False
