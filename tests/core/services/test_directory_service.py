"""Tests for DirectoryService snapshot builders."""

from uuid import uuid4

import pytest

from core.errors import PreconditionFailed
from core.models import TemplateSnapshot


@pytest.fixture
def directory(mock_db):
    from core.services.directory_service import DirectoryService

    return DirectoryService(mock_db)


class TestEmailVerified:

    def test_unknown_actor_not_verified(self, directory, mock_db):
        mock_db.execute_scalar.return_value = None
        assert directory.is_email_verified(uuid4()) is False

    def test_verified(self, directory, mock_db):
        mock_db.execute_scalar.return_value = True
        assert directory.is_email_verified(uuid4()) is True


class TestIssuerSnapshotUnit:

    def test_profile_without_jurisdiction_uses_default(self, directory, mock_db, make_invoice):
        mock_db.execute_single.return_value = {
            "full_name": "Ada Obi", "business_name": None, "tax_id": None,
            "email": "ada@test.local", "phone": None, "address": None, "jurisdiction": None,
        }

        snapshot = directory.issuer_snapshot(make_invoice())

        assert snapshot.business_name == "Ada Obi"
        assert snapshot.jurisdiction == "NG"

    def test_missing_business(self, directory, mock_db, make_invoice):
        mock_db.execute_single.return_value = None

        with pytest.raises(PreconditionFailed, match="business"):
            directory.issuer_snapshot(make_invoice(user_id=None, business_id=uuid4()))

    def test_missing_client(self, directory, mock_db):
        mock_db.execute_single.return_value = None

        with pytest.raises(PreconditionFailed, match="Client"):
            directory.recipient_snapshot(uuid4())

    def test_no_template_is_default(self, directory, mock_db):
        assert directory.template_snapshot(None) == TemplateSnapshot()
        mock_db.execute_single.assert_not_called()

    def test_missing_template_falls_back(self, directory, mock_db, caplog):
        mock_db.execute_single.return_value = None

        assert directory.template_snapshot(uuid4()).name == "default"
        assert "not found" in caplog.text


class TestSnapshotsFromDatabase:

    def test_individual_issuer(self, directory_service, make_invoice):
        snapshot = directory_service.issuer_snapshot(make_invoice())

        assert snapshot.business_name == "Ada Designs"
        assert snapshot.legal_name == "Ada Obi"
        assert snapshot.contact_email == "testuser@test.local"

    def test_business_issuer(self, directory_service, make_invoice, test_business_id):
        snapshot = directory_service.issuer_snapshot(make_invoice(user_id=None, business_id=test_business_id))

        assert snapshot.business_name == "Obi Studio"
        assert snapshot.display_name == "Obi Studio Limited"
        assert snapshot.tax_id == "TIN-0001"
        assert snapshot.jurisdiction == "NG"

    def test_recipient(self, directory_service, test_client_id):
        snapshot = directory_service.recipient_snapshot(test_client_id)

        assert snapshot.name == "Acme Nigeria Ltd"
        assert snapshot.contact_person == "Chidi"

    def test_verification_flags(self, directory_service, test_user_id, test_user_b_id):
        assert directory_service.is_email_verified(test_user_id) is True
        assert directory_service.is_email_verified(test_user_b_id) is False


class TestJurisdictionFor:

    def test_snapshot_wins_without_query(self, directory, mock_db, make_issued_invoice):
        from core.models import IssuerSnapshot

        invoice = make_issued_invoice().model_copy(
            update={"issuer_snapshot": IssuerSnapshot(business_name="Ada Designs", jurisdiction="GH")}
        )

        assert directory.jurisdiction_for(invoice) == "GH"
        mock_db.execute_scalar.assert_not_called()

    def test_business_owner_reads_live_row(self, directory, mock_db, make_invoice):
        business_id = uuid4()
        mock_db.execute_scalar.return_value = "GH"

        assert directory.jurisdiction_for(make_invoice(user_id=None, business_id=business_id)) == "GH"
        sql, params = mock_db.execute_scalar.call_args[0]
        assert "FROM businesses" in sql
        assert params == (business_id,)

    def test_missing_profile_falls_back_to_default(self, directory, mock_db, make_invoice):
        mock_db.execute_scalar.return_value = None

        assert directory.jurisdiction_for(make_invoice()) == "NG"
        assert "FROM profiles" in mock_db.execute_scalar.call_args[0][0]

    def test_reads_inside_given_transaction(self, directory, mock_db, tx, make_invoice):
        tx.execute_scalar.return_value = "GH"

        assert directory.jurisdiction_for(make_invoice(), tx=tx) == "GH"
        mock_db.execute_scalar.assert_not_called()

    def test_from_database(self, directory_service, make_invoice, test_business_id):
        assert directory_service.jurisdiction_for(make_invoice()) == "NG"
        assert directory_service.jurisdiction_for(
            make_invoice(user_id=None, business_id=test_business_id)
        ) == "NG"
