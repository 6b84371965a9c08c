"""End-to-end flows through the HTTP app against the test database."""

import pytest
from starlette.testclient import TestClient

from api.app import build_services, create_app


@pytest.fixture
def flow_client(clean_db, test_user_id):
    app = create_app(build_services(clean_db))
    return TestClient(app, raise_server_exceptions=False, headers={"X-Actor-Id": str(test_user_id)})


@pytest.fixture
def public_client(clean_db):
    return TestClient(create_app(build_services(clean_db)), raise_server_exceptions=False)


def _act(client, action, **data):
    return client.post("/api/actions", json={"domain": "invoice", "action": action, "data": data})


@pytest.fixture
def draft_id(flow_client, test_user_id, test_client_id):
    response = _act(
        flow_client, "create",
        user_id=str(test_user_id),
        client_id=str(test_client_id),
        subtotal="1000.00",
        tax_amount="75.00",
        total_amount="1075.00",
        items=[{"description": "Logo design", "quantity": "1", "unit_price": "1000.00"}],
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]["id"]


class TestHealth:

    def test_health_is_public(self, public_client):
        assert public_client.get("/health").json() == {"status": "ok"}


class TestIssueAndPay:

    def test_full_lifecycle(self, flow_client, public_client, draft_id):
        issued = _act(flow_client, "issue", id=draft_id).json()["data"]
        assert issued["invoice_number"] == "INV-0001"
        assert len(issued["invoice_hash"]) == 64

        verification = public_client.get(f"/api/verify/{issued['verification_id']}").json()["data"]
        assert verification["verified"] is True
        assert verification["redacted"]["payment_status"] == "unpaid"
        assert verification["redacted"]["issuer_name"] == "Ada Designs"

        first = _act(flow_client, "record_payment", id=draft_id, amount="500.00").json()["data"]
        assert first["invoice_status"] == "issued"
        assert first["balance_due"] == "575.00"
        assert first["receipt"]["receipt_number"] == "RCP-INV-0001-001"

        receipt_check = public_client.get(
            f"/api/verify/{first['receipt']['verification_id']}"
        ).json()["data"]
        assert receipt_check["document_type"] == "receipt"
        assert receipt_check["verified"] is True

        second = _act(flow_client, "record_payment", id=draft_id, amount="575.00").json()["data"]
        assert second["invoice_status"] == "paid"

        invoice = flow_client.get(
            "/api/data", params={"type": "invoices", "id": draft_id, "include": "payments"}
        ).json()["data"]
        assert invoice["status"] == "paid"
        assert invoice["balance_due"] == "0.00"
        assert len(invoice["payments"]) == 2

        payments = flow_client.get(
            "/api/data",
            params={"type": "payments", "invoice_id": draft_id, "include": "reconciliation"},
        ).json()["data"]
        assert payments["reconciliation"]["balanced"] is True

        audit = flow_client.get(
            "/api/data",
            params={"type": "audit", "entity_type": "invoice", "id": draft_id, "include": "chain"},
        ).json()["data"]
        assert audit["chain"]["valid"] is True
        assert [e["event_type"] for e in audit["entries"]][:2] == ["INVOICE_CREATED", "INVOICE_ISSUED"]

    def test_issued_invoice_rejects_update(self, flow_client, draft_id):
        _act(flow_client, "issue", id=draft_id)

        response = _act(flow_client, "update", id=draft_id, notes="changed")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVOICE_IMMUTABLE"

    def test_paid_invoice_cannot_be_voided(self, flow_client, draft_id):
        _act(flow_client, "issue", id=draft_id)
        _act(flow_client, "record_payment", id=draft_id, amount="1075.00")

        response = _act(flow_client, "void", id=draft_id, reason="Client cancelled the order")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


class TestVoid:

    def test_void_creates_credit_note(self, flow_client, public_client, draft_id):
        issued = _act(flow_client, "issue", id=draft_id).json()["data"]

        credit_note = _act(
            flow_client, "void", id=draft_id, reason="Duplicate of INV-0002"
        ).json()["data"]["credit_note"]
        assert credit_note["credit_note_number"] == "CN-INV-0001"
        assert credit_note["amount"] == "1075.00"

        invoice = flow_client.get("/api/data", params={"type": "invoices", "id": draft_id}).json()["data"]
        assert invoice["status"] == "voided"
        assert invoice["display_status"] == "credited"

        voided = public_client.get(f"/api/verify/{issued['verification_id']}").json()["data"]
        assert voided["redacted"]["payment_status"] == "voided"

    def test_short_reason_rejected(self, flow_client, draft_id):
        _act(flow_client, "issue", id=draft_id)

        response = _act(flow_client, "void", id=draft_id, reason="no")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "PRECONDITION_FAILED"


class TestDraftAccess:

    def test_unverified_actor_cannot_issue(self, clean_db, test_user_b_id, draft_id):
        client_b = TestClient(
            create_app(build_services(clean_db)),
            raise_server_exceptions=False,
            headers={"X-Actor-Id": str(test_user_b_id)},
        )

        response = _act(client_b, "issue", id=draft_id)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "VERIFICATION_REQUIRED"

    def test_summary_excludes_drafts(self, flow_client, test_user_id, draft_id):
        summary = flow_client.get(
            "/api/data", params={"type": "summary", "user_id": str(test_user_id)}
        ).json()["data"]

        assert summary["invoice_count"] == 0

    def test_malformed_id_is_not_found(self, flow_client, draft_id):
        response = _act(flow_client, "issue", id=draft_id[:-4])

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestComplianceRecords:

    def test_export_then_activity(self, flow_client, draft_id, test_user_id):
        _act(flow_client, "issue", id=draft_id)

        response = flow_client.post("/api/actions", json={
            "domain": "export", "action": "records", "data": {"user_id": str(test_user_id)},
        })

        assert response.status_code == 200, response.text
        export = response.json()["data"]
        assert [i["id"] for i in export["invoices"]] == [draft_id]
        assert export["chains_valid"] is True
        assert export["record_count"] == 1 + len(export["audit_entries"])

        activity = flow_client.get("/api/data", params={"type": "activity", "limit": 5}).json()["data"]
        assert activity[0]["event_type"] == "DATA_EXPORTED"
        assert activity[0]["entity_id"] == export["export_id"]

    def test_internal_check(self, flow_client, draft_id):
        issued = _act(flow_client, "issue", id=draft_id).json()["data"]

        response = flow_client.get(
            "/api/data", params={"type": "verification", "id": issued["verification_id"]}
        )

        assert response.status_code == 200
        assert response.json()["data"]["verified"] is True
        assert response.json()["data"]["document_type"] == "invoice"
