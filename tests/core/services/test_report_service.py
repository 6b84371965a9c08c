"""Tests for ReportService revenue summaries."""

from decimal import Decimal
from uuid import uuid4

import pytest

from core.errors import PreconditionFailed


@pytest.fixture
def report(mock_db):
    from core.services.report_service import ReportService

    return ReportService(mock_db)


def _row(total, paid, currency, rate=None):
    return {
        "total_amount": Decimal(total),
        "amount_paid": Decimal(paid),
        "currency": currency,
        "exchange_rate_to_primary": Decimal(rate) if rate else None,
    }


class TestRevenueSummary:

    def test_requires_single_owner(self, report):
        with pytest.raises(PreconditionFailed):
            report.revenue_summary("NGN")

    def test_mixed_currencies(self, report, mock_db):
        mock_db.execute.return_value = [
            _row("1075.00", "1075.00", "NGN"),
            _row("100.00", "40.00", "USD", "1500"),
            _row("50.00", "0.00", "EUR"),
        ]

        summary = report.revenue_summary("ngn", user_id=uuid4())

        assert summary.invoice_count == 3
        assert summary.billed.primary_total == Decimal("151075.00")
        assert summary.billed.unconvertible_currencies == ["EUR"]
        assert summary.billed.excluded_count == 1
        # Fully paid NGN invoice has nothing outstanding
        assert summary.outstanding.total_count == 2
        assert summary.outstanding.primary_total == Decimal("90000.00")
        assert summary.outstanding.unconvertible_total == Decimal("50.00")

    def test_business_owner_clause(self, report, mock_db):
        mock_db.execute.return_value = []
        business_id = uuid4()

        summary = report.revenue_summary("NGN", business_id=business_id)

        query, params = mock_db.execute.call_args.args
        assert "business_id = %s" in query
        assert "'draft', 'voided'" in query
        assert params == (business_id,)
        assert summary.billed.primary_total == Decimal("0.00")


class TestRevenueSummaryDB:

    def test_excludes_drafts_and_voided(
        self, as_test_user, clean_db, invoice_service, credit_note_service, draft_data, test_user_id
    ):
        from core.services.report_service import ReportService

        kept = invoice_service.issue(invoice_service.create(draft_data).id)
        voided = invoice_service.issue(invoice_service.create(draft_data).id)
        credit_note_service.void(voided.id, "Issued against the wrong client")
        invoice_service.create(draft_data)

        summary = ReportService(clean_db).revenue_summary("NGN", user_id=test_user_id)

        assert summary.invoice_count == 1
        assert summary.billed.primary_total == kept.total_amount
        assert summary.outstanding.primary_total == kept.total_amount
