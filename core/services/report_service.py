"""Revenue and outstanding-balance summaries across currencies."""

from uuid import UUID

from pydantic import BaseModel

from clients.postgres_client import PostgresClient
from core import lifecycle
from core.currency import AggregationResult, CurrencyAmount, aggregate_amounts


class RevenueSummary(BaseModel):
    billed: AggregationResult
    outstanding: AggregationResult
    invoice_count: int


class ReportService:
    """Dashboard and compliance report figures."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def revenue_summary(
        self,
        primary_currency: str,
        user_id: UUID | None = None,
        business_id: UUID | None = None,
    ) -> RevenueSummary:
        """
        Billed and outstanding totals for an owner's sealed, non-voided invoices.

        Amounts in other currencies convert with the rate frozen on each
        invoice; those without one are reported as unconvertible, not dropped.
        """
        lifecycle.ensure_single_owner(user_id, business_id)
        if business_id is not None:
            clause, owner_id = "business_id = %s", business_id
        else:
            clause, owner_id = "user_id = %s AND business_id IS NULL", user_id

        rows = self.postgres.execute(
            f"""
            SELECT total_amount, amount_paid, currency, exchange_rate_to_primary
            FROM invoices
            WHERE {clause} AND status NOT IN ('draft', 'voided')
            """,
            (owner_id,)
        )

        billed = [
            CurrencyAmount(
                amount=row["total_amount"],
                currency=row["currency"],
                exchange_rate_to_primary=row["exchange_rate_to_primary"],
            )
            for row in rows
        ]
        outstanding = [
            CurrencyAmount(
                amount=row["total_amount"] - row["amount_paid"],
                currency=row["currency"],
                exchange_rate_to_primary=row["exchange_rate_to_primary"],
            )
            for row in rows
            if row["total_amount"] > row["amount_paid"]
        ]

        return RevenueSummary(
            billed=aggregate_amounts(billed, primary_currency),
            outstanding=aggregate_amounts(outstanding, primary_currency),
            invoice_count=len(rows),
        )
