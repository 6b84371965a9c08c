"""
Multi-currency aggregation for dashboards and compliance reports.

Sums amounts in mixed currencies into one primary-currency total without
pretending a partial total is complete: foreign amounts with no usable
exchange rate are excluded from the number but counted and surfaced.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

_CENT = Decimal("0.01")

_SYMBOLS = {
    "NGN": "₦",
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
}


class CurrencyAmount(BaseModel):
    """One monetary amount with its optional frozen rate to the primary currency."""

    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3)
    exchange_rate_to_primary: Decimal | None = None

    model_config = {"frozen": True}

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class CurrencyBreakdown(BaseModel):
    """Per-currency subtotal."""

    total: Decimal = Decimal("0")
    count: int = 0
    converted_total: Decimal = Decimal("0")
    has_all_rates: bool = True
    unconvertible_count: int = 0


class AggregationResult(BaseModel):
    """Aggregated totals plus everything that was left out of them."""

    primary_total: Decimal
    primary_currency: str
    breakdown: dict[str, CurrencyBreakdown]
    total_count: int
    converted_count: int
    excluded_count: int
    unconvertible_total: Decimal
    unconvertible_currencies: list[str]
    has_multiple_currencies: bool
    has_unconvertible_amounts: bool


def _usable_rate(rate: Decimal | None) -> bool:
    return rate is not None and rate > 0


def aggregate_amounts(
    amounts: list[CurrencyAmount],
    primary_currency: str,
) -> AggregationResult:
    """
    Aggregate amounts into a primary-currency total.

    Amounts already in the primary currency need no rate and are never
    excluded. A foreign amount converts with its stored rate; with a
    missing or non-positive rate it is excluded from primary_total and
    reported in excluded_count and unconvertible_currencies instead.

    Args:
        amounts: Items to aggregate (order does not matter)
        primary_currency: ISO 4217 code of the reporting currency

    Returns:
        AggregationResult. primary_total is rounded to cents.
    """
    primary = primary_currency.upper()
    breakdown: dict[str, CurrencyBreakdown] = {}

    primary_total = Decimal("0")
    unconvertible_total = Decimal("0")
    unconvertible_currencies: list[str] = []
    converted_count = 0
    excluded_count = 0

    for item in amounts:
        currency = item.currency
        entry = breakdown.setdefault(currency, CurrencyBreakdown())
        entry.total += item.amount
        entry.count += 1

        if currency == primary:
            converted = item.amount
        elif _usable_rate(item.exchange_rate_to_primary):
            converted = item.amount * item.exchange_rate_to_primary
        else:
            entry.has_all_rates = False
            entry.unconvertible_count += 1
            unconvertible_total += item.amount
            excluded_count += 1
            if currency not in unconvertible_currencies:
                unconvertible_currencies.append(currency)
            continue

        entry.converted_total += converted
        primary_total += converted
        converted_count += 1

    for entry in breakdown.values():
        entry.converted_total = entry.converted_total.quantize(_CENT)

    return AggregationResult(
        primary_total=primary_total.quantize(_CENT),
        primary_currency=primary,
        breakdown=breakdown,
        total_count=len(amounts),
        converted_count=converted_count,
        excluded_count=excluded_count,
        unconvertible_total=unconvertible_total,
        unconvertible_currencies=sorted(unconvertible_currencies),
        has_multiple_currencies=len(breakdown) > 1,
        has_unconvertible_amounts=excluded_count > 0,
    )


def format_currency_amount(amount: Decimal, currency: str) -> str:
    """Display string for notifications, e.g. '₦1,075.00' or 'KES 50.00'."""
    code = currency.upper()
    formatted = f"{Decimal(amount).quantize(_CENT):,}"
    symbol = _SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{formatted}"
    return f"{code} {formatted}"
