"""
Fixed-point money primitives.

All amounts are integer cents to avoid floating point issues.
EUR 10.00 = 1000 cents. Percentages are Decimal (8.17 = 8.17 %).
"""

from decimal import Decimal, ROUND_HALF_UP

DAYS_PER_YEAR = 365

_CENT = Decimal("0.01")


def to_cents(value: Decimal | str | int) -> int:
    """
    Convert a major-unit amount ("12.345", Decimal("12.34")) to cents.

    Rounds HALF_UP to the cent. Floats are refused because they have
    already lost precision by the time they arrive here.
    """
    if isinstance(value, float):
        raise TypeError("Use Decimal or str for money, not float")
    amount = Decimal(value)
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Cents to a two-place Decimal in major units."""
    return (Decimal(cents) / 100).quantize(_CENT)


def format_cents(cents: int) -> str:
    """Plain decimal rendering, e.g. 100000 -> "1000.00"."""
    return f"{from_cents(cents):.2f}"


def percent_of(cents: int, percent: Decimal | int) -> int:
    """Percentage of an amount, rounded HALF_UP to whole cents."""
    raw = Decimal(cents) * Decimal(percent) / 100
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def accrue_interest(principal_cents: int, annual_rate_percent: Decimal, days: int) -> int:
    """
    Simple interest for a number of days on an actual/365 basis.

    principal x rate x days / 365, rounded HALF_UP to whole cents.
    Returns 0 for non-positive principal or days.
    """
    if principal_cents <= 0 or days <= 0:
        return 0
    raw = (
        Decimal(principal_cents)
        * Decimal(annual_rate_percent) / 100
        * Decimal(days) / DAYS_PER_YEAR
    )
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
