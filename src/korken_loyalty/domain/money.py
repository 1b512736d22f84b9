"""Minor-unit money helpers.

Amounts are plain ``int`` minor units (1 CHF == 100). Decimal is only used at
the edges, when parsing operator input or rendering for display.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MINOR_UNITS_PER_MAJOR = 100
BASIS_POINTS_PER_WHOLE = 10_000


def to_minor_units(amount: Decimal | int | str) -> int:
    """Convert a major-unit amount (``"12.50"``) to minor units, half-up."""

    try:
        value = Decimal(str(amount))
    except InvalidOperation as error:
        raise ValueError(f"Invalid monetary amount: {amount!r}") from error
    if not value.is_finite():
        raise ValueError(f"Invalid monetary amount: {amount!r}")
    minor = (value * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)


def to_major_units(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def percent_to_basis_points(percent: Decimal | int | str) -> int:
    """``"12.5"`` percent -> ``1250`` basis points."""

    try:
        value = Decimal(str(percent))
    except InvalidOperation as error:
        raise ValueError(f"Invalid percentage: {percent!r}") from error
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apply_basis_points(amount_minor: int, basis_points: int) -> int:
    """Return ``amount * bp / 10000`` rounded half-up to whole minor units."""

    raw = Decimal(amount_minor) * Decimal(basis_points) / BASIS_POINTS_PER_WHOLE
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_amount(amount_minor: int, currency: str = "CHF") -> str:
    return f"{currency} {to_major_units(amount_minor):.2f}"


__all__ = [
    "BASIS_POINTS_PER_WHOLE",
    "MINOR_UNITS_PER_MAJOR",
    "apply_basis_points",
    "format_amount",
    "percent_to_basis_points",
    "to_major_units",
    "to_minor_units",
]
