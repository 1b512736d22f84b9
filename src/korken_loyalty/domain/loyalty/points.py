"""Earning rules: purchase conversion and fixed action rewards."""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal
from enum import Enum

from korken_loyalty.domain.money import MINOR_UNITS_PER_MAJOR

PURCHASE_RULE_IDENTIFIER = "purchase"
DEFAULT_PURCHASE_RATIO = Decimal("1.0")


class PointAction(str, Enum):
    """Storefront actions that earn a fixed number of points."""

    REVIEW = "review"
    EVENT_ATTENDANCE = "event_attendance"
    REFERRAL = "referral"
    NEWSLETTER_SIGNUP = "newsletter_signup"


POINT_REWARDS: dict[PointAction, int] = {
    PointAction.REVIEW: 40,
    PointAction.EVENT_ATTENDANCE: 100,
    PointAction.REFERRAL: 25,
    PointAction.NEWSLETTER_SIGNUP: 50,
}


def points_for_purchase(order_total_minor: int, ratio: Decimal | float | str = DEFAULT_PURCHASE_RATIO) -> int:
    """Points earned for an order: ``floor(total_in_major_units * ratio)``.

    Refund-sized (negative) totals earn nothing; clawbacks go through the
    ledger explicitly.
    """

    if order_total_minor <= 0:
        return 0
    ratio_value = Decimal(str(ratio))
    if ratio_value <= 0:
        return 0
    raw = Decimal(order_total_minor) * ratio_value / MINOR_UNITS_PER_MAJOR
    return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def points_for_action(action: PointAction) -> int:
    return POINT_REWARDS[action]


__all__ = [
    "DEFAULT_PURCHASE_RATIO",
    "POINT_REWARDS",
    "PURCHASE_RULE_IDENTIFIER",
    "PointAction",
    "points_for_action",
    "points_for_purchase",
]
