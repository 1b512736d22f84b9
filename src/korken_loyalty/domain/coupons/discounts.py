"""Pure coupon rules: ordered eligibility checks and discount arithmetic.

All amounts are integer minor units. Percentage coupons carry their rate in
basis points so that ``order * rate`` stays exact until the single half-up
rounding step.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from korken_loyalty.domain.money import apply_basis_points, format_amount


class CouponType(str, Enum):
    """Discount formulas supported at checkout."""

    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    GIFT_CARD = "GIFT_CARD"


class CouponErrorKind(str, Enum):
    """Business-rule rejections, listed in evaluation order."""

    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_YET_VALID = "NOT_YET_VALID"
    EXPIRED = "EXPIRED"
    USAGE_EXCEEDED = "USAGE_EXCEEDED"
    PER_USER_LIMIT = "PER_USER_LIMIT"
    BELOW_MINIMUM = "BELOW_MINIMUM"


_MESSAGES: dict[CouponErrorKind, str] = {
    CouponErrorKind.INVALID_REQUEST: "Gutscheincode und Bestellwert sind erforderlich",
    CouponErrorKind.NOT_FOUND: "Ungültiger Gutscheincode",
    CouponErrorKind.INACTIVE: "Dieser Gutscheincode ist nicht mehr aktiv",
    CouponErrorKind.NOT_YET_VALID: "Dieser Gutscheincode ist noch nicht gültig",
    CouponErrorKind.EXPIRED: "Dieser Gutscheincode ist abgelaufen",
    CouponErrorKind.USAGE_EXCEEDED: "Dieser Gutscheincode wurde bereits zu oft verwendet",
    CouponErrorKind.PER_USER_LIMIT: "Sie haben diesen Gutscheincode bereits verwendet",
    CouponErrorKind.BELOW_MINIMUM: "Mindestbestellwert nicht erreicht",
}


def message_for(kind: CouponErrorKind, *, min_order_amount: int | None = None, currency: str = "CHF") -> str:
    """User-safe message for a rejection."""

    if kind is CouponErrorKind.BELOW_MINIMUM and min_order_amount is not None:
        return f"Mindestbestellwert von {format_amount(min_order_amount, currency)} nicht erreicht"
    return _MESSAGES[kind]


def normalize_code(code: str) -> str:
    return code.strip().upper()


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite round-trips) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class CouponTerms:
    """Detached snapshot of the coupon fields the rules look at."""

    code: str
    type: CouponType
    value: int
    valid_from: datetime
    valid_until: datetime | None = None
    min_order_amount: int | None = None
    max_discount: int | None = None
    max_uses: int | None = None
    current_uses: int = 0
    max_uses_per_user: int | None = None
    is_active: bool = True
    id: UUID | None = None
    description: str | None = None

    @classmethod
    def from_model(cls, coupon: Any) -> "CouponTerms":
        return cls(
            id=coupon.id,
            code=coupon.code,
            type=CouponType(coupon.type),
            value=int(coupon.value),
            valid_from=ensure_utc(coupon.valid_from),
            valid_until=ensure_utc(coupon.valid_until) if coupon.valid_until else None,
            min_order_amount=coupon.min_order_amount,
            max_discount=coupon.max_discount,
            max_uses=coupon.max_uses,
            current_uses=int(coupon.current_uses or 0),
            max_uses_per_user=coupon.max_uses_per_user,
            is_active=bool(coupon.is_active),
            description=coupon.description,
        )

    @property
    def usage_exhausted(self) -> bool:
        return self.max_uses is not None and self.current_uses >= self.max_uses


def check_coupon(
    terms: CouponTerms,
    order_amount: int,
    *,
    now: datetime,
    prior_user_redemptions: int | None = None,
) -> CouponErrorKind | None:
    """Run the ordered fail-fast checks; ``None`` means the coupon applies.

    ``prior_user_redemptions`` is ``None`` for anonymous checkouts, which skips
    the per-user ceiling.
    """

    now = ensure_utc(now)
    if not terms.is_active:
        return CouponErrorKind.INACTIVE
    if now < ensure_utc(terms.valid_from):
        return CouponErrorKind.NOT_YET_VALID
    if terms.valid_until is not None and now > ensure_utc(terms.valid_until):
        return CouponErrorKind.EXPIRED
    if terms.usage_exhausted:
        return CouponErrorKind.USAGE_EXCEEDED
    if (
        prior_user_redemptions is not None
        and terms.max_uses_per_user is not None
        and prior_user_redemptions >= terms.max_uses_per_user
    ):
        return CouponErrorKind.PER_USER_LIMIT
    if terms.min_order_amount is not None and order_amount < terms.min_order_amount:
        return CouponErrorKind.BELOW_MINIMUM
    return None


def compute_discount(
    coupon_type: CouponType,
    value: int,
    order_amount: int,
    *,
    max_discount: int | None = None,
) -> int:
    """Discount in minor units, always within ``0..order_amount``."""

    if order_amount <= 0:
        return 0

    if coupon_type is CouponType.PERCENTAGE:
        discount = apply_basis_points(order_amount, value)
        if max_discount is not None:
            discount = min(discount, max_discount)
    elif coupon_type in (CouponType.FIXED_AMOUNT, CouponType.GIFT_CARD):
        discount = min(value, order_amount)
    else:  # pragma: no cover - enum is exhaustive
        raise ValueError(f"Unsupported coupon type: {coupon_type}")

    return max(0, min(discount, order_amount))


__all__ = [
    "CouponErrorKind",
    "CouponType",
    "CouponTerms",
    "check_coupon",
    "compute_discount",
    "ensure_utc",
    "message_for",
    "normalize_code",
]
