"""Coupon validation and redemption services."""

from .coupon_service import (  # noqa: F401
    CouponRedemptionResult,
    CouponService,
    GiftCardStatus,
    generate_gift_card_code,
)
from .validator import CouponDescriptor, CouponValidationResult, CouponValidator  # noqa: F401
