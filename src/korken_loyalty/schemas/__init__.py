"""Validated input schemas for administrative and checkout payloads."""

from .coupon import CouponCreate, GiftCardPurchase  # noqa: F401
from .loyalty import LevelGiftCreate, LevelUpdate  # noqa: F401
