"""SQLAlchemy models package."""

from .coupon import Coupon, CouponRedemption, CouponType  # noqa: F401
from .loyalty import (  # noqa: F401
    GiftClaim,
    LevelGift,
    LoyaltyLevel,
    LoyaltyProgramRule,
    PointTransaction,
)
from .settings import SiteSetting  # noqa: F401
from .user import User  # noqa: F401

__all__ = [
    "Coupon",
    "CouponRedemption",
    "CouponType",
    "GiftClaim",
    "LevelGift",
    "LoyaltyLevel",
    "LoyaltyProgramRule",
    "PointTransaction",
    "SiteSetting",
    "User",
]
