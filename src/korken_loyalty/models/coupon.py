"""Promotional coupon and redemption models.

Money columns hold integer minor units (Rappen). ``Coupon.value`` is read by
type: basis points for percentage coupons (``1000`` == 10 %), minor units for
fixed-amount and gift-card coupons.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from korken_loyalty.db.base import Base
from korken_loyalty.domain.coupons.discounts import CouponType


class Coupon(Base):
    """Promotional code with a discount formula, validity window and usage ceilings."""

    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("value >= 0", name="ck_coupons_value_non_negative"),
        CheckConstraint("current_uses >= 0", name="ck_coupons_current_uses_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String, nullable=False, unique=True, index=True)
    type = Column(SqlEnum(CouponType, name="coupon_type"), nullable=False)
    value = Column(Integer, nullable=False)
    min_order_amount = Column(Integer, nullable=True)
    max_discount = Column(Integer, nullable=True)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0, server_default="0")
    max_uses_per_user = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    description = Column(String, nullable=True)
    internal_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    redemptions = relationship(
        "CouponRedemption", back_populates="coupon", cascade="all, delete-orphan"
    )


class CouponRedemption(Base):
    """One row per successful redemption; feeds the per-user usage count.

    ``use_ordinal`` numbers a customer's redemptions of a coupon (1, 2, ...)
    when the coupon has a per-user ceiling. Two checkouts claiming the same
    ordinal collide on the unique key.
    """

    __tablename__ = "coupon_redemptions"
    __table_args__ = (
        UniqueConstraint("coupon_id", "user_id", "use_ordinal", name="uq_coupon_redemptions_user_ordinal"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    coupon_id = Column(
        UUID(as_uuid=True),
        ForeignKey("coupons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    use_ordinal = Column(Integer, nullable=True)
    order_reference = Column(String, nullable=True)
    order_amount = Column(Integer, nullable=False)
    discount_amount = Column(Integer, nullable=False)
    redeemed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    coupon = relationship("Coupon", back_populates="redemptions")
