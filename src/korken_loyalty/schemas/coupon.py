from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from korken_loyalty.domain.coupons.discounts import CouponType, normalize_code
from korken_loyalty.domain.money import percent_to_basis_points

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CouponCreate(BaseModel):
    """Administrator-issued coupon.

    ``value`` is a percentage (``10`` or ``"12.5"``) for percentage coupons and
    minor units otherwise; other money fields are minor units. Use
    :attr:`stored_value` for the persisted form.
    """

    model_config = ConfigDict(populate_by_name=True)

    code: NonBlankStr
    type: CouponType
    value: Decimal = Field(..., gt=0)
    min_order_amount: int | None = Field(None, ge=0, alias="minOrderAmount")
    max_discount: int | None = Field(None, gt=0, alias="maxDiscount")
    valid_from: datetime = Field(..., alias="validFrom")
    valid_until: datetime | None = Field(None, alias="validUntil")
    max_uses: int | None = Field(None, gt=0, alias="maxUses")
    max_uses_per_user: int | None = Field(1, gt=0, alias="maxUsesPerUser")
    is_active: bool = Field(True, alias="isActive")
    description: str | None = None

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return normalize_code(value)

    @model_validator(mode="after")
    def _check_consistency(self) -> "CouponCreate":
        if self.valid_until is not None and self.valid_until < self.valid_from:
            raise ValueError("validUntil must not precede validFrom")
        if self.type is CouponType.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage coupons cannot exceed 100 %")
        if self.type is CouponType.PERCENTAGE and percent_to_basis_points(self.value) < 1:
            raise ValueError("Percentage coupons need at least 0.01 %")
        if self.type is not CouponType.PERCENTAGE and self.value != self.value.to_integral_value():
            raise ValueError("Fixed and gift-card values are whole minor units")
        if self.type is not CouponType.PERCENTAGE and self.max_discount is not None:
            raise ValueError("maxDiscount only applies to percentage coupons")
        return self

    @property
    def stored_value(self) -> int:
        """Basis points for percentage coupons, minor units otherwise."""

        if self.type is CouponType.PERCENTAGE:
            return percent_to_basis_points(self.value)
        return int(self.value)


class GiftCardPurchase(BaseModel):
    """Gift-card order placed by a customer; amount in minor units."""

    model_config = ConfigDict(populate_by_name=True)

    amount: int = Field(..., gt=0)
    recipient_email: NonBlankStr = Field(..., alias="recipientEmail")
    sender_name: NonBlankStr = Field(..., alias="senderName")
    recipient_name: str | None = Field(None, alias="recipientName")
    message: str | None = None
    purchased_by: str | None = Field(None, alias="purchasedBy")

    @field_validator("recipient_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid recipient email")
        return value.lower()


__all__ = ["CouponCreate", "GiftCardPurchase"]
