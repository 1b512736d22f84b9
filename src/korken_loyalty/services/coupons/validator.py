"""Checkout-time coupon validation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from korken_loyalty.core.settings import settings
from korken_loyalty.domain.coupons.discounts import (
    CouponErrorKind,
    CouponTerms,
    CouponType,
    check_coupon,
    compute_discount,
    message_for,
    normalize_code,
)
from korken_loyalty.models.coupon import Coupon, CouponRedemption
from korken_loyalty.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store


@dataclass(frozen=True, slots=True)
class CouponDescriptor:
    """Public view of an applicable coupon."""

    id: UUID
    code: str
    type: CouponType
    value: int
    description: Optional[str] = None

    @classmethod
    def from_terms(cls, terms: CouponTerms) -> "CouponDescriptor":
        if terms.id is None:
            raise ValueError(f"Coupon {terms.code} has not been persisted")
        return cls(
            id=terms.id,
            code=terms.code,
            type=terms.type,
            value=terms.value,
            description=terms.description,
        )


@dataclass(frozen=True, slots=True)
class CouponValidationResult:
    ok: bool
    coupon: Optional[CouponDescriptor] = None
    discount_amount: int = 0
    error: Optional[CouponErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, coupon: CouponDescriptor, discount_amount: int) -> "CouponValidationResult":
        return cls(ok=True, coupon=coupon, discount_amount=discount_amount)

    @classmethod
    def failure(cls, error: CouponErrorKind, message: str) -> "CouponValidationResult":
        return cls(ok=False, error=error, message=message)


class CouponValidator:
    """Read-only coupon checks for a prospective order.

    Validation does not reserve anything; :class:`CouponService.redeem`
    re-runs the same checks and settles the usage count atomically.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        telemetry: LoyaltyObservabilityStore | None = None,
    ) -> None:
        self._db = session
        self._telemetry = telemetry or get_loyalty_store()

    async def validate(
        self,
        code: str,
        order_amount: int,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> CouponValidationResult:
        _, result = await self.evaluate(code, order_amount, user_id=user_id, now=now)
        self._telemetry.record_coupon_outcome("valid" if result.ok else result.error.value)
        return result

    async def evaluate(
        self,
        code: str,
        order_amount: int,
        *,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> tuple[Optional[Coupon], CouponValidationResult]:
        """Validation result together with the loaded coupon row, if any."""

        normalized = normalize_code(code or "")
        if not normalized or order_amount is None or order_amount <= 0:
            return None, self._reject(CouponErrorKind.INVALID_REQUEST, normalized)

        stmt = select(Coupon).where(Coupon.code == normalized)
        coupon = (await self._db.execute(stmt)).scalar_one_or_none()
        if coupon is None:
            return None, self._reject(CouponErrorKind.NOT_FOUND, normalized)

        terms = CouponTerms.from_model(coupon)
        prior = await self.count_user_redemptions(coupon.id, user_id) if user_id is not None else None
        error = check_coupon(
            terms,
            order_amount,
            now=now or datetime.now(timezone.utc),
            prior_user_redemptions=prior,
        )
        if error is not None:
            return coupon, self._reject(error, normalized, min_order_amount=terms.min_order_amount)

        discount = compute_discount(terms.type, terms.value, order_amount, max_discount=terms.max_discount)
        return coupon, CouponValidationResult.success(CouponDescriptor.from_terms(terms), discount)

    async def count_user_redemptions(self, coupon_id: UUID, user_id: UUID) -> int:
        stmt = select(func.count(CouponRedemption.id)).where(
            CouponRedemption.coupon_id == coupon_id,
            CouponRedemption.user_id == user_id,
        )
        return int((await self._db.execute(stmt)).scalar_one())

    @staticmethod
    def _reject(
        kind: CouponErrorKind,
        code: str,
        *,
        min_order_amount: int | None = None,
    ) -> CouponValidationResult:
        logger.debug("Coupon rejected", code=code, reason=kind.value)
        message = message_for(kind, min_order_amount=min_order_amount, currency=settings.currency)
        return CouponValidationResult.failure(kind, message)


__all__ = ["CouponDescriptor", "CouponValidationResult", "CouponValidator"]
