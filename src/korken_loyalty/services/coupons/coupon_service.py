"""Coupon administration, gift-card issuance and checkout redemption."""

from __future__ import annotations

import json
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from korken_loyalty.core.errors import CouponNotFoundError, DuplicateCouponCodeError, LoyaltyStorageError
from korken_loyalty.core.settings import settings
from korken_loyalty.domain.coupons.discounts import CouponErrorKind, CouponType, ensure_utc, message_for
from korken_loyalty.domain.money import format_amount
from korken_loyalty.models.coupon import Coupon, CouponRedemption
from korken_loyalty.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store
from korken_loyalty.schemas.coupon import CouponCreate, GiftCardPurchase
from korken_loyalty.services.coupons.validator import CouponDescriptor, CouponValidator

GIFT_CARD_CODE_ALPHABET = string.ascii_uppercase + string.digits
GIFT_CARD_CODE_LENGTH = 6
GIFT_CARD_CODE_ATTEMPTS = 20


@dataclass(frozen=True, slots=True)
class CouponRedemptionResult:
    ok: bool
    coupon: Optional[CouponDescriptor] = None
    discount_amount: int = 0
    redemption_id: Optional[UUID] = None
    error: Optional[CouponErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, error: CouponErrorKind, message: str | None = None) -> "CouponRedemptionResult":
        return cls(ok=False, error=error, message=message or message_for(error, currency=settings.currency))


@dataclass(frozen=True, slots=True)
class GiftCardStatus:
    code: str
    found: bool
    is_active: bool = False
    value: Optional[int] = None
    valid_until: Optional[datetime] = None


def generate_gift_card_code(prefix: str | None = None) -> str:
    """``GESCHENK`` followed by six random upper-case alphanumerics."""

    suffix = "".join(secrets.choice(GIFT_CARD_CODE_ALPHABET) for _ in range(GIFT_CARD_CODE_LENGTH))
    return f"{prefix or settings.gift_card_code_prefix}{suffix}"


class CouponService:
    """Create coupons and settle them against orders."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        telemetry: LoyaltyObservabilityStore | None = None,
    ) -> None:
        self._db = session
        self._telemetry = telemetry or get_loyalty_store()
        self._validator = CouponValidator(session, telemetry=self._telemetry)

    async def redeem(
        self,
        code: str,
        order_amount: int,
        user_id: UUID | None = None,
        order_reference: str | None = None,
        now: datetime | None = None,
    ) -> CouponRedemptionResult:
        """Re-validate and consume one use of the coupon.

        The usage increment is a single conditional update, so of several
        checkouts that all validated the last remaining use only one
        succeeds; the others get ``USAGE_EXCEEDED``. When the coupon has a
        per-user ceiling the redemption row carries the customer's next
        ``use_ordinal``; a concurrent checkout by the same customer claiming
        that ordinal fails on the unique key and gets ``PER_USER_LIMIT``.
        The redemption row is written in the same unit; the caller commits.
        """

        coupon, validation = await self._validator.evaluate(code, order_amount, user_id=user_id, now=now)
        if coupon is None or not validation.ok:
            self._telemetry.record_coupon_outcome(validation.error.value)
            return CouponRedemptionResult(ok=False, error=validation.error, message=validation.message)

        coupon_id, coupon_code = coupon.id, coupon.code
        use_ordinal: int | None = None
        if user_id is not None and coupon.max_uses_per_user is not None:
            prior = await self._validator.count_user_redemptions(coupon_id, user_id)
            if prior >= coupon.max_uses_per_user:
                return self._reject(CouponErrorKind.PER_USER_LIMIT, coupon_code)
            use_ordinal = prior + 1

        try:
            stmt = (
                update(Coupon)
                .where(
                    Coupon.id == coupon_id,
                    Coupon.is_active.is_(True),
                    or_(Coupon.max_uses.is_(None), Coupon.current_uses < Coupon.max_uses),
                )
                .values(current_uses=Coupon.current_uses + 1)
                .execution_options(synchronize_session=False)
            )
            result = await self._db.execute(stmt)
            if result.rowcount != 1:
                refreshed = await self._reload(coupon_id)
                error = (
                    CouponErrorKind.INACTIVE
                    if refreshed is not None and not refreshed.is_active
                    else CouponErrorKind.USAGE_EXCEEDED
                )
                return self._reject(error, coupon_code)

            redemption = CouponRedemption(
                coupon_id=coupon_id,
                user_id=user_id,
                use_ordinal=use_ordinal,
                order_reference=order_reference,
                order_amount=order_amount,
                discount_amount=validation.discount_amount,
            )
            self._db.add(redemption)
            await self._db.flush()
            await self._reload(coupon_id)
        except IntegrityError as error:
            await self._db.rollback()
            if use_ordinal is None:
                logger.exception("Coupon redemption failed; rolled back", code=coupon_code)
                raise LoyaltyStorageError(f"Could not redeem coupon {coupon_code}") from error
            return self._reject(CouponErrorKind.PER_USER_LIMIT, coupon_code)
        except SQLAlchemyError as error:
            await self._db.rollback()
            logger.exception("Coupon redemption failed; rolled back", code=coupon_code)
            raise LoyaltyStorageError(f"Could not redeem coupon {coupon_code}") from error

        self._telemetry.record_coupon_outcome("redeemed")
        logger.info(
            "Redeemed coupon",
            code=coupon_code,
            user_id=str(user_id) if user_id else None,
            order_reference=order_reference,
            discount_amount=validation.discount_amount,
        )
        return CouponRedemptionResult(
            ok=True,
            coupon=validation.coupon,
            discount_amount=validation.discount_amount,
            redemption_id=redemption.id,
        )

    async def create_coupon(self, payload: CouponCreate) -> Coupon:
        if await self._find_by_code(payload.code) is not None:
            raise DuplicateCouponCodeError(payload.code)

        coupon = Coupon(
            code=payload.code,
            type=payload.type,
            value=payload.stored_value,
            min_order_amount=payload.min_order_amount,
            max_discount=payload.max_discount,
            valid_from=ensure_utc(payload.valid_from),
            valid_until=ensure_utc(payload.valid_until) if payload.valid_until else None,
            max_uses=payload.max_uses,
            max_uses_per_user=payload.max_uses_per_user,
            is_active=payload.is_active,
            description=payload.description,
        )
        self._db.add(coupon)
        try:
            await self._db.flush()
        except IntegrityError as error:
            await self._db.rollback()
            raise DuplicateCouponCodeError(payload.code) from error

        logger.info("Created coupon", code=coupon.code, type=coupon.type.value, value=coupon.value)
        return coupon

    async def issue_gift_card(self, purchase: GiftCardPurchase, *, now: datetime | None = None) -> Coupon:
        """Create an inactive single-use gift card; activate it once payment settles."""

        if purchase.amount < settings.gift_card_min_amount:
            raise ValueError(
                f"Gift cards start at {format_amount(settings.gift_card_min_amount, settings.currency)}"
            )

        issued_at = ensure_utc(now or datetime.now(timezone.utc))
        code = await self._unique_gift_card_code()
        note = {
            "recipientEmail": purchase.recipient_email,
            "recipientName": purchase.recipient_name,
            "senderName": purchase.sender_name,
            "message": purchase.message,
            "purchasedAt": issued_at.isoformat(),
            "purchasedBy": purchase.purchased_by or "guest",
        }
        coupon = Coupon(
            code=code,
            type=CouponType.GIFT_CARD,
            value=purchase.amount,
            valid_from=issued_at,
            valid_until=issued_at + timedelta(days=settings.gift_card_validity_days),
            max_uses=1,
            max_uses_per_user=1,
            is_active=False,
            description=f"Geschenkgutschein im Wert von {format_amount(purchase.amount, settings.currency)}",
            internal_note=json.dumps(note),
        )
        self._db.add(coupon)
        await self._db.flush()
        logger.info("Issued gift card", code=code, amount=purchase.amount)
        return coupon

    async def activate_gift_card(self, coupon_id: UUID) -> Coupon:
        coupon = await self._db.get(Coupon, coupon_id)
        if coupon is None or coupon.type is not CouponType.GIFT_CARD:
            raise CouponNotFoundError(f"Gift card {coupon_id} not found")
        if not coupon.is_active:
            coupon.is_active = True
            await self._db.flush()
            logger.info("Activated gift card", code=coupon.code)
        return coupon

    async def gift_card_status(self, code: str) -> GiftCardStatus:
        normalized = code.strip().upper()
        coupon = await self._find_by_code(normalized)
        if coupon is None or coupon.type is not CouponType.GIFT_CARD:
            return GiftCardStatus(code=normalized, found=False)
        return GiftCardStatus(
            code=coupon.code,
            found=True,
            is_active=bool(coupon.is_active),
            value=coupon.value,
            valid_until=ensure_utc(coupon.valid_until) if coupon.valid_until else None,
        )

    async def _unique_gift_card_code(self) -> str:
        for _ in range(GIFT_CARD_CODE_ATTEMPTS):
            code = generate_gift_card_code()
            if await self._find_by_code(code) is None:
                return code
        raise LoyaltyStorageError("Could not allocate a unique gift card code")

    async def _find_by_code(self, code: str) -> Coupon | None:
        stmt = select(Coupon).where(Coupon.code == code)
        return (await self._db.execute(stmt)).scalar_one_or_none()

    async def _reload(self, coupon_id: UUID) -> Coupon | None:
        stmt = select(Coupon).where(Coupon.id == coupon_id).execution_options(populate_existing=True)
        return (await self._db.execute(stmt)).scalar_one_or_none()

    def _reject(self, error: CouponErrorKind, code: str) -> CouponRedemptionResult:
        logger.info("Coupon redemption lost to a concurrent checkout", code=code, reason=error.value)
        self._telemetry.record_coupon_outcome(error.value)
        return CouponRedemptionResult.failure(error)


__all__ = [
    "CouponRedemptionResult",
    "CouponService",
    "GiftCardStatus",
    "generate_gift_card_code",
]
