from datetime import datetime, timedelta, timezone

import pytest

from korken_loyalty.domain.coupons.discounts import CouponErrorKind, CouponTerms, CouponType
from korken_loyalty.models.coupon import Coupon, CouponRedemption
from korken_loyalty.models.user import User
from korken_loyalty.services.coupons.validator import CouponDescriptor, CouponValidator

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _coupon(code: str, **overrides) -> Coupon:
    values = {
        "code": code,
        "type": CouponType.PERCENTAGE,
        "value": 1000,
        "valid_from": NOW - timedelta(days=30),
        "is_active": True,
    }
    values.update(overrides)
    return Coupon(**values)


@pytest.mark.asyncio
async def test_percentage_coupon_is_capped(session_factory, telemetry) -> None:
    async with session_factory() as session:
        session.add(_coupon("SUMMER10", max_discount=2000))
        await session.flush()

        result = await CouponValidator(session, telemetry=telemetry).validate("summer10", 30000, now=NOW)

        assert result.ok
        assert result.discount_amount == 2000
        assert result.coupon.code == "SUMMER10"
        assert result.coupon.type is CouponType.PERCENTAGE


@pytest.mark.asyncio
async def test_fixed_coupon_capped_to_order(session_factory, telemetry) -> None:
    async with session_factory() as session:
        session.add(_coupon("FIXED20", type=CouponType.FIXED_AMOUNT, value=2000))
        await session.flush()

        result = await CouponValidator(session, telemetry=telemetry).validate("FIXED20", 1500, now=NOW)

        assert result.ok
        assert result.discount_amount == 1500


@pytest.mark.asyncio
async def test_usage_exhausted_coupon(session_factory, telemetry) -> None:
    async with session_factory() as session:
        session.add(_coupon("ONCE", max_uses=1, current_uses=1))
        await session.flush()

        result = await CouponValidator(session, telemetry=telemetry).validate("ONCE", 5000, now=NOW)

        assert not result.ok
        assert result.error is CouponErrorKind.USAGE_EXCEEDED
        assert result.message == "Dieser Gutscheincode wurde bereits zu oft verwendet"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("code", "order_amount", "overrides", "expected"),
    [
        ("", 5000, {}, CouponErrorKind.INVALID_REQUEST),
        ("ANY", 0, {}, CouponErrorKind.INVALID_REQUEST),
        ("MISSING", 5000, None, CouponErrorKind.NOT_FOUND),
        ("ANY", 5000, {"is_active": False}, CouponErrorKind.INACTIVE),
        ("ANY", 5000, {"valid_from": NOW + timedelta(days=1)}, CouponErrorKind.NOT_YET_VALID),
        ("ANY", 5000, {"valid_until": NOW - timedelta(days=1)}, CouponErrorKind.EXPIRED),
        ("ANY", 5000, {"min_order_amount": 8000}, CouponErrorKind.BELOW_MINIMUM),
    ],
)
async def test_rejections(session_factory, telemetry, code, order_amount, overrides, expected) -> None:
    async with session_factory() as session:
        if overrides is not None:
            session.add(_coupon("ANY", **overrides))
            await session.flush()

        result = await CouponValidator(session, telemetry=telemetry).validate(code, order_amount, now=NOW)

        assert not result.ok
        assert result.error is expected
        assert result.message
        assert result.discount_amount == 0

    assert telemetry.snapshot().coupons == {expected.value: 1}


@pytest.mark.asyncio
async def test_below_minimum_message_names_amount(session_factory, telemetry) -> None:
    async with session_factory() as session:
        session.add(_coupon("MIN50", min_order_amount=5000))
        await session.flush()

        result = await CouponValidator(session, telemetry=telemetry).validate("MIN50", 4000, now=NOW)

        assert result.message == "Mindestbestellwert von CHF 50.00 nicht erreicht"


@pytest.mark.asyncio
async def test_per_user_limit_counts_redemptions(session_factory, telemetry) -> None:
    async with session_factory() as session:
        coupon = _coupon("WELCOME", max_uses_per_user=1)
        user = User(email="limit@example.com")
        other = User(email="other@example.com")
        session.add_all([coupon, user, other])
        await session.flush()
        session.add(
            CouponRedemption(coupon_id=coupon.id, user_id=user.id, order_amount=5000, discount_amount=500)
        )
        await session.flush()

        validator = CouponValidator(session, telemetry=telemetry)

        repeat = await validator.validate("WELCOME", 5000, user_id=user.id, now=NOW)
        assert repeat.error is CouponErrorKind.PER_USER_LIMIT

        first_time = await validator.validate("WELCOME", 5000, user_id=other.id, now=NOW)
        assert first_time.ok

        anonymous = await validator.validate("WELCOME", 5000, now=NOW)
        assert anonymous.ok


@pytest.mark.asyncio
async def test_expired_reported_before_usage(session_factory, telemetry) -> None:
    async with session_factory() as session:
        session.add(_coupon("OLD", valid_until=NOW - timedelta(days=1), max_uses=1, current_uses=1))
        await session.flush()

        result = await CouponValidator(session, telemetry=telemetry).validate("OLD", 5000, now=NOW)

        assert result.error is CouponErrorKind.EXPIRED


def test_descriptor_requires_persisted_coupon() -> None:
    draft = CouponTerms(code="DRAFT", type=CouponType.PERCENTAGE, value=1000, valid_from=NOW)

    with pytest.raises(ValueError):
        CouponDescriptor.from_terms(draft)
