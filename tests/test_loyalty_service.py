from decimal import Decimal

import pytest

from korken_loyalty.domain.loyalty.badges import BadgeSignals
from korken_loyalty.domain.loyalty.points import PointAction
from korken_loyalty.models.loyalty import LoyaltyProgramRule
from korken_loyalty.models.user import User
from korken_loyalty.services.loyalty import LoyaltyService


@pytest.mark.asyncio
async def test_purchase_points_use_configured_ratio(session_factory, telemetry) -> None:
    async with session_factory() as session:
        user = User(email="buyer@example.com")
        session.add(user)
        await session.flush()
        service = LoyaltyService(session, telemetry=telemetry)

        award = await service.award_purchase_points(user.id, 55099, order_reference="ORD-42")
        await session.commit()

        assert award.points == 550
        assert award.transaction.reference_id == "ORD-42"
        assert award.transition.new_level == 2
        assert user.loyalty_points == 550


@pytest.mark.asyncio
async def test_purchase_rule_overrides_default_ratio(session_factory, telemetry) -> None:
    async with session_factory() as session:
        session.add(LoyaltyProgramRule(identifier="purchase", points=Decimal("2.5")))
        user = User(email="double@example.com")
        session.add(user)
        await session.flush()
        service = LoyaltyService(session, telemetry=telemetry)

        assert await service.purchase_ratio() == Decimal("2.5")
        award = await service.award_purchase_points(user.id, 1000)

        assert award.points == 25


@pytest.mark.asyncio
async def test_tiny_orders_earn_nothing(session_factory, telemetry) -> None:
    async with session_factory() as session:
        user = User(email="tiny@example.com")
        session.add(user)
        await session.flush()

        award = await LoyaltyService(session, telemetry=telemetry).award_purchase_points(user.id, 99)

        assert award.points == 0
        assert award.transaction is None
        assert user.loyalty_points == 0


@pytest.mark.asyncio
async def test_action_points_and_snapshot(session_factory, telemetry) -> None:
    async with session_factory() as session:
        user = User(email="actions@example.com", loyalty_points=1400, loyalty_level=2)
        session.add(user)
        await session.flush()
        service = LoyaltyService(session, telemetry=telemetry)

        award = await service.award_action_points(user.id, PointAction.EVENT_ATTENDANCE, reference_id="event-7")

        assert award.points == 100
        assert award.transaction.reason == "event_attendance"
        assert award.transition.new_level == 3

        snapshot = await service.snapshot(user.id)
        assert snapshot.points == 1500
        assert (snapshot.level, snapshot.level_name) == (3, "Kenner")
        assert (snapshot.next_level, snapshot.next_level_name) == (4, "Sommelier-Kreis")
        assert snapshot.points_to_next_level == 3500
        assert "Vorverkaufszugang zu neuen Weinen" in snapshot.benefits


@pytest.mark.asyncio
async def test_adjustment_may_go_negative(session_factory, telemetry) -> None:
    async with session_factory() as session:
        user = User(email="negative@example.com", loyalty_points=40)
        session.add(user)
        await session.flush()
        service = LoyaltyService(session, telemetry=telemetry)

        award = await service.adjust_points(user.id, -100, "refund", reference_id="ORD-9")

        assert award.transaction.balance_after == -60
        snapshot = await service.snapshot(user.id)
        assert snapshot.level == 1
        assert snapshot.points_to_next_level == 560


@pytest.mark.asyncio
async def test_evaluate_badges(session_factory, telemetry) -> None:
    async with session_factory() as session:
        service = LoyaltyService(session, telemetry=telemetry)

        assert service.evaluate_badges(BadgeSignals(tenure=24, regions=2)) == ["loyal_customer"]
