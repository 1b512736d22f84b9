from uuid import uuid4

import pytest

from korken_loyalty.core.settings import settings
from korken_loyalty.models.loyalty import GiftClaim, LevelGift
from korken_loyalty.models.user import User
from korken_loyalty.services.loyalty.gifts import GiftClaimError, GiftEntitlementTracker
from korken_loyalty.services.loyalty.levels import LevelCatalogRepository
from korken_loyalty.services.settings_store import GIFT_VALIDITY_DAYS_KEY, SettingsStore


async def _seed_gifts(session, levels=(1, 2, 3)) -> dict[int, LevelGift]:
    await LevelCatalogRepository(session).seed_defaults()
    gifts = {level: LevelGift(level=level, name=f"Flasche Level {level}") for level in levels}
    session.add_all(gifts.values())
    await session.flush()
    return gifts


@pytest.mark.asyncio
async def test_unclaimed_levels_exclude_claims(session_factory, telemetry) -> None:
    async with session_factory() as session:
        gifts = await _seed_gifts(session)
        user = User(email="gifts@example.com", loyalty_points=1600, loyalty_level=3)
        session.add(user)
        await session.flush()
        session.add(GiftClaim(user_id=user.id, level=1, gift_id=gifts[1].id))
        await session.flush()

        unclaimed = await GiftEntitlementTracker(session, telemetry=telemetry).compute_unclaimed(user.id)

        assert [item.level for item in unclaimed] == [2, 3]
        assert [item.level_name for item in unclaimed] == ["Kellerfreund", "Kenner"]
        assert unclaimed[0].gifts[0].name == "Flasche Level 2"
        assert all(item.validity_days == settings.loyalty_gift_validity_days for item in unclaimed)


@pytest.mark.asyncio
async def test_levels_without_gifts_or_above_stored_level_are_skipped(session_factory, telemetry) -> None:
    async with session_factory() as session:
        await _seed_gifts(session, levels=(2, 4))
        user = User(email="partial@example.com", loyalty_points=1600, loyalty_level=3)
        session.add(user)
        await session.flush()

        unclaimed = await GiftEntitlementTracker(session, telemetry=telemetry).compute_unclaimed(user.id)

        assert [item.level for item in unclaimed] == [2]


@pytest.mark.asyncio
async def test_validity_days_come_from_settings_store(session_factory, telemetry) -> None:
    async with session_factory() as session:
        await _seed_gifts(session)
        user = User(email="validity@example.com", loyalty_level=2)
        session.add(user)
        await session.flush()

        tracker = GiftEntitlementTracker(session, telemetry=telemetry)
        store = SettingsStore(session)

        await store.set(GIFT_VALIDITY_DAYS_KEY, 30)
        assert {item.validity_days for item in await tracker.compute_unclaimed(user.id)} == {30}

        await store.set(GIFT_VALIDITY_DAYS_KEY, "vierzehn")
        assert {item.validity_days for item in await tracker.compute_unclaimed(user.id)} == {14}


@pytest.mark.asyncio
async def test_claim_gift_records_claim_once(session_factory, telemetry) -> None:
    async with session_factory() as session:
        gifts = await _seed_gifts(session)
        user = User(email="claim@example.com", loyalty_level=2)
        session.add(user)
        await session.flush()
        tracker = GiftEntitlementTracker(session, telemetry=telemetry)

        result = await tracker.claim_gift(user.id, 2, gift_id=gifts[2].id)
        assert result.ok
        assert result.gift.id == gifts[2].id

        again = await tracker.claim_gift(user.id, 2)
        assert again.error is GiftClaimError.ALREADY_CLAIMED

        remaining = await tracker.compute_unclaimed(user.id)
        assert [item.level for item in remaining] == [1]

    assert telemetry.snapshot().gifts == {"claims": 1, "level:2": 1}


@pytest.mark.asyncio
async def test_claim_gift_rejections(session_factory, telemetry) -> None:
    async with session_factory() as session:
        await _seed_gifts(session, levels=(1,))
        user = User(email="reject@example.com", loyalty_level=2)
        session.add(user)
        await session.flush()
        tracker = GiftEntitlementTracker(session, telemetry=telemetry)

        assert (await tracker.claim_gift(user.id, 3)).error is GiftClaimError.LEVEL_NOT_REACHED
        assert (await tracker.claim_gift(user.id, 2)).error is GiftClaimError.NO_GIFTS
        assert (await tracker.claim_gift(user.id, 1, gift_id=uuid4())).error is GiftClaimError.GIFT_NOT_FOUND

        claimed = await tracker.claim_gift(user.id, 1)
        assert claimed.ok
        assert claimed.gift.name == "Flasche Level 1"
