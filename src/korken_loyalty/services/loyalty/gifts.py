"""Level-gated gift entitlements and claims."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from korken_loyalty.core.errors import AccountNotFoundError
from korken_loyalty.core.settings import settings
from korken_loyalty.models.loyalty import GiftClaim, LevelGift, LoyaltyLevel
from korken_loyalty.models.user import User
from korken_loyalty.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store
from korken_loyalty.services.settings_store import GIFT_VALIDITY_DAYS_KEY, SettingsStore


class GiftClaimError(str, Enum):
    LEVEL_NOT_REACHED = "LEVEL_NOT_REACHED"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    NO_GIFTS = "NO_GIFTS"
    GIFT_NOT_FOUND = "GIFT_NOT_FOUND"


@dataclass(frozen=True, slots=True)
class GiftDescriptor:
    id: UUID
    name: str
    description: str | None = None
    image_url: str | None = None
    variant_id: str | None = None

    @classmethod
    def from_model(cls, gift: LevelGift) -> "GiftDescriptor":
        return cls(
            id=gift.id,
            name=gift.name,
            description=gift.description,
            image_url=gift.image_url,
            variant_id=gift.variant_id,
        )


@dataclass(frozen=True, slots=True)
class UnclaimedGiftLevel:
    level: int
    level_name: str
    gifts: list[GiftDescriptor] = field(default_factory=list)
    validity_days: int = 14


@dataclass(frozen=True, slots=True)
class GiftClaimResult:
    ok: bool
    level: int
    gift: GiftDescriptor | None = None
    error: GiftClaimError | None = None

    @classmethod
    def success(cls, level: int, gift: GiftDescriptor) -> "GiftClaimResult":
        return cls(ok=True, level=level, gift=gift)

    @classmethod
    def failure(cls, level: int, error: GiftClaimError) -> "GiftClaimResult":
        return cls(ok=False, level=level, error=error)


class GiftEntitlementTracker:
    """Work out which reached levels still have a gift waiting."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        telemetry: LoyaltyObservabilityStore | None = None,
    ) -> None:
        self._db = session
        self._settings_store = SettingsStore(session)
        self._telemetry = telemetry or get_loyalty_store()

    async def compute_unclaimed(self, user_id: UUID) -> list[UnclaimedGiftLevel]:
        """Reached levels with at least one gift and no claim, lowest first.

        Eligibility follows the stored level, so the result is only as fresh as
        the last reconciliation.
        """

        stored_level = await self._stored_level(user_id)
        claimed = await self._claimed_levels(user_id)
        validity_days = await self._settings_store.get_int(
            GIFT_VALIDITY_DAYS_KEY, settings.loyalty_gift_validity_days
        )

        stmt = (
            select(LoyaltyLevel)
            .where(LoyaltyLevel.level <= stored_level)
            .options(selectinload(LoyaltyLevel.gifts))
            .order_by(LoyaltyLevel.level.asc())
        )
        levels = (await self._db.execute(stmt)).scalars().all()

        return [
            UnclaimedGiftLevel(
                level=row.level,
                level_name=row.name,
                gifts=[GiftDescriptor.from_model(gift) for gift in row.gifts],
                validity_days=validity_days,
            )
            for row in levels
            if row.gifts and row.level not in claimed
        ]

    async def claim_gift(self, user_id: UUID, level: int, gift_id: UUID | None = None) -> GiftClaimResult:
        """Claim the gift of a reached level; the first listed gift when none is chosen."""

        stored_level = await self._stored_level(user_id)
        if level > stored_level:
            return GiftClaimResult.failure(level, GiftClaimError.LEVEL_NOT_REACHED)
        if level in await self._claimed_levels(user_id):
            return GiftClaimResult.failure(level, GiftClaimError.ALREADY_CLAIMED)

        stmt = select(LevelGift).where(LevelGift.level == level).order_by(LevelGift.created_at.asc())
        gifts = list((await self._db.execute(stmt)).scalars().all())
        if not gifts:
            return GiftClaimResult.failure(level, GiftClaimError.NO_GIFTS)

        if gift_id is None:
            gift = gifts[0]
        else:
            gift = next((candidate for candidate in gifts if candidate.id == gift_id), None)
            if gift is None:
                return GiftClaimResult.failure(level, GiftClaimError.GIFT_NOT_FOUND)

        self._db.add(GiftClaim(user_id=user_id, level=level, gift_id=gift.id))
        try:
            await self._db.flush()
        except IntegrityError:
            await self._db.rollback()
            logger.info("Gift already claimed concurrently", user_id=str(user_id), level=level)
            return GiftClaimResult.failure(level, GiftClaimError.ALREADY_CLAIMED)

        self._telemetry.record_gift_claim(level)
        logger.info("Claimed level gift", user_id=str(user_id), level=level, gift_id=str(gift.id))
        return GiftClaimResult.success(level, GiftDescriptor.from_model(gift))

    async def _stored_level(self, user_id: UUID) -> int:
        stmt = select(User.loyalty_level).where(User.id == user_id)
        level = (await self._db.execute(stmt)).scalar_one_or_none()
        if level is None:
            raise AccountNotFoundError(user_id)
        return int(level)

    async def _claimed_levels(self, user_id: UUID) -> set[int]:
        stmt = select(GiftClaim.level).where(GiftClaim.user_id == user_id)
        return set((await self._db.execute(stmt)).scalars().all())


__all__ = [
    "GiftClaimError",
    "GiftClaimResult",
    "GiftDescriptor",
    "GiftEntitlementTracker",
    "UnclaimedGiftLevel",
]
