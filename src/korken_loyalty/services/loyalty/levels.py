"""Level catalog persistence and stored-level reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from korken_loyalty.core.errors import AccountNotFoundError, CatalogConfigurationError, LedgerConflictError
from korken_loyalty.core.settings import settings
from korken_loyalty.domain.loyalty.catalog import DEFAULT_LEVELS, LevelCatalog, LevelDefinition
from korken_loyalty.models.loyalty import LevelGift, LoyaltyLevel
from korken_loyalty.models.user import User
from korken_loyalty.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store
from korken_loyalty.schemas.loyalty import LevelGiftCreate, LevelUpdate


@dataclass(frozen=True, slots=True)
class LevelTransition:
    """Outcome of reconciling a user's stored level against their balance."""

    user_id: UUID
    changed: bool
    old_level: int
    new_level: int
    level_name: str

    @property
    def is_upgrade(self) -> bool:
        return self.new_level > self.old_level


LevelTransitionNotifier = Callable[[LevelTransition], Awaitable[None]]


def merge_level_rows(
    existing: Iterable[LoyaltyLevel],
    levels: Sequence[LevelDefinition] = DEFAULT_LEVELS,
) -> tuple[list[LoyaltyLevel], list[LoyaltyLevel]]:
    """Upsert ``levels`` onto ``existing`` rows by level number.

    Returns every seeded row and, separately, the new rows the caller still
    has to add to its session. A broken catalog raises before any row is
    touched.
    """

    LevelCatalog(levels)
    by_level = {row.level: row for row in existing}
    seeded: list[LoyaltyLevel] = []
    created: list[LoyaltyLevel] = []
    for definition in levels:
        row = by_level.get(definition.level)
        if row is None:
            row = LoyaltyLevel(level=definition.level)
            created.append(row)
        for column, value in definition.row_values().items():
            setattr(row, column, value)
        seeded.append(row)
    return seeded, created


class LevelCatalogRepository:
    """Load, seed and edit the persisted level catalog."""

    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def list_levels(self, *, max_level: int | None = None, with_gifts: bool = False) -> list[LoyaltyLevel]:
        stmt = select(LoyaltyLevel).order_by(LoyaltyLevel.level.asc())
        if max_level is not None:
            stmt = stmt.where(LoyaltyLevel.level <= max_level)
        if with_gifts:
            stmt = stmt.options(selectinload(LoyaltyLevel.gifts))
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def load_catalog(self) -> LevelCatalog:
        """Catalog from ``loyalty_levels``; the built-in table when nothing is seeded."""

        rows = await self.list_levels()
        if not rows:
            logger.debug("No persisted loyalty levels; using defaults")
            return LevelCatalog(DEFAULT_LEVELS)
        return LevelCatalog.from_rows(rows)

    async def seed_defaults(self, levels: tuple[LevelDefinition, ...] = DEFAULT_LEVELS) -> list[LoyaltyLevel]:
        """Upsert the given definitions by level number."""

        seeded, created = merge_level_rows(await self.list_levels(), levels)
        self._db.add_all(created)
        await self._db.flush()
        logger.info("Seeded loyalty levels", count=len(seeded))
        return seeded

    async def update_level(self, payload: LevelUpdate) -> LoyaltyLevel:
        """Apply an admin edit after re-validating the whole catalog."""

        rows = await self.list_levels()
        by_level = {row.level: row for row in rows}
        row = by_level.get(payload.level)
        if row is None:
            raise CatalogConfigurationError(f"Level {payload.level} is not seeded")

        catalog = LevelCatalog.from_rows(rows).with_updated_level(
            payload.level,
            name=payload.name,
            benefits=payload.benefits,
        )
        updated = catalog.get(payload.level)
        if updated is None:
            raise CatalogConfigurationError(f"Level {payload.level} missing from the updated catalog")
        row.name = updated.name
        row.benefits = list(updated.benefits)
        await self._db.flush()
        logger.info("Updated loyalty level", level=payload.level, benefits=len(updated.benefits))
        return row

    async def add_gift(self, payload: LevelGiftCreate) -> LevelGift:
        stmt = select(LoyaltyLevel.level).where(LoyaltyLevel.level == payload.level)
        if (await self._db.execute(stmt)).scalar_one_or_none() is None:
            raise CatalogConfigurationError(f"Level {payload.level} is not seeded")

        gift = LevelGift(
            level=payload.level,
            name=payload.name,
            description=payload.description,
            image_url=payload.image_url,
            variant_id=payload.variant_id,
        )
        self._db.add(gift)
        await self._db.flush()
        logger.info("Added level gift", level=payload.level, gift_id=str(gift.id))
        return gift

    async def remove_gift(self, gift_id: UUID) -> bool:
        gift = await self._db.get(LevelGift, gift_id)
        if gift is None:
            return False
        await self._db.delete(gift)
        await self._db.flush()
        logger.info("Removed level gift", gift_id=str(gift_id))
        return True


class LevelTransitionService:
    """Keep ``users.loyalty_level`` equal to the level resolved from the balance."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        catalog: LevelCatalog | None = None,
        notifier: LevelTransitionNotifier | None = None,
        telemetry: LoyaltyObservabilityStore | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._db = session
        self._catalog = catalog
        self._repository = LevelCatalogRepository(session)
        self._notifier = notifier
        self._telemetry = telemetry or get_loyalty_store()
        self._max_retries = max_retries or settings.ledger_max_retries

    async def catalog(self) -> LevelCatalog:
        if self._catalog is None:
            self._catalog = await self._repository.load_catalog()
        return self._catalog

    async def reconcile(self, user_id: UUID) -> LevelTransition:
        """Set the stored level to ``resolve_level(balance)``.

        The target is resolved directly from the current balance, so a grant
        that crosses several thresholds lands in one step. The write is
        conditioned on the balance it was resolved from; if the balance moves
        meanwhile the resolution is repeated.
        """

        catalog = await self.catalog()
        for _ in range(self._max_retries):
            stmt = select(User.loyalty_points, User.loyalty_level).where(User.id == user_id)
            row = (await self._db.execute(stmt)).one_or_none()
            if row is None:
                raise AccountNotFoundError(user_id)
            points, stored_level = int(row.loyalty_points), int(row.loyalty_level)

            target = catalog.resolve_level(points)
            if target.level == stored_level:
                return LevelTransition(
                    user_id=user_id,
                    changed=False,
                    old_level=stored_level,
                    new_level=stored_level,
                    level_name=target.name,
                )

            result = await self._db.execute(
                update(User)
                .where(User.id == user_id, User.loyalty_points == points)
                .values(loyalty_level=target.level)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                continue

            await self._db.execute(
                select(User).where(User.id == user_id).execution_options(populate_existing=True)
            )
            transition = LevelTransition(
                user_id=user_id,
                changed=True,
                old_level=stored_level,
                new_level=target.level,
                level_name=target.name,
            )
            self._telemetry.record_level_transition(stored_level, target.level)
            logger.info(
                "Loyalty level changed",
                user_id=str(user_id),
                old_level=stored_level,
                new_level=target.level,
                level_name=target.name,
            )
            if self._notifier is not None:
                await self._notifier(transition)
            return transition

        raise LedgerConflictError(user_id, self._max_retries)


__all__ = [
    "LevelCatalogRepository",
    "LevelTransition",
    "LevelTransitionNotifier",
    "LevelTransitionService",
    "merge_level_rows",
]
