"""Service layer tying earning rules, the ledger and level reconciliation together."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from korken_loyalty.core.errors import AccountNotFoundError
from korken_loyalty.core.settings import settings
from korken_loyalty.domain.loyalty.badges import BadgeEligibilityEngine, BadgeSignals
from korken_loyalty.domain.loyalty.points import (
    PURCHASE_RULE_IDENTIFIER,
    PointAction,
    points_for_action,
    points_for_purchase,
)
from korken_loyalty.models.loyalty import LoyaltyProgramRule, PointTransaction
from korken_loyalty.models.user import User
from korken_loyalty.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store
from korken_loyalty.services.loyalty.ledger import PointLedger
from korken_loyalty.services.loyalty.levels import LevelTransition, LevelTransitionNotifier, LevelTransitionService


@dataclass
class PointsAward:
    """Ledger row and level outcome of one earning event."""

    points: int
    transaction: Optional[PointTransaction]
    transition: Optional[LevelTransition]


@dataclass
class LoyaltySnapshot:
    """Serializable loyalty overview for account pages."""

    user_id: UUID
    points: int
    level: int
    level_name: str
    next_level: Optional[int]
    next_level_name: Optional[str]
    points_to_next_level: int
    benefits: list[str]


class LoyaltyService:
    """Award points and report loyalty standing."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        notifier: LevelTransitionNotifier | None = None,
        badge_engine: BadgeEligibilityEngine | None = None,
        telemetry: LoyaltyObservabilityStore | None = None,
    ) -> None:
        self._db = session
        telemetry = telemetry or get_loyalty_store()
        self._ledger = PointLedger(session, telemetry=telemetry)
        self._levels = LevelTransitionService(session, notifier=notifier, telemetry=telemetry)
        self._badges = badge_engine or BadgeEligibilityEngine()

    @property
    def ledger(self) -> PointLedger:
        return self._ledger

    async def purchase_ratio(self) -> Decimal:
        """Points per currency unit; the ``purchase`` rule overrides the configured default."""

        stmt = select(LoyaltyProgramRule.points).where(
            LoyaltyProgramRule.identifier == PURCHASE_RULE_IDENTIFIER
        )
        ratio = (await self._db.execute(stmt)).scalar_one_or_none()
        if ratio is None:
            return Decimal(str(settings.loyalty_purchase_points_ratio))
        return Decimal(str(ratio))

    async def award_purchase_points(
        self,
        user_id: UUID,
        order_total: int,
        order_reference: str | None = None,
    ) -> PointsAward:
        """Credit ``floor(order_total_major * ratio)`` points and reconcile the level."""

        points = points_for_purchase(order_total, await self.purchase_ratio())
        if points <= 0:
            logger.debug(
                "Order earns no loyalty points",
                user_id=str(user_id),
                order_total=order_total,
                order_reference=order_reference,
            )
            return PointsAward(points=0, transaction=None, transition=None)

        transaction = await self._ledger.record_transaction(
            user_id, points, "purchase", reference_id=order_reference
        )
        transition = await self._levels.reconcile(user_id)
        return PointsAward(points=points, transaction=transaction, transition=transition)

    async def award_action_points(
        self,
        user_id: UUID,
        action: PointAction,
        reference_id: str | None = None,
    ) -> PointsAward:
        points = points_for_action(action)
        transaction = await self._ledger.record_transaction(
            user_id, points, action.value, reference_id=reference_id
        )
        transition = await self._levels.reconcile(user_id)
        return PointsAward(points=points, transaction=transaction, transition=transition)

    async def adjust_points(
        self,
        user_id: UUID,
        delta: int,
        reason: str,
        reference_id: str | None = None,
    ) -> PointsAward:
        """Manual correction or clawback; negative balances are allowed."""

        transaction = await self._ledger.record_transaction(user_id, delta, reason, reference_id=reference_id)
        transition = await self._levels.reconcile(user_id)
        return PointsAward(points=delta, transaction=transaction, transition=transition)

    async def snapshot(self, user_id: UUID) -> LoyaltySnapshot:
        stmt = select(User.loyalty_points).where(User.id == user_id)
        points = (await self._db.execute(stmt)).scalar_one_or_none()
        if points is None:
            raise AccountNotFoundError(user_id)

        catalog = await self._levels.catalog()
        current = catalog.resolve_level(int(points))
        upcoming = catalog.next_level(current.level)
        return LoyaltySnapshot(
            user_id=user_id,
            points=int(points),
            level=current.level,
            level_name=current.name,
            next_level=upcoming.level if upcoming else None,
            next_level_name=upcoming.name if upcoming else None,
            points_to_next_level=catalog.points_to_next_level(int(points)),
            benefits=list(current.benefits),
        )

    def evaluate_badges(self, signals: BadgeSignals) -> list[str]:
        return self._badges.eligible_badges(signals)


__all__ = ["LoyaltyService", "LoyaltySnapshot", "PointsAward"]
