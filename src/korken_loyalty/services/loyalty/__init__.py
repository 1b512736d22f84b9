"""Loyalty services: ledger, levels, gifts and the account-facing facade."""

from .gifts import (  # noqa: F401
    GiftClaimError,
    GiftClaimResult,
    GiftDescriptor,
    GiftEntitlementTracker,
    UnclaimedGiftLevel,
)
from .ledger import LedgerAudit, PointLedger  # noqa: F401
from .levels import LevelCatalogRepository, LevelTransition, LevelTransitionService  # noqa: F401
from .loyalty_service import LoyaltyService, LoyaltySnapshot, PointsAward  # noqa: F401
