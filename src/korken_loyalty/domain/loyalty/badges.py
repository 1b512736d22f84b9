"""Behavioural badge rules.

Each badge is a pure predicate over one kind of signal. The engine decides;
persisting the grant belongs to whoever calls :meth:`BadgeEligibilityEngine.evaluate`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable

from loguru import logger

from korken_loyalty.core.errors import CatalogConfigurationError


class BadgeSignalKind(str, Enum):
    """Kinds of contextual signals badge rules look at."""

    PURCHASE_TIME = "purchase_time"
    REGIONS = "regions"
    VINTAGES = "vintages"
    EVENT = "event"
    TENURE = "tenure"


@dataclass(frozen=True, slots=True)
class BadgeRule:
    slug: str
    signal_kind: BadgeSignalKind
    predicate: Callable[[Any], bool]
    description: str | None = None


@dataclass(frozen=True, slots=True)
class BadgeSignals:
    """Typed bundle of the signals available after a purchase or profile refresh."""

    purchase_time: datetime | int | None = None
    regions: int | None = None
    vintages: int | None = None
    event: bool | None = None
    tenure: int | None = None

    def for_kind(self, kind: BadgeSignalKind) -> Any:
        return getattr(self, kind.value)


def _order_hour(signal: datetime | int) -> int:
    if isinstance(signal, datetime):
        return signal.hour
    if isinstance(signal, bool) or not isinstance(signal, int):
        raise TypeError(f"Expected datetime or hour, got {type(signal).__name__}")
    if not 0 <= signal <= 23:
        raise ValueError(f"Hour out of range: {signal}")
    return signal


def _count(signal: int) -> int:
    if isinstance(signal, bool) or not isinstance(signal, int):
        raise TypeError(f"Expected an integer count, got {type(signal).__name__}")
    return signal


def _hour_between(start: int, end: int) -> Callable[[Any], bool]:
    return lambda signal: start <= _order_hour(signal) < end


def _at_least(threshold: int) -> Callable[[Any], bool]:
    return lambda signal: _count(signal) >= threshold


DEFAULT_BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(
        "purchase_time_night",
        BadgeSignalKind.PURCHASE_TIME,
        _hour_between(0, 3),
        "Order placed between midnight and 03:00",
    ),
    BadgeRule(
        "purchase_time_morning",
        BadgeSignalKind.PURCHASE_TIME,
        _hour_between(5, 10),
        "Order placed between 05:00 and 10:00",
    ),
    BadgeRule(
        "regions_explorer",
        BadgeSignalKind.REGIONS,
        _at_least(6),
        "Wines from at least six regions",
    ),
    BadgeRule(
        "vintage_collector",
        BadgeSignalKind.VINTAGES,
        _at_least(8),
        "Wines from at least eight vintages",
    ),
    BadgeRule(
        "event_guest",
        BadgeSignalKind.EVENT,
        lambda signal: signal is True,
        "Attended a tasting event",
    ),
    BadgeRule(
        "loyal_customer",
        BadgeSignalKind.TENURE,
        _at_least(12),
        "Customer for at least twelve months",
    ),
)


class BadgeEligibilityEngine:
    """Registry mapping badge slugs to predicates."""

    def __init__(self, rules: Iterable[BadgeRule] = DEFAULT_BADGE_RULES) -> None:
        self._rules: dict[str, BadgeRule] = {}
        for rule in rules:
            self.register(rule)

    def register(self, rule: BadgeRule) -> None:
        if rule.slug in self._rules:
            raise CatalogConfigurationError(f"Badge rule {rule.slug} is already registered")
        self._rules[rule.slug] = rule

    @property
    def slugs(self) -> list[str]:
        return list(self._rules)

    def get(self, slug: str) -> BadgeRule | None:
        return self._rules.get(slug)

    def evaluate(self, slug: str, signal: Any) -> bool:
        """Return whether ``signal`` satisfies the badge; unknown slugs are ``False``."""

        rule = self._rules.get(slug)
        if rule is None:
            logger.debug("Unknown badge slug", slug=slug)
            return False
        if signal is None:
            return False
        try:
            return bool(rule.predicate(signal))
        except (TypeError, ValueError) as error:
            logger.warning("Ignoring malformed badge signal", slug=slug, error=str(error))
            return False

    def eligible_badges(self, signals: BadgeSignals) -> list[str]:
        """Evaluate every registered rule against its matching signal."""

        return [
            slug
            for slug, rule in self._rules.items()
            if self.evaluate(slug, signals.for_kind(rule.signal_kind))
        ]


__all__ = [
    "BadgeEligibilityEngine",
    "BadgeRule",
    "BadgeSignalKind",
    "BadgeSignals",
    "DEFAULT_BADGE_RULES",
]
