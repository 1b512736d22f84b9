from datetime import datetime

import pytest

from korken_loyalty.core.errors import CatalogConfigurationError
from korken_loyalty.domain.loyalty.badges import (
    BadgeEligibilityEngine,
    BadgeRule,
    BadgeSignalKind,
    BadgeSignals,
)


@pytest.fixture
def engine() -> BadgeEligibilityEngine:
    return BadgeEligibilityEngine()


@pytest.mark.parametrize(
    ("slug", "signal", "expected"),
    [
        ("purchase_time_night", datetime(2024, 3, 1, 1, 30), True),
        ("purchase_time_night", 2, True),
        ("purchase_time_night", 3, False),
        ("purchase_time_morning", 5, True),
        ("purchase_time_morning", datetime(2024, 3, 1, 9, 59), True),
        ("purchase_time_morning", 10, False),
        ("regions_explorer", 6, True),
        ("regions_explorer", 5, False),
        ("vintage_collector", 8, True),
        ("vintage_collector", 7, False),
        ("event_guest", True, True),
        ("event_guest", False, False),
        ("loyal_customer", 12, True),
        ("loyal_customer", 11, False),
    ],
)
def test_builtin_rules(engine: BadgeEligibilityEngine, slug: str, signal, expected: bool) -> None:
    assert engine.evaluate(slug, signal) is expected


def test_unknown_slug_is_false(engine: BadgeEligibilityEngine) -> None:
    assert engine.evaluate("wine_wizard", 100) is False


@pytest.mark.parametrize(
    ("slug", "signal"),
    [
        ("regions_explorer", "six"),
        ("purchase_time_night", 42),
        ("loyal_customer", None),
        ("vintage_collector", True),
    ],
)
def test_malformed_signals_never_raise(engine: BadgeEligibilityEngine, slug: str, signal) -> None:
    assert engine.evaluate(slug, signal) is False


def test_duplicate_registration_is_rejected(engine: BadgeEligibilityEngine) -> None:
    with pytest.raises(CatalogConfigurationError):
        engine.register(BadgeRule("event_guest", BadgeSignalKind.EVENT, lambda _: True))


def test_custom_rule_can_be_registered(engine: BadgeEligibilityEngine) -> None:
    engine.register(BadgeRule("big_spender", BadgeSignalKind.REGIONS, lambda count: count >= 20))

    assert "big_spender" in engine.slugs
    assert engine.evaluate("big_spender", 25) is True


def test_eligible_badges_evaluates_every_rule(engine: BadgeEligibilityEngine) -> None:
    signals = BadgeSignals(
        purchase_time=datetime(2024, 3, 1, 6, 15),
        regions=7,
        vintages=3,
        event=True,
        tenure=None,
    )

    assert engine.eligible_badges(signals) == [
        "purchase_time_morning",
        "regions_explorer",
        "event_guest",
    ]
