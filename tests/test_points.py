from decimal import Decimal

import pytest

from korken_loyalty.domain.loyalty.points import (
    POINT_REWARDS,
    PointAction,
    points_for_action,
    points_for_purchase,
)


@pytest.mark.parametrize(
    ("order_total", "ratio", "expected"),
    [
        (12999, Decimal("1.0"), 129),
        (10000, Decimal("1.5"), 150),
        (999, "0.5", 4),
        (0, Decimal("1.0"), 0),
        (-5000, Decimal("1.0"), 0),
        (5000, Decimal("0"), 0),
    ],
)
def test_points_for_purchase_floors(order_total, ratio, expected) -> None:
    assert points_for_purchase(order_total, ratio) == expected


def test_action_rewards() -> None:
    assert points_for_action(PointAction.REVIEW) == 40
    assert points_for_action(PointAction.EVENT_ATTENDANCE) == 100
    assert points_for_action(PointAction.REFERRAL) == 25
    assert points_for_action(PointAction.NEWSLETTER_SIGNUP) == 50
    assert set(POINT_REWARDS) == set(PointAction)
