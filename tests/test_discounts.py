from datetime import datetime, timedelta, timezone

import pytest

from korken_loyalty.domain.coupons.discounts import (
    CouponErrorKind,
    CouponTerms,
    CouponType,
    check_coupon,
    compute_discount,
    ensure_utc,
    message_for,
    normalize_code,
)
from korken_loyalty.domain.money import (
    apply_basis_points,
    format_amount,
    percent_to_basis_points,
    to_major_units,
    to_minor_units,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _terms(**overrides) -> CouponTerms:
    values = {
        "code": "TEST",
        "type": CouponType.PERCENTAGE,
        "value": 1000,
        "valid_from": NOW - timedelta(days=1),
    }
    values.update(overrides)
    return CouponTerms(**values)


def test_percentage_discount_is_capped() -> None:
    # SUMMER10: 10 % of CHF 300.00 is CHF 30.00, capped at CHF 20.00
    assert compute_discount(CouponType.PERCENTAGE, 1000, 30000, max_discount=2000) == 2000


def test_fixed_discount_never_exceeds_order() -> None:
    assert compute_discount(CouponType.FIXED_AMOUNT, 2000, 1500) == 1500


def test_gift_card_discount_behaves_like_fixed_amount() -> None:
    assert compute_discount(CouponType.GIFT_CARD, 5000, 8000) == 5000
    assert compute_discount(CouponType.GIFT_CARD, 5000, 3000) == 3000


def test_percentage_rounds_half_up_to_minor_units() -> None:
    # 12.5 % of CHF 0.99 is 12.375 Rappen
    assert compute_discount(CouponType.PERCENTAGE, 1250, 99) == 12
    # 10 % of CHF 0.05 is 0.5 Rappen
    assert compute_discount(CouponType.PERCENTAGE, 1000, 5) == 1


@pytest.mark.parametrize("coupon_type", list(CouponType))
def test_discount_stays_within_order(coupon_type: CouponType) -> None:
    for order in (1, 99, 1500, 123456):
        discount = compute_discount(coupon_type, 10_000, order)
        assert 0 <= discount <= order


def test_non_positive_order_yields_no_discount() -> None:
    assert compute_discount(CouponType.FIXED_AMOUNT, 2000, 0) == 0


def test_check_order_reports_first_failure() -> None:
    terms = _terms(
        is_active=False,
        valid_until=NOW - timedelta(hours=1),
        max_uses=1,
        current_uses=1,
    )

    assert check_coupon(terms, 100, now=NOW) is CouponErrorKind.INACTIVE


@pytest.mark.parametrize(
    ("overrides", "order_amount", "prior", "expected"),
    [
        ({"valid_from": NOW + timedelta(minutes=1)}, 5000, None, CouponErrorKind.NOT_YET_VALID),
        ({"valid_until": NOW - timedelta(seconds=1)}, 5000, None, CouponErrorKind.EXPIRED),
        ({"max_uses": 1, "current_uses": 1}, 5000, None, CouponErrorKind.USAGE_EXCEEDED),
        ({"max_uses_per_user": 1}, 5000, 1, CouponErrorKind.PER_USER_LIMIT),
        ({"min_order_amount": 5000}, 4999, None, CouponErrorKind.BELOW_MINIMUM),
        ({"max_uses_per_user": 1}, 5000, None, None),
        ({"valid_until": NOW}, 5000, 0, None),
    ],
)
def test_check_coupon_rules(overrides, order_amount, prior, expected) -> None:
    assert check_coupon(_terms(**overrides), order_amount, now=NOW, prior_user_redemptions=prior) is expected


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = datetime(2024, 6, 1, 12, 0)

    assert ensure_utc(naive) == NOW
    assert check_coupon(_terms(valid_from=naive), 100, now=NOW) is None


def test_messages() -> None:
    assert message_for(CouponErrorKind.NOT_FOUND) == "Ungültiger Gutscheincode"
    assert message_for(CouponErrorKind.BELOW_MINIMUM, min_order_amount=5000) == (
        "Mindestbestellwert von CHF 50.00 nicht erreicht"
    )
    assert all(message_for(kind) for kind in CouponErrorKind)


def test_normalize_code() -> None:
    assert normalize_code("  summer10 ") == "SUMMER10"


def test_money_helpers() -> None:
    assert to_minor_units("12.345") == 1235
    assert to_minor_units(7) == 700
    assert str(to_major_units(1250)) == "12.50"
    assert percent_to_basis_points("12.5") == 1250
    assert apply_basis_points(30000, 1000) == 3000
    assert format_amount(1000) == "CHF 10.00"

    with pytest.raises(ValueError):
        to_minor_units("zehn")
