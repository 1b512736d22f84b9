from .discounts import (  # noqa: F401
    CouponErrorKind,
    CouponTerms,
    CouponType,
    check_coupon,
    compute_discount,
    message_for,
    normalize_code,
)
