"""Exception taxonomy for infrastructure and configuration failures.

Business-rule rejections (expired coupons, already claimed gifts, ...) are not
exceptions; they come back as typed results from the services.
"""

from __future__ import annotations

from uuid import UUID


class LoyaltyError(RuntimeError):
    """Base exception for loyalty engine failures."""


class CatalogConfigurationError(LoyaltyError):
    """Raised when the level catalog violates its range invariants."""


class AccountNotFoundError(LoyaltyError):
    """Raised when a ledger or level operation targets a missing user."""

    def __init__(self, user_id: UUID) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class LedgerConflictError(LoyaltyError):
    """Raised when the balance compare-and-set keeps losing to concurrent writers."""

    def __init__(self, user_id: UUID, attempts: int) -> None:
        super().__init__(f"Could not update balance for user {user_id} after {attempts} attempts")
        self.user_id = user_id
        self.attempts = attempts


class LoyaltyStorageError(LoyaltyError):
    """Raised when the storage layer fails; the unit of work has been rolled back."""


class DuplicateCouponCodeError(LoyaltyError):
    """Raised when creating a coupon whose code already exists."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon code {code} already exists")
        self.code = code


class CouponNotFoundError(LoyaltyError):
    """Raised when an administrative coupon operation targets a missing coupon."""


__all__ = [
    "AccountNotFoundError",
    "CatalogConfigurationError",
    "CouponNotFoundError",
    "DuplicateCouponCodeError",
    "LedgerConflictError",
    "LoyaltyError",
    "LoyaltyStorageError",
]
