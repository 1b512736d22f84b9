from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class LoyaltySnapshot:
    ledger: Dict[str, int]
    levels: Dict[str, int]
    coupons: Dict[str, int]
    gifts: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "ledger": dict(self.ledger),
            "levels": dict(self.levels),
            "coupons": dict(self.coupons),
            "gifts": dict(self.gifts),
        }


class LoyaltyObservabilityStore:
    """Collect loyalty engine counters for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._ledger: Dict[str, int] = defaultdict(int)
        self._levels: Dict[str, int] = defaultdict(int)
        self._coupons: Dict[str, int] = defaultdict(int)
        self._gifts: Dict[str, int] = defaultdict(int)

    def record_ledger_write(self, delta: int, *, retries: int = 0) -> None:
        with self._lock:
            self._ledger["transactions"] += 1
            self._ledger["earned" if delta > 0 else "spent"] += abs(delta)
            if retries:
                self._ledger["cas_retries"] += retries

    def record_ledger_conflict(self) -> None:
        with self._lock:
            self._ledger["conflicts"] += 1

    def record_level_transition(self, old_level: int, new_level: int) -> None:
        with self._lock:
            self._levels["upgrades" if new_level > old_level else "downgrades"] += 1
            self._levels[f"reached:{new_level}"] += 1

    def record_coupon_outcome(self, outcome: str) -> None:
        with self._lock:
            self._coupons[outcome] += 1

    def record_gift_claim(self, level: int) -> None:
        with self._lock:
            self._gifts["claims"] += 1
            self._gifts[f"level:{level}"] += 1

    def snapshot(self) -> LoyaltySnapshot:
        with self._lock:
            return LoyaltySnapshot(
                ledger=dict(self._ledger),
                levels=dict(self._levels),
                coupons=dict(self._coupons),
                gifts=dict(self._gifts),
            )

    def reset(self) -> None:
        with self._lock:
            self._ledger.clear()
            self._levels.clear()
            self._coupons.clear()
            self._gifts.clear()


_STORE = LoyaltyObservabilityStore()


def get_loyalty_store() -> LoyaltyObservabilityStore:
    return _STORE


__all__ = ["get_loyalty_store", "LoyaltyObservabilityStore", "LoyaltySnapshot"]
