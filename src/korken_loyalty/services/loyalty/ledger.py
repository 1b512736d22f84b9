"""Append-only point ledger with serialized balance updates."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from korken_loyalty.core.errors import AccountNotFoundError, LedgerConflictError, LoyaltyStorageError
from korken_loyalty.core.settings import settings
from korken_loyalty.models.loyalty import PointTransaction
from korken_loyalty.models.user import User
from korken_loyalty.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store


@dataclass(slots=True)
class LedgerAudit:
    """Result of replaying a user's ledger against the cached balance."""

    user_id: UUID
    balance: int
    opening_balance: int
    ledger_sum: int
    transaction_count: int
    chain_breaks: list[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.chain_breaks and self.opening_balance + self.ledger_sum == self.balance


class PointLedger:
    """Record point transactions and keep ``users.loyalty_points`` in step.

    The balance update is a compare-and-set on the previous balance, so two
    concurrent writers cannot both apply against the same starting point; the
    loser re-reads and retries. The caller owns the commit. On storage
    failure the session is rolled back so neither the transaction row nor the
    balance change survives.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        max_retries: int | None = None,
        telemetry: LoyaltyObservabilityStore | None = None,
    ) -> None:
        self._db = session
        self._max_retries = max_retries or settings.ledger_max_retries
        self._telemetry = telemetry or get_loyalty_store()

    async def record_transaction(
        self,
        user_id: UUID,
        delta: int,
        reason: str,
        reference_id: str | None = None,
    ) -> PointTransaction:
        """Append a transaction and move the user's balance by ``delta``."""

        if delta == 0:
            raise ValueError("Ledger transactions require a non-zero delta")
        if not reason or not reason.strip():
            raise ValueError("Ledger transactions require a reason")

        try:
            for attempt in range(1, self._max_retries + 1):
                balance_before = await self.get_balance(user_id)
                balance_after = balance_before + delta

                stmt = (
                    update(User)
                    .where(User.id == user_id, User.loyalty_points == balance_before)
                    .values(loyalty_points=balance_after)
                    .execution_options(synchronize_session=False)
                )
                result = await self._db.execute(stmt)
                if result.rowcount != 1:
                    logger.warning(
                        "Loyalty balance changed during ledger write; retrying",
                        user_id=str(user_id),
                        attempt=attempt,
                    )
                    continue

                transaction = PointTransaction(
                    user_id=user_id,
                    points=delta,
                    reason=reason.strip(),
                    balance_before=balance_before,
                    balance_after=balance_after,
                    reference_id=reference_id,
                    sequence=await self._next_sequence(user_id),
                )
                self._db.add(transaction)
                await self._db.flush()
                await self._refresh_cached_user(user_id)

                self._telemetry.record_ledger_write(delta, retries=attempt - 1)
                logger.info(
                    "Recorded loyalty point transaction",
                    user_id=str(user_id),
                    points=delta,
                    reason=transaction.reason,
                    balance_after=balance_after,
                    reference_id=reference_id,
                )
                return transaction
        except SQLAlchemyError as error:
            await self._db.rollback()
            logger.exception("Ledger write failed; rolled back", user_id=str(user_id))
            raise LoyaltyStorageError(f"Could not record point transaction for user {user_id}") from error

        self._telemetry.record_ledger_conflict()
        raise LedgerConflictError(user_id, self._max_retries)

    async def get_balance(self, user_id: UUID) -> int:
        stmt = select(User.loyalty_points).where(User.id == user_id)
        result = await self._db.execute(stmt)
        balance = result.scalar_one_or_none()
        if balance is None:
            raise AccountNotFoundError(user_id)
        return int(balance)

    async def list_transactions(self, user_id: UUID, *, limit: int | None = None) -> list[PointTransaction]:
        """Transactions in chain order (oldest first)."""

        stmt = (
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.sequence.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def verify_chain(self, user_id: UUID) -> LedgerAudit:
        """Check chain continuity and that the deltas add up to the balance."""

        balance = await self.get_balance(user_id)
        transactions = await self.list_transactions(user_id)

        breaks: list[int] = []
        previous_after: int | None = None
        for transaction in transactions:
            if transaction.balance_after != transaction.balance_before + transaction.points:
                breaks.append(transaction.sequence)
            elif previous_after is not None and transaction.balance_before != previous_after:
                breaks.append(transaction.sequence)
            previous_after = transaction.balance_after

        opening = transactions[0].balance_before if transactions else balance
        audit = LedgerAudit(
            user_id=user_id,
            balance=balance,
            opening_balance=opening,
            ledger_sum=sum(transaction.points for transaction in transactions),
            transaction_count=len(transactions),
            chain_breaks=breaks,
        )
        if not audit.consistent:
            logger.error(
                "Loyalty ledger inconsistent",
                user_id=str(user_id),
                balance=balance,
                ledger_sum=audit.ledger_sum,
                chain_breaks=breaks,
            )
        return audit

    async def _next_sequence(self, user_id: UUID) -> int:
        stmt = select(func.coalesce(func.max(PointTransaction.sequence), 0)).where(
            PointTransaction.user_id == user_id
        )
        result = await self._db.execute(stmt)
        return int(result.scalar_one()) + 1

    async def _refresh_cached_user(self, user_id: UUID) -> None:
        stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        await self._db.execute(stmt)


__all__ = ["LedgerAudit", "PointLedger"]
