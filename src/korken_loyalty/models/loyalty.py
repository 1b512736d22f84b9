"""Loyalty level, ledger and gift models."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from korken_loyalty.db.base import Base


class LoyaltyLevel(Base):
    """Persisted tier definition; ranges must stay contiguous across rows."""

    __tablename__ = "loyalty_levels"
    __table_args__ = (
        CheckConstraint("level BETWEEN 1 AND 7", name="ck_loyalty_levels_level_range"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    level = Column(Integer, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    min_points = Column(Integer, nullable=False)
    max_points = Column(Integer, nullable=True)
    benefits = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    gifts = relationship(
        "LevelGift",
        back_populates="loyalty_level",
        cascade="all, delete-orphan",
        order_by="LevelGift.created_at",
    )


class LevelGift(Base):
    """Gift a member may claim once after reaching the attached level."""

    __tablename__ = "loyalty_level_gifts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    level = Column(
        Integer,
        ForeignKey("loyalty_levels.level", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    variant_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loyalty_level = relationship("LoyaltyLevel", back_populates="gifts")


class GiftClaim(Base):
    """Record that a user redeemed the gift entitlement of a level."""

    __tablename__ = "loyalty_gift_claims"
    __table_args__ = (
        UniqueConstraint("user_id", "level", name="uq_loyalty_gift_claims_user_level"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    level = Column(Integer, nullable=False)
    gift_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loyalty_level_gifts.id", ondelete="SET NULL"),
        nullable=True,
    )
    claimed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="gift_claims")
    gift = relationship("LevelGift")


class PointTransaction(Base):
    """Immutable ledger row; balance_after == balance_before + points."""

    __tablename__ = "loyalty_point_transactions"
    __table_args__ = (
        CheckConstraint(
            "balance_after = balance_before + points",
            name="ck_loyalty_point_transactions_arithmetic",
        ),
        UniqueConstraint("user_id", "sequence", name="uq_loyalty_point_transactions_user_sequence"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    points = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    balance_before = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reference_id = Column(String, nullable=True)
    sequence = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="point_transactions")


class LoyaltyProgramRule(Base):
    """Admin-tunable earning rules keyed by identifier (e.g. ``purchase``)."""

    __tablename__ = "loyalty_program_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identifier = Column(String, nullable=False, unique=True, index=True)
    description = Column(String, nullable=True)
    points = Column(Numeric(10, 4), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
