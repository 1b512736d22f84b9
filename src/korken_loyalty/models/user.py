from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from korken_loyalty.db.base import Base


class User(Base):
    """Storefront account; the engine owns only the loyalty columns."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, nullable=False, unique=True, index=True)
    display_name = Column(String, nullable=True)
    loyalty_points = Column(Integer, nullable=False, default=0, server_default="0")
    loyalty_level = Column(Integer, nullable=False, default=1, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    point_transactions = relationship(
        "PointTransaction", back_populates="user", cascade="all, delete-orphan"
    )
    gift_claims = relationship("GiftClaim", back_populates="user", cascade="all, delete-orphan")
