from sqlalchemy import Column, DateTime, Integer, String, Text, func

from korken_loyalty.db.base import Base


class SiteSetting(Base):
    """Key-value settings row managed from the admin console."""

    __tablename__ = "site_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, nullable=False, unique=True, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
