"""Key-value settings store backed by ``site_settings``."""

from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from korken_loyalty.models.settings import SiteSetting

GIFT_VALIDITY_DAYS_KEY = "loyalty_gift_validity_days"


class SettingsStore:
    """Read and write admin-managed settings rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def get(self, key: str) -> str | None:
        stmt = select(SiteSetting.value).where(SiteSetting.key == key)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_int(self, key: str, default: int) -> int:
        """Integer setting; missing rows and unparsable values yield ``default``."""

        raw = await self.get(key)
        if raw is None:
            return default
        try:
            value = int(str(raw).strip())
        except ValueError:
            logger.warning("Ignoring non-numeric setting", key=key, value=raw)
            return default
        return value if value > 0 else default

    async def set(self, key: str, value: str | int) -> SiteSetting:
        stmt = select(SiteSetting).where(SiteSetting.key == key)
        result = await self._db.execute(stmt)
        record = result.scalar_one_or_none()
        if record is None:
            record = SiteSetting(key=key, value=str(value))
            self._db.add(record)
        else:
            record.value = str(value)
        await self._db.flush()
        logger.info("Updated setting", key=key)
        return record


__all__ = ["GIFT_VALIDITY_DAYS_KEY", "SettingsStore"]
