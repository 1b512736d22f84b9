import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import korken_loyalty.models  # noqa: F401  (registers every table on the metadata)
from korken_loyalty.db.base import Base
from korken_loyalty.observability.loyalty import LoyaltyObservabilityStore


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def telemetry() -> LoyaltyObservabilityStore:
    return LoyaltyObservabilityStore()
