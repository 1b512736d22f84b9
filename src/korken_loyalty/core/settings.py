from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./korken_loyalty.db"
    database_echo: bool = False

    # Money is handled in minor units of a single currency
    currency: str = "CHF"

    # Loyalty ledger
    loyalty_purchase_points_ratio: float = 1.0
    ledger_max_retries: int = Field(default=3, ge=1)

    # Level gifts
    loyalty_gift_validity_days: int = 14

    # Gift cards
    gift_card_code_prefix: str = "GESCHENK"
    gift_card_min_amount: int = 1000
    gift_card_validity_days: int = 3 * 365

    @field_validator("gift_card_code_prefix", mode="before")
    @classmethod
    def _normalize_prefix(cls, value: object) -> str:
        if value is None:
            return "GESCHENK"
        return str(value).strip().upper() or "GESCHENK"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
