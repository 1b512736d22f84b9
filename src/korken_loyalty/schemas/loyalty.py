from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from korken_loyalty.domain.loyalty.catalog import MAX_LEVEL, MIN_LEVEL

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class LevelUpdate(BaseModel):
    """Admin edit of a level's display name and benefit list."""

    model_config = ConfigDict(populate_by_name=True)

    level: int = Field(..., ge=MIN_LEVEL, le=MAX_LEVEL)
    benefits: list[str] = Field(..., min_length=1)
    name: NonBlankStr | None = None

    @field_validator("benefits", mode="before")
    @classmethod
    def _drop_blank_benefits(cls, value: object) -> object:
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value


class LevelGiftCreate(BaseModel):
    """Gift attached to a level by an administrator."""

    model_config = ConfigDict(populate_by_name=True)

    level: int = Field(..., ge=MIN_LEVEL, le=MAX_LEVEL)
    name: NonBlankStr
    description: str | None = None
    image_url: str | None = Field(None, alias="imageUrl")
    variant_id: str | None = Field(None, alias="variantId")

    @field_validator("image_url", mode="before")
    @classmethod
    def _validate_image_url(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if isinstance(value, str) and not value.strip().startswith(("http://", "https://")):
            raise ValueError("Invalid image URL")
        return value

    @field_validator("variant_id", mode="before")
    @classmethod
    def _normalize_variant(cls, value: object) -> object:
        if value in (None, "", "none"):
            return None
        return value


__all__ = ["LevelGiftCreate", "LevelUpdate"]
