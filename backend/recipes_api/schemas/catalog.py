"""
Recipes API - Category / Region Schemas
=========================================

Request and response models for the catalog lookup resources. Categories and
regions share the same wire shape.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CatalogEntryResponse(BaseModel):
    id: uuid.UUID = Field(description="Unique identifier (UUID)")
    name: str = Field(description="Display name")
    created_at: datetime = Field(description="Creation timestamp (UTC)")

    model_config = {"from_attributes": True}


class CatalogEntryCreate(BaseModel):
    """Body of POST /categories and POST /countries (also used for PUT)."""

    name: str = Field(min_length=1, max_length=120, description="Display name")

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped


class CatalogDeleteResponse(BaseModel):
    message: str
    name: str
