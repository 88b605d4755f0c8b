"""
Recipes API - Recipe SQLAlchemy Model
=======================================

What:  ORM model representing the `recipes` table.
Who:   Used by RecipeService for CRUD operations and by Alembic for schema management.

Table Design:
    - UUID primary key
    - ingredients / steps: ordered JSON arrays of strings, stored on the row
      the way a document store would embed them
    - image_url + image_asset_id: written together from the Cloudinary upload
      response; the asset id is only used to delete the image later and is
      never returned by the API
    - category_id: required reference, eagerly joined on every load
    - region_id: optional reference, returned as a bare id
    - created_at: sort key for listings (newest first)

    Index on created_at DESC serves the listing, latest and search queries.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recipes_api.database import Base
from recipes_api.models.category import Category


class Recipe(Base):
    """
    A recipe in the catalog.

    Lifecycle:
        1. Created with an uploaded image (URL + asset id set together)
        2. Updated partially; a new image replaces URL + asset id together
           after the old asset is deleted from the image host
        3. Deleted; the image asset is deleted from the image host first
    """

    __tablename__ = "recipes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Ordered, never empty (enforced by the request schemas)
    ingredients: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    steps: Mapped[List[str]] = mapped_column(JSON, nullable=False)

    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    image_asset_id: Mapped[str] = mapped_column(String(255), nullable=False)

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    region_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("regions.id", ondelete="RESTRICT"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # "populate": the category row is loaded alongside every recipe query
    category: Mapped[Category] = relationship(lazy="selectin")

    __table_args__ = (
        Index("idx_recipes_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, name='{self.name}')>"
