"""
Recipes API - Category and Region Models
==========================================

What:  ORM models for the two lookup tables recipes point at.
How:   Both tables share the same shape (UUID id, unique name, created_at),
       provided by the NamedEntity mixin.

Table Design:
    - categories: every recipe references exactly one row (required FK)
    - regions:    exposed as "countries" in the API; recipes reference at
                  most one row (optional FK)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from recipes_api.database import Base


class NamedEntity:
    """Columns shared by the catalog lookup tables."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id}, name='{self.name}')>"


class Category(NamedEntity, Base):
    """A recipe category such as "Desserts" or "Soups"."""

    __tablename__ = "categories"


class Region(NamedEntity, Base):
    """A region or country a recipe comes from."""

    __tablename__ = "regions"
