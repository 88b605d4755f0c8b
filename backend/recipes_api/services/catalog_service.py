"""
Recipes API - Catalog Service (Categories and Regions)
========================================================

CRUD for the two lookup tables recipes reference. Both behave the same way,
so one class is instantiated twice with a different model and the recipe
column that points at it.

Rules:
    - names are unique, compared case-insensitively (409 on duplicates)
    - an entry still referenced by recipes cannot be deleted (409)
"""

import logging
import uuid
from typing import List, Optional, Type

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from recipes_api.exceptions import ConflictError, DatabaseError, NotFoundError
from recipes_api.models import Category, Recipe, Region
from recipes_api.models.category import NamedEntity
from recipes_api.schemas.catalog import CatalogDeleteResponse, CatalogEntryResponse

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Args:
        model: Category or Region
        resource: Name used in error messages ("category", "country")
        recipe_reference: Recipe column holding this model's id
    """

    def __init__(
        self,
        model: Type[NamedEntity],
        resource: str,
        recipe_reference: InstrumentedAttribute,
    ):
        self.model = model
        self.resource = resource
        self.recipe_reference = recipe_reference

    async def list(self, db: AsyncSession) -> List[CatalogEntryResponse]:
        result = await db.execute(select(self.model).order_by(self.model.name))
        return [CatalogEntryResponse.model_validate(row) for row in result.scalars().all()]

    async def get(self, db: AsyncSession, entry_id: uuid.UUID) -> CatalogEntryResponse:
        return CatalogEntryResponse.model_validate(await self._get_entry(db, entry_id))

    async def create(self, db: AsyncSession, name: str) -> CatalogEntryResponse:
        await self._ensure_unique_name(db, name)
        entry = self.model(name=name)
        db.add(entry)
        await self._flush(db, name)
        logger.info("Created %s '%s' (%s)", self.resource, entry.name, entry.id)
        return CatalogEntryResponse.model_validate(entry)

    async def update(self, db: AsyncSession, entry_id: uuid.UUID, name: str) -> CatalogEntryResponse:
        entry = await self._get_entry(db, entry_id)
        await self._ensure_unique_name(db, name, exclude_id=entry_id)
        entry.name = name
        await self._flush(db, name)
        logger.info("Renamed %s %s to '%s'", self.resource, entry_id, name)
        return CatalogEntryResponse.model_validate(entry)

    async def remove(self, db: AsyncSession, entry_id: uuid.UUID) -> CatalogDeleteResponse:
        entry = await self._get_entry(db, entry_id)

        in_use = await db.scalar(
            select(func.count()).select_from(Recipe).where(self.recipe_reference == entry_id)
        )
        if in_use:
            raise ConflictError(
                message=f"The {self.resource} '{entry.name}' is used by {in_use} recipe(s) and cannot be deleted",
                context={"resource": self.resource, "recipes": in_use},
            )

        name = entry.name
        await db.delete(entry)
        await db.flush()
        logger.info("Deleted %s '%s' (%s)", self.resource, name, entry_id)
        return CatalogDeleteResponse(message=f"The {self.resource} was deleted successfully", name=name)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _get_entry(self, db: AsyncSession, entry_id: uuid.UUID) -> NamedEntity:
        entry = await db.get(self.model, entry_id)
        if entry is None:
            raise NotFoundError(resource=self.resource, resource_id=str(entry_id))
        return entry

    async def _ensure_unique_name(
        self, db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None
    ) -> None:
        query = select(self.model.id).where(func.lower(self.model.name) == name.lower())
        if exclude_id is not None:
            query = query.where(self.model.id != exclude_id)
        if await db.scalar(query) is not None:
            raise ConflictError(
                message=f"A {self.resource} named '{name}' already exists",
                context={"resource": self.resource, "name": name},
            )

    async def _flush(self, db: AsyncSession, name: str) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            # Unique index caught a concurrent insert of the same name
            raise ConflictError(
                message=f"A {self.resource} named '{name}' already exists",
                context={"resource": self.resource, "name": name},
            ) from e
        except SQLAlchemyError as e:
            logger.error("Database error saving %s '%s': %s", self.resource, name, str(e))
            raise DatabaseError(context={"resource": self.resource, "error_type": type(e).__name__}) from e


def build_category_service() -> CatalogService:
    return CatalogService(Category, "category", Recipe.category_id)


def build_region_service() -> CatalogService:
    return CatalogService(Region, "country", Recipe.region_id)
