"""
Recipes API - Recipe Service (Business Logic Orchestrator)
============================================================

What:  Recipe listing with a page cache, lookups, and create / update / delete
       coordinating the database, the image host and the listing cache.
How:   Composes CacheStore, ImageStore and UploadService, all passed to the
       constructor. The database session is passed to every call.
Who:   Called by the recipe route handlers.

Listing flow (GET /recipes):

    key = recipes_list_page_{page}_{limit}
      │
      ├─▶ cache.get(key)
      ├─▶ COUNT(recipes) → paginate_results()   (runs on hits too; 404 if out of range)
      │
      ├─ hit  ─▶ cached payload as-is (may be stale)
      └─ miss ─▶ SELECT newest first OFFSET/LIMIT, category joined
                 → cache.set(key, payload) → payload

Cache invalidation:
    list_recipes() returns the key it served alongside the payload. Writes
    take that key as an explicit argument and delete exactly that one entry;
    nothing about the last served page is stored on the service. Other cached
    pages are left alone and can be stale until their TTL runs out.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer, undefer

from recipes_api.exceptions import NotFoundError, RecipeCreationError, ValidationError
from recipes_api.models import Category, Recipe, Region
from recipes_api.schemas.common import MessageResponse
from recipes_api.schemas.recipe import (
    RecipeCreate,
    RecipeListResponse,
    RecipeMutationResponse,
    RecipeResponse,
    RecipeUpdate,
)
from recipes_api.services.cache_store import CacheStore
from recipes_api.services.image_store import ImageStore, UploadedImage
from recipes_api.services.pagination import page_offset, paginate_results
from recipes_api.services.upload_service import ImageUpload, UploadService

logger = logging.getLogger(__name__)

LISTING_KEY_PREFIX = "recipes_list_page_"

NO_RESULTS_BY_NAME = "No recipes were found with that name."
NO_RESULTS_IN_CATEGORY = "There are no recipes in this category."


@dataclass(frozen=True)
class RecipeListing:
    """A served listing page and the cache key it lives under."""
    payload: RecipeListResponse
    cache_key: str
    cache_hit: bool


def _newest_first():
    return (Recipe.created_at.desc(), Recipe.id.desc())


def _public_recipe_query():
    """SELECT recipes without the image asset id column."""
    return select(Recipe).options(defer(Recipe.image_asset_id, raiseload=True))


class RecipeService:
    """
    Business logic for recipes.

    Error Handling Strategy:
        - Missing recipes and invalid pages raise NotFoundError (404)
        - create() wraps every upload / persistence failure in
          RecipeCreationError; the cause is logged, not returned
        - update() and remove() let store and image host errors propagate
    """

    def __init__(
        self,
        cache: CacheStore,
        image_store: ImageStore,
        upload_service: UploadService,
        image_folder: str = "recipes",
    ):
        self.cache = cache
        self.image_store = image_store
        self.upload_service = upload_service
        self.image_folder = image_folder

    # ── Cache Keys ────────────────────────────────────────────────────────

    @staticmethod
    def listing_cache_key(page: int, limit: int) -> str:
        """Deterministic key for one (page, limit) listing."""
        return f"{LISTING_KEY_PREFIX}{page}_{limit}"

    async def invalidate(self, cache_key: Optional[str]) -> None:
        """
        Delete one listing entry from the cache.

        Keys outside the listing namespace are ignored; the key may come from
        a client header.
        """
        if not cache_key:
            return
        if not cache_key.startswith(LISTING_KEY_PREFIX):
            logger.warning("Ignoring invalidation of non-listing cache key %r", cache_key)
            return
        await self.cache.delete(cache_key)
        logger.debug("Invalidated listing cache entry %s", cache_key)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_recipes(self, db: AsyncSession, page: int, limit: int) -> RecipeListing:
        """
        One page of recipes, newest first, served from the cache when possible.

        Raises:
            PageNotFoundError: page < 1, page > total_pages, or no recipes at all
        """
        cache_key = self.listing_cache_key(page, limit)
        cached = await self.cache.get(cache_key)

        total_items = await db.scalar(select(func.count()).select_from(Recipe)) or 0
        page_info = paginate_results(total_items, page, limit)

        if cached is not None:
            logger.debug("Listing cache hit: %s", cache_key)
            return RecipeListing(
                payload=RecipeListResponse.model_validate(cached),
                cache_key=cache_key,
                cache_hit=True,
            )

        result = await db.execute(
            _public_recipe_query()
            .order_by(*_newest_first())
            .offset(page_offset(page, limit))
            .limit(limit)
        )
        recipes = result.scalars().all()

        payload = RecipeListResponse(
            page=page_info.current_page,
            total_pages=page_info.total_pages,
            total_items=page_info.total_items,
            data=[RecipeResponse.model_validate(recipe) for recipe in recipes],
        )
        await self.cache.set(cache_key, payload.model_dump(mode="json"))
        logger.debug("Listing cache miss: %s (%d recipes cached)", cache_key, len(recipes))

        return RecipeListing(payload=payload, cache_key=cache_key, cache_hit=False)

    async def find_one(self, db: AsyncSession, recipe_id: uuid.UUID) -> RecipeResponse:
        """Raises NotFoundError if the recipe does not exist."""
        result = await db.execute(_public_recipe_query().where(Recipe.id == recipe_id))
        recipe = result.scalar_one_or_none()
        if recipe is None:
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))
        return RecipeResponse.model_validate(recipe)

    async def get_latest(self, db: AsyncSession, limit: int) -> List[RecipeResponse]:
        """The `limit` most recently created recipes. Not cached."""
        result = await db.execute(_public_recipe_query().order_by(*_newest_first()).limit(limit))
        return [RecipeResponse.model_validate(recipe) for recipe in result.scalars().all()]

    async def search_by_name(
        self, db: AsyncSession, name: str
    ) -> Union[List[RecipeResponse], MessageResponse]:
        """
        Case-insensitive substring match on the recipe name.

        LIKE wildcards in `name` are escaped, so "50%" matches literally.
        An empty result is an informational message, not an error.
        """
        escaped = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        result = await db.execute(
            _public_recipe_query()
            .where(Recipe.name.ilike(f"%{escaped}%", escape="\\"))
            .order_by(*_newest_first())
        )
        recipes = result.scalars().all()
        if not recipes:
            return MessageResponse(message=NO_RESULTS_BY_NAME)
        return [RecipeResponse.model_validate(recipe) for recipe in recipes]

    async def get_by_category(
        self, db: AsyncSession, category_id: uuid.UUID
    ) -> Union[List[RecipeResponse], MessageResponse]:
        """
        Every recipe in a category. An unknown or empty category gives an
        informational message rather than a 404.
        """
        result = await db.execute(
            _public_recipe_query()
            .where(Recipe.category_id == category_id)
            .order_by(*_newest_first())
        )
        recipes = result.scalars().all()
        if not recipes:
            return MessageResponse(message=NO_RESULTS_IN_CATEGORY)
        return [RecipeResponse.model_validate(recipe) for recipe in recipes]

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        data: RecipeCreate,
        image: ImageUpload,
        cache_key: Optional[str] = None,
    ) -> RecipeMutationResponse:
        """
        Upload the image, then persist the recipe with its URL and asset id.

        Workflow:
            1. Check that category (and region, if given) exist → 400 otherwise
            2. Stage the image on disk and upload it to the image host
            3. Insert the recipe row
            4. Invalidate the given listing cache key

        Raises:
            ValidationError: Unknown category or region
            RecipeCreationError: Any failure in steps 2-4 (cause logged)
        """
        await self._ensure_references(db, data.category_id, data.region_id)

        staged_path: Optional[str] = None
        uploaded: Optional[UploadedImage] = None
        try:
            staged_path = await self.upload_service.stage(image)
            uploaded = await self.image_store.upload(staged_path, self.image_folder)

            recipe = Recipe(
                **data.model_dump(),
                image_url=uploaded.url,
                image_asset_id=uploaded.asset_id,
            )
            db.add(recipe)
            await db.flush()

            await self.invalidate(cache_key)
        except Exception as e:
            logger.error("Failed to create recipe '%s': %s", data.name, str(e), exc_info=True)
            if uploaded is not None:
                await self._discard_image(uploaded.asset_id)
            raise RecipeCreationError(context={"original_error": type(e).__name__}) from e
        finally:
            if staged_path:
                await self.upload_service.cleanup_file(staged_path)

        logger.info("Recipe created: %s (%s)", recipe.name, recipe.id)
        return RecipeMutationResponse(message="Recipe created successfully", name=recipe.name)

    async def update(
        self,
        db: AsyncSession,
        recipe_id: uuid.UUID,
        data: RecipeUpdate,
        image: Optional[ImageUpload] = None,
        cache_key: Optional[str] = None,
    ) -> RecipeMutationResponse:
        """
        Apply a partial update; a new image replaces URL and asset id together.

        The old asset is deleted from the image host before the new one is
        uploaded. Store and image host errors propagate unwrapped.

        Raises:
            NotFoundError: Recipe does not exist
            ValidationError: Unknown category or region
        """
        recipe = await self._get_recipe(db, recipe_id)
        changes = data.model_dump(exclude_unset=True)

        if "category_id" in changes or changes.get("region_id") is not None:
            await self._ensure_references(db, changes.get("category_id"), changes.get("region_id"))

        await self.invalidate(cache_key)

        if image is not None:
            staged_path = await self.upload_service.stage(image)
            try:
                await self.image_store.delete(recipe.image_asset_id)
                uploaded = await self.image_store.upload(staged_path, self.image_folder)
            finally:
                await self.upload_service.cleanup_file(staged_path)
            recipe.image_url = uploaded.url
            recipe.image_asset_id = uploaded.asset_id

        for field, value in changes.items():
            setattr(recipe, field, value)
        await db.flush()

        logger.info("Recipe updated: %s (%s) fields=%s", recipe.name, recipe.id, sorted(changes))
        return RecipeMutationResponse(message="Recipe updated successfully", name=recipe.name)

    async def remove(
        self,
        db: AsyncSession,
        recipe_id: uuid.UUID,
        cache_key: Optional[str] = None,
    ) -> RecipeMutationResponse:
        """
        Delete the recipe and its image.

        Raises:
            NotFoundError: Recipe does not exist
        """
        recipe = await self._get_recipe(db, recipe_id)
        name = recipe.name

        await self.invalidate(cache_key)
        await self.image_store.delete(recipe.image_asset_id)
        await db.delete(recipe)
        await db.flush()

        logger.info("Recipe deleted: %s (%s)", name, recipe_id)
        return RecipeMutationResponse(message="Recipe deleted successfully", name=name)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _get_recipe(self, db: AsyncSession, recipe_id: uuid.UUID) -> Recipe:
        result = await db.execute(
            select(Recipe)
            .where(Recipe.id == recipe_id)
            .options(undefer(Recipe.image_asset_id))
            .execution_options(populate_existing=True)
        )
        recipe = result.scalar_one_or_none()
        if recipe is None:
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))
        return recipe

    async def _ensure_references(
        self,
        db: AsyncSession,
        category_id: Optional[uuid.UUID],
        region_id: Optional[uuid.UUID],
    ) -> None:
        if category_id is not None and await db.get(Category, category_id) is None:
            raise ValidationError(
                message=f"Category '{category_id}' does not exist",
                field="category",
            )
        if region_id is not None and await db.get(Region, region_id) is None:
            raise ValidationError(
                message=f"Country '{region_id}' does not exist",
                field="country",
            )

    async def _discard_image(self, asset_id: str) -> None:
        """Best-effort removal of an image whose recipe was never saved."""
        try:
            await self.image_store.delete(asset_id)
        except Exception as e:
            logger.warning("Could not remove orphaned image %s: %s", asset_id, str(e))
