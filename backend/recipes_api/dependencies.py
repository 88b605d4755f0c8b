"""
Recipes API - Service Wiring
==============================

What:  Builds the service graph from concrete adapters and exposes it to
       route handlers.
How:   build_services() constructs every service once at app creation and
       the result is stored on `app.state.services`. Route dependencies
       read it back from the request, so tests can hand create_app() a
       container built around fakes.

    Settings ──▶ CacheStore (memory | redis) ─┐
             ──▶ CloudinaryImageStore ────────┼──▶ RecipeService
             ──▶ UploadService ───────────────┘
                                                  CatalogService × 2
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from recipes_api.config import Settings
from recipes_api.services.cache_store import CacheStore, build_cache_store
from recipes_api.services.catalog_service import (
    CatalogService,
    build_category_service,
    build_region_service,
)
from recipes_api.services.image_store import CloudinaryImageStore, ImageStore
from recipes_api.services.recipe_service import RecipeService
from recipes_api.services.upload_service import UploadService


@dataclass
class ServiceContainer:
    cache: CacheStore
    image_store: ImageStore
    upload_service: UploadService
    recipes: RecipeService
    categories: CatalogService
    regions: CatalogService


def build_services(
    config: Settings,
    cache: Optional[CacheStore] = None,
    image_store: Optional[ImageStore] = None,
    upload_service: Optional[UploadService] = None,
) -> ServiceContainer:
    """
    Compose the application services.

    Any adapter passed in is used as-is; the rest are built from `config`.
    """
    cache = cache or build_cache_store(config)
    image_store = image_store or CloudinaryImageStore.from_settings(config)
    upload_service = upload_service or UploadService(
        upload_dir=config.upload_dir,
        max_file_size=config.max_file_size,
    )

    return ServiceContainer(
        cache=cache,
        image_store=image_store,
        upload_service=upload_service,
        recipes=RecipeService(
            cache=cache,
            image_store=image_store,
            upload_service=upload_service,
            image_folder=config.cloudinary_folder,
        ),
        categories=build_category_service(),
        regions=build_region_service(),
    )


# ── Route Dependencies ────────────────────────────────────────────────────

def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_recipe_service(request: Request) -> RecipeService:
    return get_services(request).recipes


def get_upload_service(request: Request) -> UploadService:
    return get_services(request).upload_service


def get_category_service(request: Request) -> CatalogService:
    return get_services(request).categories


def get_region_service(request: Request) -> CatalogService:
    return get_services(request).regions
