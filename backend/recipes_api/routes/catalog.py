"""
Recipes API - Category / Country Route Handlers
=================================================

Categories and countries (regions) expose identical CRUD endpoints, so one
factory builds both routers:

    GET    /categories          GET    /countries
    POST   /categories          POST   /countries
    GET    /categories/{id}     GET    /countries/{id}
    PUT    /categories/{id}     PUT    /countries/{id}
    DELETE /categories/{id}     DELETE /countries/{id}
"""

from typing import Callable, List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from recipes_api.database import get_db_session
from recipes_api.dependencies import get_category_service, get_region_service
from recipes_api.schemas.catalog import (
    CatalogDeleteResponse,
    CatalogEntryCreate,
    CatalogEntryResponse,
)
from recipes_api.schemas.common import ErrorResponse
from recipes_api.services.catalog_service import CatalogService


def build_catalog_router(prefix: str, tag: str, get_service: Callable[..., CatalogService]) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])
    not_found = {404: {"description": f"{tag} entry not found", "model": ErrorResponse}}
    conflict = {409: {"description": "Name already used or entry still referenced", "model": ErrorResponse}}

    @router.get("", response_model=List[CatalogEntryResponse], summary=f"List {tag.lower()}")
    async def list_entries(
        db: AsyncSession = Depends(get_db_session),
        service: CatalogService = Depends(get_service),
    ) -> List[CatalogEntryResponse]:
        return await service.list(db)

    @router.post(
        "",
        status_code=201,
        response_model=CatalogEntryResponse,
        responses=conflict,
        summary=f"Create an entry in {tag.lower()}",
    )
    async def create_entry(
        body: CatalogEntryCreate,
        db: AsyncSession = Depends(get_db_session),
        service: CatalogService = Depends(get_service),
    ) -> CatalogEntryResponse:
        return await service.create(db, body.name)

    @router.get("/{entry_id}", response_model=CatalogEntryResponse, responses=not_found)
    async def get_entry(
        entry_id: UUID,
        db: AsyncSession = Depends(get_db_session),
        service: CatalogService = Depends(get_service),
    ) -> CatalogEntryResponse:
        return await service.get(db, entry_id)

    @router.put(
        "/{entry_id}",
        response_model=CatalogEntryResponse,
        responses={**not_found, **conflict},
    )
    async def update_entry(
        entry_id: UUID,
        body: CatalogEntryCreate,
        db: AsyncSession = Depends(get_db_session),
        service: CatalogService = Depends(get_service),
    ) -> CatalogEntryResponse:
        return await service.update(db, entry_id, body.name)

    @router.delete(
        "/{entry_id}",
        response_model=CatalogDeleteResponse,
        responses={**not_found, **conflict},
    )
    async def remove_entry(
        entry_id: UUID,
        db: AsyncSession = Depends(get_db_session),
        service: CatalogService = Depends(get_service),
    ) -> CatalogDeleteResponse:
        return await service.remove(db, entry_id)

    return router


categories_router = build_catalog_router("/categories", "Categories", get_category_service)
countries_router = build_catalog_router("/countries", "Countries", get_region_service)
