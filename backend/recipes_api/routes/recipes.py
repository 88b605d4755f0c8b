"""
Recipes API - Recipe Route Handlers
=====================================

What:  HTTP endpoints for recipes (mounted under API_PREFIX, default /v1/api).
How:   Extracts query / form / header values, validates them at the boundary,
       delegates to RecipeService and returns JSON.

Endpoints:
    GET    /recipes?page&limit          paginated listing (cached)
    GET    /recipes/latest?limit        newest recipes
    GET    /recipes/search?name=        name search
    GET    /recipes/filter?CategoryId=  recipes in one category
    GET    /recipes/{id}                single recipe
    POST   /recipes                     create (multipart, `image` required)
    PUT    /recipes/{id}                partial update (multipart, `image` optional)
    DELETE /recipes/{id}                delete

Listing cache key:
    GET /recipes answers with an `X-Cache-Key` header naming the cache entry
    that served the page. Clients send it back as `X-Cache-Key` on
    POST / PUT / DELETE so the write drops that entry.
"""

import logging
from typing import List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from recipes_api.config import settings
from recipes_api.database import get_db_session
from recipes_api.dependencies import get_recipe_service, get_upload_service
from recipes_api.exceptions import ValidationError
from recipes_api.schemas.common import ErrorResponse, MessageResponse
from recipes_api.schemas.recipe import (
    RecipeListResponse,
    RecipeMutationResponse,
    RecipeResponse,
    parse_recipe_create,
    parse_recipe_update,
)
from recipes_api.services.recipe_service import RecipeService
from recipes_api.services.upload_service import ImageUpload, UploadService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["Recipes"])

CACHE_KEY_HEADER = "X-Cache-Key"

RECIPE_FORM_FIELDS = {"image", "name", "description", "ingredients", "steps", "category", "country"}


async def _check_form_fields(request: Request) -> None:
    """Reject multipart fields the recipe form does not define."""
    form = await request.form()
    unknown = sorted(set(form.keys()) - RECIPE_FORM_FIELDS)
    if unknown:
        raise ValidationError(
            message=f"Unknown form field(s): {', '.join(unknown)}",
            field=unknown[0],
            context={"unknown_fields": unknown, "allowed": sorted(RECIPE_FORM_FIELDS)},
        )


async def _read_image(image: UploadFile, upload_service: UploadService) -> ImageUpload:
    """Read a multipart image into memory and run the upload checks on it."""
    try:
        content = await image.read()
    finally:
        await image.close()

    upload = ImageUpload(
        filename=image.filename or "",
        content_type=image.content_type,
        content=content,
        content_length=image.size,
    )
    upload_service.validate(upload)
    logger.info("Received image upload: filename=%s, size=%d bytes", upload.filename, len(content))
    return upload


@router.get(
    "",
    response_model=RecipeListResponse,
    responses={404: {"description": "Page not found", "model": ErrorResponse}},
    summary="List recipes page by page",
)
async def list_recipes(
    response: Response,
    page: int = Query(default=1, description="Page to fetch, starting at 1"),
    limit: int = Query(
        default=settings.default_page_limit,
        ge=1,
        le=settings.max_page_limit,
        description="Recipes per page",
    ),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeListResponse:
    listing = await service.list_recipes(db, page=page, limit=limit)

    response.headers[CACHE_KEY_HEADER] = listing.cache_key
    response.headers["X-Total-Count"] = str(listing.payload.total_items)
    return listing.payload


@router.get("/latest", response_model=List[RecipeResponse], summary="Most recently added recipes")
async def get_latest(
    limit: int = Query(default=settings.default_page_limit, ge=1, le=settings.max_page_limit),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
) -> List[RecipeResponse]:
    return await service.get_latest(db, limit=limit)


@router.get(
    "/search",
    response_model=Union[List[RecipeResponse], MessageResponse],
    summary="Search recipes by name",
    description="Case-insensitive match on any part of the recipe name.",
)
async def search_by_name(
    name: str = Query(..., min_length=1, description="Text to look for in recipe names"),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
):
    return await service.search_by_name(db, name=name)


@router.get(
    "/filter",
    response_model=Union[List[RecipeResponse], MessageResponse],
    summary="Recipes in a category",
)
async def get_by_category(
    category_id: UUID = Query(..., alias="CategoryId", description="Category id"),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
):
    return await service.get_by_category(db, category_id=category_id)


@router.get(
    "/{recipe_id}",
    response_model=RecipeResponse,
    responses={404: {"description": "Recipe not found", "model": ErrorResponse}},
    summary="Get a recipe by id",
)
async def find_one(
    recipe_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    return await service.find_one(db, recipe_id)


@router.post(
    "",
    status_code=201,
    response_model=RecipeMutationResponse,
    responses={
        400: {"description": "Invalid fields or image", "model": ErrorResponse},
        500: {"description": "Recipe could not be created", "model": ErrorResponse},
    },
    summary="Create a recipe",
    description=(
        "Multipart form: `image` (png, jpg, jpeg, svg, webp, avif) plus name, description, "
        "ingredients, steps, category and optional country. List fields may be repeated "
        "or sent once as a JSON array."
    ),
)
async def create_recipe(
    request: Request,
    image: Optional[UploadFile] = File(default=None),
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    ingredients: Optional[List[str]] = Form(default=None),
    steps: Optional[List[str]] = Form(default=None),
    category: Optional[str] = Form(default=None),
    country: Optional[str] = Form(default=None),
    cache_key: Optional[str] = Header(default=None, alias=CACHE_KEY_HEADER),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
    upload_service: UploadService = Depends(get_upload_service),
) -> RecipeMutationResponse:
    await _check_form_fields(request)
    data = parse_recipe_create(
        name=name,
        description=description,
        ingredients=ingredients,
        steps=steps,
        category=category,
        country=country,
    )
    if image is None:
        raise ValidationError(message="An image is required to create a recipe", field="image")
    upload = await _read_image(image, upload_service)

    return await service.create(db, data, upload, cache_key=cache_key)


@router.put(
    "/{recipe_id}",
    response_model=RecipeMutationResponse,
    responses={
        400: {"description": "Invalid fields or image", "model": ErrorResponse},
        404: {"description": "Recipe not found", "model": ErrorResponse},
    },
    summary="Update a recipe",
    description=(
        "Any subset of the fields may be sent; a new `image` replaces the current one "
        "and an empty `country` clears the region."
    ),
)
async def update_recipe(
    recipe_id: UUID,
    request: Request,
    image: Optional[UploadFile] = File(default=None),
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    ingredients: Optional[List[str]] = Form(default=None),
    steps: Optional[List[str]] = Form(default=None),
    category: Optional[str] = Form(default=None),
    country: Optional[str] = Form(default=None),
    cache_key: Optional[str] = Header(default=None, alias=CACHE_KEY_HEADER),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
    upload_service: UploadService = Depends(get_upload_service),
) -> RecipeMutationResponse:
    await _check_form_fields(request)
    # Form() turns an empty value into None; a sent-but-empty country clears the region
    if country is None and "country" in await request.form():
        country = ""
    data = parse_recipe_update(
        name=name,
        description=description,
        ingredients=ingredients,
        steps=steps,
        category=category,
        country=country,
    )
    upload = await _read_image(image, upload_service) if image is not None else None

    return await service.update(db, recipe_id, data, image=upload, cache_key=cache_key)


@router.delete(
    "/{recipe_id}",
    response_model=RecipeMutationResponse,
    responses={404: {"description": "Recipe not found", "model": ErrorResponse}},
    summary="Delete a recipe",
)
async def remove_recipe(
    recipe_id: UUID,
    cache_key: Optional[str] = Header(default=None, alias=CACHE_KEY_HEADER),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeMutationResponse:
    return await service.remove(db, recipe_id, cache_key=cache_key)
