"""
Recipes API - Recipe Request/Response Schemas
===============================================

What:  Pydantic models defining the recipe API contract.
How:   Response models serialize ORM rows (from_attributes); request models
       are built from multipart form fields by parse_recipe_create() and
       parse_recipe_update(), which turn Pydantic errors into the
       application's ValidationError (HTTP 400).

The image asset id never appears in a response model.
"""

import json
import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, StringConstraints, field_validator
from pydantic import ValidationError as PydanticValidationError

from recipes_api.exceptions import ValidationError
from recipes_api.schemas.catalog import CatalogEntryResponse

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class RecipeResponse(BaseModel):
    """
    What:  Full representation of a recipe with its category joined.
    Who:   Returned by every recipe read endpoint and stored in the listing cache.
    """
    id: uuid.UUID = Field(description="Unique recipe identifier (UUID)")
    name: str
    description: str
    ingredients: List[str] = Field(description="Ordered ingredient list")
    steps: List[str] = Field(description="Ordered preparation steps")
    image_url: str = Field(description="Public URL of the recipe image")
    category: CatalogEntryResponse = Field(description="Joined category")
    # ORM rows expose region_id; cached JSON payloads carry "country"
    country: Optional[uuid.UUID] = Field(
        default=None,
        validation_alias=AliasChoices("region_id", "country"),
        description="Region (country) id, if any",
    )
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RecipeListResponse(BaseModel):
    """
    What:  One page of the recipe listing.
    Who:   Returned by GET /recipes; the same payload is what the cache stores.
    """
    page: int = Field(description="Requested page (1-indexed)")
    total_pages: int = Field(description="ceil(total_items / limit)")
    total_items: int = Field(description="Total number of recipes")
    data: List[RecipeResponse] = Field(description="Recipes on this page, newest first")


class RecipeMutationResponse(BaseModel):
    """Confirmation returned by create, update and delete."""
    message: str
    name: str


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RecipeCreate(BaseModel):
    name: NonBlankStr
    description: NonBlankStr
    ingredients: List[NonBlankStr] = Field(min_length=1)
    steps: List[NonBlankStr] = Field(min_length=1)
    category_id: uuid.UUID
    region_id: Optional[uuid.UUID] = None

    model_config = {"extra": "forbid"}


class RecipeUpdate(BaseModel):
    """
    Partial update. Only fields the client sent are applied
    (model_dump(exclude_unset=True)); a sent field obeys the same rules as
    on create, so ingredients and steps can never be emptied.
    """
    name: Optional[NonBlankStr] = None
    description: Optional[NonBlankStr] = None
    ingredients: Optional[List[NonBlankStr]] = Field(default=None, min_length=1)
    steps: Optional[List[NonBlankStr]] = Field(default=None, min_length=1)
    category_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None

    model_config = {"extra": "forbid"}

    @field_validator("name", "description", "ingredients", "steps", "category_id")
    @classmethod
    def reject_explicit_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("field may be omitted but not set to null")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Form Parsing (boundary validation)
# ══════════════════════════════════════════════════════════════════════════


def split_form_list(values: Optional[List[str]]) -> Optional[List[str]]:
    """
    Normalize a multipart list field.

    Clients send lists either as repeated fields
    (`ingredients=flour&ingredients=eggs`) or as a single field holding a
    JSON array (`ingredients=["flour", "eggs"]`). Returns None when the field
    was not sent at all.
    """
    if values is None:
        return None
    if len(values) == 1 and values[0].lstrip().startswith("["):
        try:
            decoded = json.loads(values[0])
        except json.JSONDecodeError:
            return values
        if isinstance(decoded, list):
            return [str(item) for item in decoded]
    return values


def _raise_validation_error(exc: PydanticValidationError) -> None:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    first = errors[0]
    raise ValidationError(
        message=f"Invalid value for '{first['field']}': {first['message']}",
        field=first["field"],
        context={"errors": errors},
    ) from exc


def _form_payload(
    name: Optional[str],
    description: Optional[str],
    ingredients: Optional[List[str]],
    steps: Optional[List[str]],
    category: Optional[str],
    country: Optional[str],
) -> Dict[str, Any]:
    raw = {
        "name": name,
        "description": description,
        "ingredients": split_form_list(ingredients),
        "steps": split_form_list(steps),
        "category_id": category,
    }
    payload = {key: value for key, value in raw.items() if value is not None}
    # An empty country field clears the region
    if country is not None:
        payload["region_id"] = country or None
    return payload


def parse_recipe_create(
    name: Optional[str] = None,
    description: Optional[str] = None,
    ingredients: Optional[List[str]] = None,
    steps: Optional[List[str]] = None,
    category: Optional[str] = None,
    country: Optional[str] = None,
) -> RecipeCreate:
    """Validate create form fields. Raises ValidationError (400) on bad input."""
    payload = _form_payload(name, description, ingredients, steps, category, country)
    try:
        return RecipeCreate.model_validate(payload)
    except PydanticValidationError as exc:
        _raise_validation_error(exc)


def parse_recipe_update(
    name: Optional[str] = None,
    description: Optional[str] = None,
    ingredients: Optional[List[str]] = None,
    steps: Optional[List[str]] = None,
    category: Optional[str] = None,
    country: Optional[str] = None,
) -> RecipeUpdate:
    """Validate partial update form fields. Raises ValidationError (400) on bad input."""
    payload = _form_payload(name, description, ingredients, steps, category, country)
    try:
        return RecipeUpdate.model_validate(payload)
    except PydanticValidationError as exc:
        _raise_validation_error(exc)
