"""
Recipes API - Custom Exception Hierarchy
==========================================

What:  Application-specific exceptions for the different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with the right HTTP status.
Who:   Raised by services and routes; caught by global handlers.

Exception Hierarchy:
    RecipesAPIError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── NotFoundError            → 404 Not Found
    │   └── PageNotFoundError    → 404 Not Found (page outside 1..total_pages)
    ├── ConflictError            → 409 Conflict
    ├── RecipeCreationError      → 500 Internal Server Error (generic message)
    ├── ImageStoreError          → 500 Internal Server Error
    ├── FileStorageError         → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class RecipesAPIError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, only some handlers return it)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RecipesAPIError):
    """
    Raised when client input fails validation.

    When:    Bad upload, empty ingredient list, unknown category id, etc.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "The ingredients list must not be empty",
            "details": {"field": "ingredients"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(RecipesAPIError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records (not an exception); the
    service layer converts None → NotFoundError.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class PageNotFoundError(NotFoundError):
    """Requested listing page is outside 1..total_pages (or the collection is empty)."""

    def __init__(self, page: int, total_pages: int):
        super().__init__(
            resource="page",
            message="Page not found",
            context={"page": page, "total_pages": total_pages},
        )
        self.page = page
        self.total_pages = total_pages


class ConflictError(RecipesAPIError):
    """
    Raised when a write would break a uniqueness or reference rule.

    When:    Duplicate category name, deleting a region still used by recipes.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RecipeCreationError(RecipesAPIError):
    """
    Raised when creating a recipe fails during image upload or persistence.

    The original cause is logged server-side and kept in `context`; the
    response only carries the generic message.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "Error creating the recipe",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ImageStoreError(RecipesAPIError):
    """
    Raised when the image host (Cloudinary) rejects an upload or deletion.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "The image service failed to process the request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(RecipesAPIError):
    """
    Raised when staging an upload on the local file system fails.

    When:    Disk full, permission denied, directory not writable.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(RecipesAPIError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; SQL details are
    logged server-side only.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
