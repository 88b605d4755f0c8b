"""
Recipes API - FastAPI Application Factory
===========================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires settings, services, middleware, exception handlers
       and routers, and returns the app.
Who:   uvicorn (uvicorn recipes_api.main:app) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Logging → Security       │
    │               → GZip → CORS                         │
    │                                                     │
    │  Routes (under /v1/api):                            │
    │    /recipes   /categories   /countries              │
    │  Routes (root):                                     │
    │    /health                                          │
    │                                                     │
    │  Exception Handlers:                                │
    │    Validation→400  NotFound→404  Conflict→409       │
    │    RecipeCreation / ImageStore / File / DB → 500    │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, upload directory
    Shutdown: close cache connections, dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from recipes_api import __version__
from recipes_api.config import Settings, settings
from recipes_api.database import dispose_engine
from recipes_api.dependencies import ServiceContainer, build_services
from recipes_api.exceptions import (
    ConflictError,
    DatabaseError,
    FileStorageError,
    ImageStoreError,
    NotFoundError,
    RecipeCreationError,
    RecipesAPIError,
    ValidationError,
)
from recipes_api.middleware.logging import RequestLoggingMiddleware
from recipes_api.middleware.request_id import RequestIDMiddleware, request_id_var
from recipes_api.middleware.security_headers import SecurityHeadersMiddleware
from recipes_api.routes import health, recipes
from recipes_api.routes.catalog import categories_router, countries_router

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An internal error occurred. Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("cloudinary").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("Recipes API %s starting up...", __version__)

    try:
        config.validate_required_for_production()
    except ValueError as e:
        # The API still serves reads and health checks without Cloudinary
        logger.error("Configuration error: %s", str(e))

    upload_dir = Path(config.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Upload staging directory: %s", upload_dir.resolve())
    logger.info("API mounted at %s", config.api_prefix or "/")
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Recipes API shutting down...")
    await app.state.services.cache.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

        ValidationError       → 400  message + details
        NotFoundError         → 404  message (includes "Page not found")
        ConflictError         → 409  message + details
        RecipeCreationError   → 500  generic creation message, cause logged
        ImageStoreError       → 500  message, context logged
        FileStorageError      → 500  message, context logged
        DatabaseError         → 500  generic message, context logged
        RecipesAPIError       → 500  generic message
        Exception             → 500  generic message, stack trace logged

    Internal details (stack traces, SQL, file paths, SDK errors) are only
    ever written to the server log.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message, exc.context)

    @app.exception_handler(RecipeCreationError)
    async def handle_recipe_creation_error(request: Request, exc: RecipeCreationError):
        logger.error("[%s] Recipe creation failed | Context: %s", request_id_var.get(""), exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(ImageStoreError)
    async def handle_image_store_error(request: Request, exc: ImageStoreError):
        logger.error("[%s] Image store error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("[%s] File storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", GENERIC_SERVER_ERROR)

    @app.exception_handler(RecipesAPIError)
    async def handle_app_error(request: Request, exc: RecipesAPIError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", GENERIC_SERVER_ERROR)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    config: Optional[Settings] = None,
    services: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Settings to use (defaults to the module singleton)
        services: Prebuilt service container; tests pass one built around
                  fake adapters. Built from `config` when omitted.
    """
    config = config or settings

    app = FastAPI(
        title="Recipes API",
        description=(
            "Explore and manage a collection of cooking recipes from every corner of the "
            "planet, together with their categories and countries of origin."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.services = services or build_services(config)

    # ── Middleware ────────────────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → Logging → Security → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            recipes.CACHE_KEY_HEADER,
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(recipes.router, prefix=config.api_prefix)
    app.include_router(categories_router, prefix=config.api_prefix)
    app.include_router(countries_router, prefix=config.api_prefix)
    app.include_router(health.router)

    return app


app = create_app()
