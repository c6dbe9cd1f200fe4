"""
Credential Validator - FastAPI Application
Graduation request document review.

Reviews the identity, academic and administrative documents attached to a
graduation request and answers with a complete, fixed-schema record.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.routers import graduation, health
from app.services.validation import CredentialValidationError


# =============================================================================
# Logging Setup
# =============================================================================

def setup_logging():
    """Configure logging based on settings."""
    from app.core.logging_config import setup_logging as configure_logging
    settings = get_settings()
    configure_logging(
        level=settings.log_level.upper(),
        json_format=settings.log_json_format,
        log_file=Path(settings.log_file) if settings.log_file else None,
    )


# =============================================================================
# Lifespan (Startup/Shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warm the dictionary cache before the first request."""
    settings = get_settings()
    logger = logging.getLogger(__name__)

    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    if settings.preload_dictionaries:
        repository = graduation.get_repository(settings)
        report = repository.preload()
        failed = [name for name, status in report.items() if status != "loaded"]
        if failed:
            logger.warning("Dictionaries using fallback vocabularies: %s", ", ".join(failed))

    yield

    logger.info("Shutting down %s", settings.app_name)


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Application factory.
    Creates and configures the FastAPI application.
    """
    settings = get_settings()
    setup_logging()

    tags_metadata = [
        {
            "name": "Health",
            "description": "Liveness and dictionary load state.",
        },
        {
            "name": "Graduation Validation",
            "description": "Document review, dictionary matching and TyT field extraction.",
        },
    ]

    app = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.enable_docs else None,
        redoc_url="/api/redoc" if settings.enable_docs else None,
        openapi_url="/api/openapi.json" if settings.enable_docs else None,
        openapi_tags=tags_metadata,
    )

    # =========================================================================
    # Middleware
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # =========================================================================
    # Exception Handlers
    # =========================================================================

    @app.exception_handler(CredentialValidationError)
    async def credential_error_handler(request: Request, exc: CredentialValidationError):
        logging.getLogger(__name__).error("Validation engine error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=422,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    # =========================================================================
    # Register Routers
    # =========================================================================

    app.include_router(health.router, tags=["Health"])
    app.include_router(graduation.router)

    return app


# Create the app instance
app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
