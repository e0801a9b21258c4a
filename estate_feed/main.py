"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import async_sessionmaker
from contextlib import asynccontextmanager
from pathlib import Path
import logging

from estate_feed.config import settings
from estate_feed.database import (
    check_database_connection,
    close_db_connection,
    create_tables,
    get_session_factory
)
from estate_feed.routers import (
    auth_router,
    properties_router,
    likes_router,
    comments_router,
    profiles_router,
    storage_router,
    realtime_router
)
from estate_feed.services.error_handler import ErrorHandlerService
from estate_feed.utils.exceptions import APIException

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    db_connected = await check_database_connection()
    if not db_connected:
        logger.error("Failed to connect to database on startup")
    elif settings.create_tables_on_startup:
        await create_tables()

    yield

    logger.info("Shutting down application")
    await close_db_connection()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Social real-estate listings: post properties with images, browse a filtered
    feed, like and comment on listings, and follow changes in realtime.

    ## Authentication

    Sign up or log in under `/api/v1/auth`, then send the access token as
    `Authorization: Bearer <token>`. Browsing works anonymously.

    ## Realtime

    `/ws/properties/{id}/comments` and `/ws/profiles/{id}/listings` stream a
    fresh snapshot whenever the underlying rows change.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Authentication", "description": "Sign-up, login and session lookup"},
        {"name": "Properties", "description": "Listing feed, posting and deletion"},
        {"name": "Likes", "description": "Like toggling"},
        {"name": "Comments", "description": "Comments on listings"},
        {"name": "Profiles", "description": "User profiles and their listings"},
        {"name": "Storage", "description": "Image uploads"},
        {"name": "Realtime", "description": "WebSocket change streams"},
        {"name": "Health", "description": "System health endpoints"}
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(properties_router, prefix=settings.api_v1_prefix)
app.include_router(likes_router, prefix=settings.api_v1_prefix)
app.include_router(comments_router, prefix=settings.api_v1_prefix)
app.include_router(profiles_router, prefix=settings.api_v1_prefix)
app.include_router(storage_router, prefix=settings.api_v1_prefix)
app.include_router(realtime_router)

Path(settings.media_root).mkdir(parents=True, exist_ok=True)
app.mount(settings.media_url_prefix, StaticFiles(directory=settings.media_root, check_dir=False), name="media")


# Global exception handlers using ErrorHandlerService
@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Handle application exceptions with structured error responses."""
    return ErrorHandlerService.handle_api_exception(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle framework HTTP exceptions with structured error responses."""
    return ErrorHandlerService.handle_http_exception(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with secure error responses."""
    return ErrorHandlerService.handle_unexpected_error(exc, request)


@app.get("/health", tags=["Health"])
async def health_check(session_factory: async_sessionmaker = Depends(get_session_factory)):
    """
    Health check endpoint with database connectivity test.
    Used by container health checks and load balancers.
    """
    db_healthy = await check_database_connection(session_factory)
    if not db_healthy:
        raise StarletteHTTPException(status_code=503, detail="Database connection failed")

    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "estate_feed.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
