"""FastAPI application for the micrawl REST API.

Provides the batch scrape stream and the browser health probe.

Example:
    uvicorn micrawl.api.app:app --host 0.0.0.0 --port 8000
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from micrawl.api.models.responses import ErrorResponse
from micrawl.api.routes.health import router as health_router
from micrawl.api.routes.scrape import router as scrape_router
from micrawl.core.config import get_settings
from micrawl.core.logger import get_logger
from micrawl.drivers.dispatcher import DriverRegistry, create_default_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle events.

    Handles startup and shutdown operations for the API:
    - Startup: Configure logging
    - Shutdown: Close every driver, including the shared browser

    Args:
        app: FastAPI application instance

    Yields:
        None during application runtime
    """
    get_logger("micrawl", log_level=get_settings().log_level)
    yield
    await app.state.registry.close_all()
    logger.info("Closed scrape drivers")


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 with field-level details for malformed request bodies."""
    body = ErrorResponse(
        error="Invalid request payload",
        details=jsonable_encoder(exc.errors()),
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body.model_dump(exclude_none=True),
    )


def create_app(registry: DriverRegistry | None = None) -> FastAPI:
    """Build the API application.

    Args:
        registry: Drivers used by the routes; Playwright and HTTP by default

    Returns:
        Configured FastAPI application
    """
    application = FastAPI(
        title="micrawl API",
        description="Streaming web scraper with browser and HTTP drivers",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.registry = registry or create_default_registry()
    application.add_exception_handler(RequestValidationError, validation_error_handler)

    application.include_router(health_router)
    application.include_router(scrape_router)
    return application


app = create_app()
