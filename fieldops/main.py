"""
Field operations backend - main application entry point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

from fieldops.api.router import api_router
from fieldops.core.config import settings
from fieldops.core.errors import (
    http_exception_handler,
    field_ops_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from fieldops.core.exceptions import FieldOpsError
from fieldops.core.logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


app = FastAPI(
    title="Field Operations Backend",
    description="Guard attendance with geofenced check-in and weapon chain of custody",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(FieldOpsError, field_ops_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL and geofence settings at startup."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))
    logger.info(
        "Geofence radius=%sm, geolocation timeout=%ss, work-date zone=%s",
        settings.GEOFENCE_RADIUS_METERS, settings.GEOLOCATION_TIMEOUT_SECONDS, settings.TZ,
    )
