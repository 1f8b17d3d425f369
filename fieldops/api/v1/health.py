"""
Health check endpoint
"""
from fastapi import APIRouter
from fieldops.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns service status and version.
    """
    return {
        "status": "ok",
        "service": "fieldops-backend",
        "version": settings.VERSION or "1.0.0",
        "env": settings.APP_ENV,
    }
