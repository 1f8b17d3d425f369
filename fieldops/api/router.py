"""
Main API router
"""
from fastapi import APIRouter

from fieldops.api.v1 import (
    health,
    attendance,
    weapons,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
api_router.include_router(weapons.router, prefix="/weapons", tags=["weapons"])
