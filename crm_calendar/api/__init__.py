"""Calendar API Package

Aggregates the calendar route handlers into a single router that the
FastAPI application in main.py includes.
"""

from fastapi import APIRouter

from .routes import router as calendar_router


api_router = APIRouter(prefix="/api")

api_router.include_router(calendar_router, prefix="/calendar", tags=["calendar"])

__all__ = ["api_router"]
