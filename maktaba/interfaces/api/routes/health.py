"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter

from maktaba import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "maktaba"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "Maktaba API",
        "version": __version__,
        "description": "Hybrid search over classical Arabic books, Quran and hadith",
        "docs": "/docs",
    }
