"""
Health Routes - Liveness and API info endpoints.
"""

from typing import Any

from fastapi import APIRouter

from knowdex import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "knowdex"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "Knowdex API",
        "version": __version__,
        "description": "Local knowledge-base indexing and multi-stage retrieval",
        "docs": "/docs",
    }
