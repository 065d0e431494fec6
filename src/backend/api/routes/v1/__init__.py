"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix=settings.api_prefix)
"""

from fastapi import APIRouter

from api.routes.v1 import chat, health

# Create the v1 API router
router = APIRouter()

# Health endpoints (no auth required)
router.include_router(
    health.router,
    tags=["Health"],
)

# Chat relay (authenticated and demo)
router.include_router(
    chat.router,
    tags=["Chat"],
)

__all__ = ["router"]
