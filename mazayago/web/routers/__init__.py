"""API routers of the draw service."""

from .draws import router as draws_router
from .public import router as public_router

__all__ = ["draws_router", "public_router"]
