"""API routes."""

from dtr_engine.api.routes.dtr import router as dtr_router
from dtr_engine.api.routes.health import router as health_router

__all__ = ["dtr_router", "health_router"]
