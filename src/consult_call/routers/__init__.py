"""Routers package for FastAPI route handlers."""

from .consultations import router as consultations_router
from .health import router as health_router
from .tokens import router as tokens_router

__all__ = [
    "consultations_router",
    "health_router",
    "tokens_router",
]
