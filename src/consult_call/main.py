"""FastAPI application factory and main entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .deps import get_consultation_store, get_session_manager, get_token_issuer
from .logging_config import setup_logging
from .models.state import ConsultationSession
from .routers import consultations_router, health_router, tokens_router
from .settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting consultation call service")
    settings = get_settings()
    logger.info(f"Token service configured: {settings.token_service_configured}")
    logger.info(f"Call init timeout: {settings.call_init_timeout}s")

    store = get_consultation_store()
    manager = get_session_manager()
    issuer = get_token_issuer()

    async def close_call(session: ConsultationSession) -> None:
        # An ended consultation takes its call down with it
        await manager.close(issuer.normalize_channel(session.id))

    store.on("consultation_ended", close_call)

    yield

    # Shutdown
    store.remove_listener("consultation_ended", close_call)
    await manager.close_all()
    logger.info("Shutting down consultation call service")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    settings = get_settings()

    app = FastAPI(
        title="Consult Call",
        description="Token issuance and call sessions for expert consultations",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(tokens_router, tags=["tokens"])
    app.include_router(consultations_router, tags=["consultations"])
    app.include_router(health_router, tags=["health"])

    logger.info("FastAPI application created and configured")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "consult_call.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info",
    )
