"""Dependency injection and service wiring."""

import logging
from functools import lru_cache

from .services import (
    CallSessionManager,
    ChannelTokenIssuer,
    ConsultationStore,
    LoopbackEngine,
    TokenClient,
)
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_token_issuer(settings: Settings = None) -> ChannelTokenIssuer:
    """Get token issuer instance.

    Args:
        settings: Application settings (injected)

    Returns:
        Token issuer instance
    """
    if settings is None:
        settings = get_settings()

    return ChannelTokenIssuer(
        app_id=settings.agora_app_id,
        app_certificate=settings.agora_app_certificate,
        ttl_seconds=settings.token_ttl_seconds,
        channel_prefix=settings.channel_prefix,
    )


@lru_cache()
def get_consultation_store() -> ConsultationStore:
    """Get singleton consultation store instance."""
    return ConsultationStore()


@lru_cache()
def get_loopback_engine(settings: Settings = None) -> LoopbackEngine:
    """Get the in-process engine, validating tokens against the local issuer."""
    if settings is None:
        settings = get_settings()

    return LoopbackEngine(app_id=settings.agora_app_id, token_issuer=get_token_issuer())


@lru_cache()
def get_session_manager(settings: Settings = None) -> CallSessionManager:
    """Get call session manager instance.

    Args:
        settings: Application settings (injected)

    Returns:
        Session manager bound to the loopback engine
    """
    if settings is None:
        settings = get_settings()

    return CallSessionManager(
        get_loopback_engine(),
        init_timeout=settings.call_init_timeout,
        surface_wait_timeout=settings.surface_wait_timeout,
    )


def get_token_client(settings: Settings = None) -> TokenClient:
    """Get token client for the configured endpoint.

    Raises:
        ValueError: If TOKEN_ENDPOINT_URL is not configured
    """
    if settings is None:
        settings = get_settings()

    if not settings.token_endpoint_url:
        raise ValueError("TOKEN_ENDPOINT_URL is not configured")
    return TokenClient(settings.token_endpoint_url)


# Dependency factories for FastAPI
def get_token_issuer_dependency() -> ChannelTokenIssuer:
    """FastAPI dependency for token issuer."""
    return get_token_issuer()


def get_consultation_store_dependency() -> ConsultationStore:
    """FastAPI dependency for consultation store."""
    return get_consultation_store()
