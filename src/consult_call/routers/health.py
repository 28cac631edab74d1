"""Health router."""

from fastapi import APIRouter, Depends

from ..deps import get_consultation_store_dependency, get_token_issuer_dependency
from ..models.schemas import HealthResponse
from ..services.session_store import ConsultationStore
from ..services.token_builder import ChannelTokenIssuer

router = APIRouter(prefix="/api")


@router.get("/health", response_model=HealthResponse)
async def api_health(
    issuer: ChannelTokenIssuer = Depends(get_token_issuer_dependency),
    store: ConsultationStore = Depends(get_consultation_store_dependency),
) -> HealthResponse:
    """Get application health status.

    Args:
        issuer: Token issuer
        store: Consultation store

    Returns:
        Health status information
    """
    return HealthResponse(
        ok=True,
        token_service=issuer.is_configured,
        active_sessions=store.active_session_count,
    )
