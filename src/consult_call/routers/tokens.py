"""Token issuance router for consultation calls."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from ..deps import get_token_issuer_dependency
from ..models.schemas import TokenRequest, TokenResponse
from ..services.token_builder import ChannelTokenIssuer, TokenServiceUnavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consultations")

UNAVAILABLE_DETAIL = "Agora token service unavailable. Please contact support."


def _issue(issuer: ChannelTokenIssuer, channel: Optional[str], uid: int) -> TokenResponse:
    if not issuer.is_configured:
        logger.error("AGORA_APP_ID or AGORA_APP_CERTIFICATE not configured; token endpoint disabled")
        raise HTTPException(status_code=500, detail=UNAVAILABLE_DETAIL)

    if not channel:
        raise HTTPException(status_code=400, detail="Channel is required")

    try:
        issued = issuer.issue(channel, uid)
    except TokenServiceUnavailable:
        raise HTTPException(status_code=500, detail=UNAVAILABLE_DETAIL)

    return TokenResponse(
        token=issued.token,
        app_id=issued.app_id,
        channel=issued.channel,
        uid=issued.uid,
    )


@router.get("/agora-token", response_model=TokenResponse)
async def get_token(
    channel: Optional[str] = Query(default=None),
    uid: int = Query(default=0, ge=0),
    issuer: ChannelTokenIssuer = Depends(get_token_issuer_dependency),
) -> TokenResponse:
    """Issue a publisher token for a consultation channel.

    Args:
        channel: Consultation session id or channel name
        uid: Participant id, 0 to let the engine assign one
        issuer: Token issuer

    Returns:
        Token, app id, normalized channel name and uid

    Raises:
        HTTPException: 400 without channel, 500 if the service is not configured
    """
    return _issue(issuer, channel, uid)


@router.post("/agora-token", response_model=TokenResponse)
async def post_token(
    payload: Optional[TokenRequest] = Body(default=None),
    issuer: ChannelTokenIssuer = Depends(get_token_issuer_dependency),
) -> TokenResponse:
    """Issue a publisher token for the session id in the request body.

    A missing body is handled like a missing channel.
    """
    if payload is None:
        return _issue(issuer, None, 0)
    return _issue(issuer, payload.session_id, payload.uid)
