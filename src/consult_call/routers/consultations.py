"""Consultation request and session router."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..deps import get_consultation_store_dependency
from ..models.schemas import (
    CreateRequestBody,
    EndSessionResponse,
    RequestResponse,
    UpdateRequestBody,
    UpdateSessionBody,
)
from ..models.state import ConsultationRequest, ConsultationSession
from ..services.session_store import (
    AccessDenied,
    ConsultationStore,
    InvalidTransition,
    NotFound,
    StoreError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consultations")


def _http_error(error: StoreError) -> HTTPException:
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, AccessDenied):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, InvalidTransition):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


@router.get("/requests", response_model=list[ConsultationRequest])
async def list_requests(
    student_id: Optional[str] = Query(default=None, alias="studentId"),
    expert_id: Optional[str] = Query(default=None, alias="expertId"),
    store: ConsultationStore = Depends(get_consultation_store_dependency),
) -> list[ConsultationRequest]:
    """List requests of a student and/or expert, newest first."""
    return await store.list_requests(student_id=student_id, expert_id=expert_id)


@router.post("/requests", response_model=RequestResponse, status_code=201)
async def create_request(
    body: CreateRequestBody,
    store: ConsultationStore = Depends(get_consultation_store_dependency),
) -> RequestResponse:
    """Create a pending consultation request."""
    try:
        request = await store.create_request(
            student_id=body.student_id,
            expert_id=body.expert_id,
            topic=body.topic,
            description=body.description,
            call_kind=body.call_kind,
        )
    except StoreError as e:
        raise _http_error(e)
    return RequestResponse(request=request)


@router.put("/requests/{request_id}", response_model=RequestResponse)
async def update_request(
    request_id: str,
    body: UpdateRequestBody,
    store: ConsultationStore = Depends(get_consultation_store_dependency),
) -> RequestResponse:
    """Accept or reject a pending request.

    Accepting opens an active session for the student and the expert.

    Raises:
        HTTPException: 404 unknown request, 403 wrong expert, 400 not pending
    """
    try:
        if body.action == "accept":
            request, session = await store.accept_request(request_id, body.expert_id)
            return RequestResponse(request=request, session=session)

        request = await store.reject_request(request_id, body.expert_id)
        return RequestResponse(request=request)
    except StoreError as e:
        logger.warning(f"Request {request_id} {body.action} failed: {e}")
        raise _http_error(e)


@router.get("/sessions", response_model=list[ConsultationSession])
async def list_sessions(
    student_id: Optional[str] = Query(default=None, alias="studentId"),
    expert_id: Optional[str] = Query(default=None, alias="expertId"),
    store: ConsultationStore = Depends(get_consultation_store_dependency),
) -> list[ConsultationSession]:
    """List sessions of a student and/or expert, newest first."""
    return await store.list_sessions(student_id=student_id, expert_id=expert_id)


@router.get("/sessions/{session_id}", response_model=ConsultationSession)
async def get_session(
    session_id: str,
    store: ConsultationStore = Depends(get_consultation_store_dependency),
) -> ConsultationSession:
    try:
        return await store.get_session(session_id)
    except StoreError as e:
        raise _http_error(e)


@router.put("/sessions/{session_id}", response_model=EndSessionResponse)
async def update_session(
    session_id: str,
    body: UpdateSessionBody,
    store: ConsultationStore = Depends(get_consultation_store_dependency),
) -> EndSessionResponse:
    """End a session; the only supported action is ``end``.

    Raises:
        HTTPException: 404 unknown session, 403 caller is not a participant,
            400 any action other than ``end``
    """
    try:
        await store.get_session_for(session_id, body.participant_id)
        if body.action != "end":
            raise HTTPException(status_code=400, detail="Invalid action")
        await store.end_session(session_id, body.participant_id)
    except StoreError as e:
        raise _http_error(e)
    return EndSessionResponse(success=True, message="Session ended")
