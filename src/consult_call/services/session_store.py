"""In-memory store for consultation requests and sessions."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional, TypeVar, Union

from pyee.asyncio import AsyncIOEventEmitter

from ..models.state import (
    CallKind,
    ConsultationRequest,
    ConsultationSession,
    RequestStatus,
    SessionStatus,
)

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for consultation store errors."""


class NotFound(StoreError):
    pass


class AccessDenied(StoreError):
    pass


class InvalidTransition(StoreError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


Record = TypeVar("Record", bound=Union[ConsultationRequest, ConsultationSession])


def _newest_first(
    records: Iterable[Record],
    student_id: Optional[str],
    expert_id: Optional[str],
) -> list[Record]:
    matching = [
        r for r in records
        if (student_id is None or r.student_id == student_id)
        and (expert_id is None or r.expert_id == expert_id)
    ]
    # Equal timestamps keep the later record first
    return sorted(reversed(matching), key=lambda r: r.created_at, reverse=True)


class ConsultationStore(AsyncIOEventEmitter):
    """Holds consultation requests and the sessions created from them.

    Requests move pending -> accepted | rejected, and accepted -> completed
    when their session ends. Sessions move active -> completed.

    Events:
        request_created(request), request_accepted(request, session),
        request_rejected(request), consultation_ended(session)
    """

    def __init__(self):
        super().__init__()
        self._requests: dict[str, ConsultationRequest] = {}
        self._sessions: dict[str, ConsultationSession] = {}

    @property
    def active_session_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.status is SessionStatus.ACTIVE)

    async def create_request(
        self,
        student_id: str,
        expert_id: str,
        topic: str,
        description: str,
        call_kind: CallKind = CallKind.VIDEO,
    ) -> ConsultationRequest:
        if not (expert_id and topic and description):
            raise InvalidTransition("Expert ID, topic, and description are required")

        request = ConsultationRequest(
            id=uuid.uuid4().hex,
            student_id=student_id,
            expert_id=expert_id,
            topic=topic,
            description=description,
            call_kind=call_kind,
        )
        self._requests[request.id] = request
        logger.info(f"Consultation request {request.id} created for expert {expert_id}")
        self.emit("request_created", request)
        return request

    async def get_request(self, request_id: str) -> ConsultationRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise NotFound("Request not found")
        return request

    async def accept_request(self, request_id: str, expert_id: str) -> tuple[ConsultationRequest, ConsultationSession]:
        """Accept a pending request and open its session."""
        request = await self._pending_request_for(request_id, expert_id)

        now = _now()
        request.status = RequestStatus.ACCEPTED
        request.updated_at = now
        session = ConsultationSession(
            id=uuid.uuid4().hex,
            request_id=request.id,
            student_id=request.student_id,
            expert_id=request.expert_id,
            topic=request.topic,
            call_kind=request.call_kind,
            created_at=now,
            updated_at=now,
        )
        self._sessions[session.id] = session
        logger.info(f"Request {request.id} accepted, session {session.id} active")
        self.emit("request_accepted", request, session)
        return request, session

    async def reject_request(self, request_id: str, expert_id: str) -> ConsultationRequest:
        request = await self._pending_request_for(request_id, expert_id)
        request.status = RequestStatus.REJECTED
        request.updated_at = _now()
        logger.info(f"Request {request.id} rejected")
        self.emit("request_rejected", request)
        return request

    async def list_requests(
        self,
        student_id: Optional[str] = None,
        expert_id: Optional[str] = None,
    ) -> list[ConsultationRequest]:
        """Requests of a student and/or expert, newest first."""
        return _newest_first(self._requests.values(), student_id, expert_id)

    async def get_session(self, session_id: str) -> ConsultationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFound("Session not found")
        return session

    async def list_sessions(
        self,
        student_id: Optional[str] = None,
        expert_id: Optional[str] = None,
    ) -> list[ConsultationSession]:
        """Sessions of a student and/or expert, newest first."""
        return _newest_first(self._sessions.values(), student_id, expert_id)

    async def get_session_for(self, session_id: str, participant_id: str) -> ConsultationSession:
        """Look up a session on behalf of one of its two participants.

        Raises:
            NotFound: Unknown session id
            AccessDenied: participant_id is neither the student nor the expert
        """
        session = await self.get_session(session_id)
        if participant_id not in (session.student_id, session.expert_id):
            raise AccessDenied("Access denied")
        return session

    async def end_session(self, session_id: str, participant_id: str) -> ConsultationSession:
        """Complete a session and the request it came from.

        Ending a completed session again succeeds and keeps its first
        ended_at; consultation_ended is emitted every time.
        """
        session = await self.get_session_for(session_id, participant_id)

        now = _now()
        if session.status is SessionStatus.COMPLETED:
            logger.info(f"Session {session.id} already ended")
        else:
            session.status = SessionStatus.COMPLETED
            session.ended_at = now
        session.updated_at = now

        request = self._requests.get(session.request_id)
        if request is not None:
            request.status = RequestStatus.COMPLETED
            request.updated_at = now

        logger.info(f"Session {session.id} ended by {participant_id}")
        self.emit("consultation_ended", session)
        return session

    async def _pending_request_for(self, request_id: str, expert_id: str) -> ConsultationRequest:
        request = await self.get_request(request_id)
        if request.expert_id != expert_id:
            raise AccessDenied("You can only accept/reject requests assigned to you")
        if request.status is not RequestStatus.PENDING:
            raise InvalidTransition("Request is not pending")
        return request
