"""Data models and schemas for the consultation call service."""

from .schemas import (
    CreateRequestBody,
    EndSessionResponse,
    HealthResponse,
    RequestResponse,
    TokenRequest,
    TokenResponse,
    UpdateRequestBody,
    UpdateSessionBody,
)
from .state import (
    CallKind,
    CallState,
    ConsultationRequest,
    ConsultationSession,
    MediaKind,
    RemoteParticipant,
    RequestStatus,
    SessionDescriptor,
    SessionStatus,
)

__all__ = [
    "CreateRequestBody",
    "EndSessionResponse",
    "HealthResponse",
    "RequestResponse",
    "TokenRequest",
    "TokenResponse",
    "UpdateRequestBody",
    "UpdateSessionBody",
    "CallKind",
    "CallState",
    "ConsultationRequest",
    "ConsultationSession",
    "MediaKind",
    "RemoteParticipant",
    "RequestStatus",
    "SessionDescriptor",
    "SessionStatus",
]
