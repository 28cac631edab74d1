"""Pydantic schemas for API requests and responses."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .state import CallKind, ConsultationRequest, ConsultationSession


class TokenRequest(BaseModel):
    """Body of a POST to the token endpoint."""
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    uid: int = 0


class TokenResponse(BaseModel):
    """Response from token endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    token: str
    app_id: str = Field(alias="appId")
    channel: str
    uid: int


class CreateRequestBody(BaseModel):
    """Body for creating a consultation request."""
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId")
    expert_id: str = Field(alias="expertId")
    topic: str
    description: str
    call_kind: CallKind = Field(default=CallKind.VIDEO, alias="callKind")


class UpdateRequestBody(BaseModel):
    """Body for accepting or rejecting a consultation request."""
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["accept", "reject"]
    expert_id: str = Field(alias="expertId")


class UpdateSessionBody(BaseModel):
    """Body for ending a session; participant_id is its student or expert."""
    model_config = ConfigDict(populate_by_name=True)

    action: str
    participant_id: str = Field(alias="participantId")


class RequestResponse(BaseModel):
    """Response from request endpoints."""
    request: ConsultationRequest
    session: Optional[ConsultationSession] = None


class EndSessionResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    """Response from health endpoint."""
    ok: bool
    token_service: bool
    active_sessions: int
