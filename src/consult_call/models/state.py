"""Call and consultation state types."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Uid = Union[str, int]


class CallKind(str, Enum):
    """Kind of media a call carries."""

    VOICE = "voice"
    VIDEO = "video"


class CallState(str, Enum):
    """Lifecycle state of a call-session adapter."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    ERROR = "error"
    ENDED = "ended"


class MediaKind(str, Enum):
    """Kind of a single media track."""

    AUDIO = "audio"
    VIDEO = "video"


class SessionDescriptor(BaseModel):
    """Everything needed to join one channel. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    app_id: str
    channel: str
    token: Optional[str] = None
    uid: Uid = 0
    call_kind: CallKind = CallKind.VIDEO

    @property
    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty."""
        missing = []
        if not self.app_id:
            missing.append("app_id")
        if not self.channel:
            missing.append("channel")
        if not self.token:
            missing.append("token")
        return missing


@dataclass
class RemoteParticipant:
    """A remote endpoint and the tracks it currently publishes."""

    uid: Uid
    audio_track: Optional[Any] = None
    video_track: Optional[Any] = None

    @property
    def has_tracks(self) -> bool:
        return self.audio_track is not None or self.video_track is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class ConsultationRequest(BaseModel):
    """A student's request for a consultation with an expert."""

    id: str
    student_id: str
    expert_id: str
    topic: str
    description: str
    call_kind: CallKind = CallKind.VIDEO
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ConsultationSession(BaseModel):
    """A consultation session created when an expert accepts a request."""

    id: str
    request_id: str
    student_id: str
    expert_id: str
    topic: str
    call_kind: CallKind = CallKind.VIDEO
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None
