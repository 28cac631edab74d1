"""Services package for business logic components."""

from .call_session import CallSession
from .errors import (
    CallCancelled,
    CallErrorKind,
    CallSessionError,
    TransportError,
    TransportErrorCode,
    classify_error,
)
from .rtc_base import LocalTrack, RemoteTrack, RtcClient, RtcEngine
from .rtc_loopback import LoopbackEngine
from .session_manager import CallSessionManager
from .session_store import ConsultationStore
from .surfaces import LOCAL_SURFACE_ID, REMOTE_SURFACE_ID, DisplaySurface, SurfaceRegistry
from .token_builder import ChannelTokenIssuer, TokenServiceUnavailable
from .token_client import TokenClient

__all__ = [
    "CallSession",
    "CallCancelled",
    "CallErrorKind",
    "CallSessionError",
    "TransportError",
    "TransportErrorCode",
    "classify_error",
    "LocalTrack",
    "RemoteTrack",
    "RtcClient",
    "RtcEngine",
    "LoopbackEngine",
    "CallSessionManager",
    "ConsultationStore",
    "LOCAL_SURFACE_ID",
    "REMOTE_SURFACE_ID",
    "DisplaySurface",
    "SurfaceRegistry",
    "ChannelTokenIssuer",
    "TokenServiceUnavailable",
    "TokenClient",
]
