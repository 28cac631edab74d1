"""Real-time engine interface definition.

A call-session adapter talks to a real-time communication engine through
these abstractions only. An engine hands out clients (one per call) and
local media tracks; a client joins a channel, publishes local tracks and
subscribes to the tracks remote participants publish.

Client events (pyee):

- ``user-published`` ``(uid, kind)``: a remote participant published a track.
- ``user-unpublished`` ``(uid, kind)``: a remote participant stopped publishing.
- ``connection-state-change`` ``(current, previous)``: transport connection state.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from pyee.asyncio import AsyncIOEventEmitter

from ..models.state import MediaKind, Uid
from .surfaces import DisplaySurface


class LocalTrack(ABC):
    """A media track captured locally and owned by one adapter."""

    kind: MediaKind

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether media is currently being sent."""
        raise NotImplementedError

    @abstractmethod
    async def set_enabled(self, enabled: bool) -> None:
        """Enable or disable the track without unpublishing it."""
        raise NotImplementedError

    @abstractmethod
    def play(self, surface: Optional[DisplaySurface] = None) -> None:
        """Render the track locally."""
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """Stop local playback."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release the capture device."""
        raise NotImplementedError


class RemoteTrack(ABC):
    """A track published by a remote participant and subscribed locally."""

    kind: MediaKind
    uid: Uid

    @abstractmethod
    def play(self, surface: Optional[DisplaySurface] = None) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError


class RtcClient(AsyncIOEventEmitter, ABC):
    """One connection to a channel."""

    @abstractmethod
    async def join(self, app_id: str, channel: str, token: str, uid: Uid) -> Uid:
        """Join a channel and return the participant id actually assigned."""
        raise NotImplementedError

    @abstractmethod
    async def leave(self) -> None:
        """Leave the channel. Leaving when not joined is a no-op."""
        raise NotImplementedError

    @abstractmethod
    async def publish(self, tracks: Sequence[LocalTrack]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def unpublish(self, tracks: Sequence[LocalTrack]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def subscribe(self, uid: Uid, kind: MediaKind) -> RemoteTrack:
        """Subscribe to a remote participant's track of the given kind."""
        raise NotImplementedError


class RtcEngine(ABC):
    """Factory for clients and local capture tracks."""

    @abstractmethod
    def create_client(self) -> RtcClient:
        raise NotImplementedError

    @abstractmethod
    async def create_microphone_track(self) -> LocalTrack:
        """Acquire the microphone. Raises TransportError on permission denial."""
        raise NotImplementedError

    @abstractmethod
    async def create_camera_track(self) -> LocalTrack:
        """Acquire the camera. Raises TransportError on permission denial."""
        raise NotImplementedError

    async def create_microphone_and_camera_tracks(self) -> tuple[LocalTrack, LocalTrack]:
        """Acquire both devices; both must succeed or neither track is kept."""
        audio = await self.create_microphone_track()
        try:
            video = await self.create_camera_track()
        except BaseException:
            audio.stop()
            audio.close()
            raise
        return audio, video
