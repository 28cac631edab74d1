"""In-process real-time engine.

Clients created by the same engine share channels, so two call-session
adapters in one process can call each other. Local tracks wrap aiortc's
synthetic sources (silence and blank video frames) instead of real devices.
"""

import asyncio
import itertools
import logging
from typing import Optional, Sequence

from aiortc import AudioStreamTrack, MediaStreamTrack, VideoStreamTrack

from ..models.state import MediaKind, Uid
from .errors import TransportError, TransportErrorCode
from .rtc_base import LocalTrack, RemoteTrack, RtcClient, RtcEngine
from .surfaces import DisplaySurface
from .token_builder import ChannelTokenIssuer, TokenStatus

logger = logging.getLogger(__name__)


class LoopbackLocalTrack(LocalTrack):
    """Local track backed by an aiortc media source."""

    def __init__(self, kind: MediaKind, source: MediaStreamTrack):
        self.kind = kind
        self.source = source
        self.surface: Optional[DisplaySurface] = None
        self.playing = False
        self.closed = False
        self._enabled = True

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def set_enabled(self, enabled: bool) -> None:
        if self.closed:
            raise TransportError(TransportErrorCode.INVALID_OPERATION, "track is closed")
        self._enabled = enabled

    def play(self, surface: Optional[DisplaySurface] = None) -> None:
        if surface is not None:
            surface.attach(self)
            self.surface = surface
        self.playing = True

    def stop(self) -> None:
        if self.surface is not None:
            self.surface.detach()
            self.surface = None
        self.playing = False

    def close(self) -> None:
        self.stop()
        if not self.closed:
            self.source.stop()
            self.closed = True


class LoopbackRemoteTrack(RemoteTrack):
    """Subscription to a track published by another loopback client."""

    def __init__(self, uid: Uid, kind: MediaKind, source: LoopbackLocalTrack):
        self.uid = uid
        self.kind = kind
        self.source = source
        self.surface: Optional[DisplaySurface] = None
        self.playing = False

    def play(self, surface: Optional[DisplaySurface] = None) -> None:
        if surface is not None:
            surface.attach(self)
            self.surface = surface
        self.playing = True

    def stop(self) -> None:
        if self.surface is not None:
            self.surface.detach()
            self.surface = None
        self.playing = False


class LoopbackClient(RtcClient):
    """A client of the loopback engine."""

    def __init__(self, engine: "LoopbackEngine"):
        super().__init__()
        self._engine = engine
        self.channel: Optional[str] = None
        self.uid: Optional[Uid] = None
        self.published: dict[MediaKind, LoopbackLocalTrack] = {}

    @property
    def joined(self) -> bool:
        return self.channel is not None

    async def join(self, app_id: str, channel: str, token: str, uid: Uid) -> Uid:
        await self._engine.simulate_latency()
        self._engine.check_network()

        if self.joined:
            raise TransportError(TransportErrorCode.INVALID_OPERATION, "client already joined")
        if self._engine.app_id and app_id != self._engine.app_id:
            raise TransportError(TransportErrorCode.INVALID_APP_ID, "invalid vendor key, can not find appid")

        self._engine.check_token(token, channel, uid)

        members = self._engine.members(channel)
        assigned = uid if uid not in (0, "", None) else self._engine.next_uid()
        if assigned in members:
            raise TransportError(TransportErrorCode.INVALID_OPERATION, f"uid {assigned} already in channel")

        self.channel = channel
        self.uid = assigned
        members[assigned] = self
        logger.info(f"Client {assigned} joined {channel}")

        self.emit("connection-state-change", "CONNECTED", "CONNECTING")
        for peer in list(members.values()):
            if peer is self:
                continue
            for kind in list(peer.published):
                self.emit("user-published", peer.uid, kind)
        return assigned

    async def leave(self) -> None:
        if not self.joined:
            return
        members = self._engine.members(self.channel)
        members.pop(self.uid, None)
        for kind in list(self.published):
            self._notify_peers("user-unpublished", kind)
        self.published.clear()
        logger.info(f"Client {self.uid} left {self.channel}")
        self.channel = None
        self.emit("connection-state-change", "DISCONNECTED", "CONNECTED")

    async def publish(self, tracks: Sequence[LocalTrack]) -> None:
        await self._engine.simulate_latency()
        if not self.joined:
            raise TransportError(TransportErrorCode.INVALID_OPERATION, "can not publish before join")
        for track in tracks:
            self.published[track.kind] = track
            self._notify_peers("user-published", track.kind)

    async def unpublish(self, tracks: Sequence[LocalTrack]) -> None:
        for track in tracks:
            if self.published.get(track.kind) is track:
                del self.published[track.kind]
                self._notify_peers("user-unpublished", track.kind)

    async def subscribe(self, uid: Uid, kind: MediaKind) -> RemoteTrack:
        await self._engine.simulate_latency()
        if not self.joined:
            raise TransportError(TransportErrorCode.INVALID_OPERATION, "can not subscribe before join")
        peer = self._engine.members(self.channel).get(uid)
        source = peer.published.get(kind) if peer else None
        if source is None:
            raise TransportError(TransportErrorCode.INVALID_OPERATION, f"{uid} has not published {kind.value}")
        return LoopbackRemoteTrack(uid, kind, source)

    def _notify_peers(self, event: str, kind: MediaKind) -> None:
        for peer in list(self._engine.members(self.channel).values()):
            if peer is not self:
                peer.emit(event, self.uid, kind)


class LoopbackEngine(RtcEngine):
    """Engine whose channels live in this process."""

    def __init__(
        self,
        app_id: str = "",
        token_issuer: Optional[ChannelTokenIssuer] = None,
        deny_microphone: bool = False,
        deny_camera: bool = False,
        latency: float = 0.0,
    ):
        self.app_id = app_id
        self.token_issuer = token_issuer
        self.deny_microphone = deny_microphone
        self.deny_camera = deny_camera
        self.latency = latency
        self.network_available = True
        self._channels: dict[str, dict[Uid, LoopbackClient]] = {}
        self._uids = itertools.count(1000)

    def create_client(self) -> LoopbackClient:
        return LoopbackClient(self)

    async def create_microphone_track(self) -> LoopbackLocalTrack:
        await self.simulate_latency()
        if self.deny_microphone:
            raise TransportError(TransportErrorCode.PERMISSION_DENIED, "NotAllowedError: microphone permission denied")
        return LoopbackLocalTrack(MediaKind.AUDIO, AudioStreamTrack())

    async def create_camera_track(self) -> LoopbackLocalTrack:
        await self.simulate_latency()
        if self.deny_camera:
            raise TransportError(TransportErrorCode.PERMISSION_DENIED, "NotAllowedError: camera permission denied")
        return LoopbackLocalTrack(MediaKind.VIDEO, VideoStreamTrack())

    def members(self, channel: str) -> dict[Uid, LoopbackClient]:
        return self._channels.setdefault(channel, {})

    def next_uid(self) -> int:
        return next(self._uids)

    async def simulate_latency(self) -> None:
        await asyncio.sleep(self.latency)

    def check_network(self) -> None:
        if not self.network_available:
            raise TransportError(TransportErrorCode.NETWORK_ERROR, "network unreachable")

    def check_token(self, token: str, channel: str, uid: Uid) -> None:
        """Reject tokens this engine's issuer did not hand out for the channel."""
        if self.token_issuer is None:
            return
        status = self.token_issuer.check(token, channel, uid)
        if status is TokenStatus.EXPIRED:
            raise TransportError(TransportErrorCode.TOKEN_EXPIRED, "token expired")
        if status is not TokenStatus.VALID:
            raise TransportError(TransportErrorCode.TOKEN_INVALID, f"token rejected: {status.value}")
