"""Test configuration for pytest."""

import asyncio
import os
from typing import Any, Optional, Sequence

import pytest

from consult_call.models.state import CallKind, MediaKind, SessionDescriptor
from consult_call.services.rtc_base import LocalTrack, RemoteTrack, RtcClient, RtcEngine


async def settle(delay: float = 0.02) -> None:
    """Give queued transport events and background tasks time to run."""
    await asyncio.sleep(delay)


class FakeLocalTrack(LocalTrack):
    """Local track that records what happened to it."""

    def __init__(self, kind: MediaKind, stop_error: Optional[Exception] = None):
        self.kind = kind
        self._enabled = True
        self.surface = None
        self.stopped = False
        self.closed = False
        self._stop_error = stop_error

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def play(self, surface=None) -> None:
        self.surface = surface
        if surface is not None:
            surface.attach(self)

    def stop(self) -> None:
        if self._stop_error:
            raise self._stop_error
        self.stopped = True

    def close(self) -> None:
        self.closed = True


class FakeRemoteTrack(RemoteTrack):
    def __init__(self, uid: Any, kind: MediaKind):
        self.uid = uid
        self.kind = kind
        self.surface = None
        self.playing = False
        self.stopped = False

    def play(self, surface=None) -> None:
        self.playing = True
        self.surface = surface
        if surface is not None:
            surface.attach(self)

    def stop(self) -> None:
        self.stopped = True
        self.playing = False


class FakeClient(RtcClient):
    """Scriptable client: delays and errors per operation, call counters."""

    def __init__(
        self,
        join_delay: float = 0.0,
        publish_delay: float = 0.0,
        join_error: Optional[Exception] = None,
        publish_error: Optional[Exception] = None,
        leave_error: Optional[Exception] = None,
    ):
        super().__init__()
        self.join_delay = join_delay
        self.publish_delay = publish_delay
        self.join_error = join_error
        self.publish_error = publish_error
        self.leave_error = leave_error
        self.join_calls: list[tuple] = []
        self.published: list[LocalTrack] = []
        self.leave_count = 0
        self.joined = False

    async def join(self, app_id: str, channel: str, token: str, uid: Any) -> Any:
        self.join_calls.append((app_id, channel, token, uid))
        await asyncio.sleep(self.join_delay)
        if self.join_error:
            raise self.join_error
        self.joined = True
        return uid or 4242

    async def leave(self) -> None:
        self.leave_count += 1
        self.joined = False
        if self.leave_error:
            raise self.leave_error

    async def publish(self, tracks: Sequence[LocalTrack]) -> None:
        await asyncio.sleep(self.publish_delay)
        if self.publish_error:
            raise self.publish_error
        self.published.extend(tracks)

    async def unpublish(self, tracks: Sequence[LocalTrack]) -> None:
        for track in tracks:
            self.published.remove(track)

    async def subscribe(self, uid: Any, kind: MediaKind) -> RemoteTrack:
        return FakeRemoteTrack(uid, kind)


class FakeEngine(RtcEngine):
    def __init__(
        self,
        client: Optional[FakeClient] = None,
        microphone_error: Optional[Exception] = None,
        camera_error: Optional[Exception] = None,
    ):
        self.client = client or FakeClient()
        self.microphone_error = microphone_error
        self.camera_error = camera_error
        self.clients_created = 0
        self.tracks: list[FakeLocalTrack] = []

    def create_client(self) -> FakeClient:
        self.clients_created += 1
        return self.client

    async def create_microphone_track(self) -> FakeLocalTrack:
        if self.microphone_error:
            raise self.microphone_error
        track = FakeLocalTrack(MediaKind.AUDIO)
        self.tracks.append(track)
        return track

    async def create_camera_track(self) -> FakeLocalTrack:
        if self.camera_error:
            raise self.camera_error
        track = FakeLocalTrack(MediaKind.VIDEO)
        self.tracks.append(track)
        return track


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_engine(fake_client):
    return FakeEngine(fake_client)


@pytest.fixture
def video_descriptor():
    return SessionDescriptor(app_id="app-1", channel="consultation_c1", token="t1", uid=7, call_kind=CallKind.VIDEO)


@pytest.fixture
def voice_descriptor():
    return SessionDescriptor(app_id="app-1", channel="consultation_c1", token="t1", uid=7, call_kind=CallKind.VOICE)


@pytest.fixture
def mock_settings():
    """Create settings from a patched environment."""
    from consult_call.settings import Settings

    test_env = {
        "AGORA_APP_ID": "test-app-id",
        "AGORA_APP_CERTIFICATE": "test-app-certificate",
        "ALLOWED_ORIGIN": "https://test.example.com",
    }

    original_env = {}
    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    try:
        settings = Settings()
        yield settings
    finally:
        for key, value in original_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
