"""Tests for the in-process loopback engine."""

import pytest

from conftest import settle
from consult_call.models.state import CallKind, CallState, MediaKind, SessionDescriptor
from consult_call.services.call_session import CallSession
from consult_call.services.errors import CallErrorKind, CallSessionError, TransportError, TransportErrorCode
from consult_call.services.rtc_loopback import LoopbackEngine
from consult_call.services.token_builder import ChannelTokenIssuer


class TestLoopbackClient:
    """Raw client behaviour."""

    @pytest.mark.asyncio
    async def test_join_assigns_uid_when_zero(self):
        engine = LoopbackEngine()
        client = engine.create_client()

        uid = await client.join("", "room", "token", 0)

        assert uid >= 1000
        assert engine.members("room")[uid] is client

    @pytest.mark.asyncio
    async def test_duplicate_uid_rejected(self):
        engine = LoopbackEngine()
        await engine.create_client().join("", "room", "token", 5)

        with pytest.raises(TransportError) as exc_info:
            await engine.create_client().join("", "room", "token", 5)

        assert exc_info.value.code is TransportErrorCode.INVALID_OPERATION

    @pytest.mark.asyncio
    async def test_wrong_app_id(self):
        engine = LoopbackEngine(app_id="right")

        with pytest.raises(TransportError) as exc_info:
            await engine.create_client().join("wrong", "room", "token", 1)

        assert exc_info.value.code is TransportErrorCode.INVALID_APP_ID

    @pytest.mark.asyncio
    async def test_network_unavailable(self):
        engine = LoopbackEngine()
        engine.network_available = False

        with pytest.raises(TransportError) as exc_info:
            await engine.create_client().join("", "room", "token", 1)

        assert exc_info.value.code is TransportErrorCode.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_publish_before_join_rejected(self):
        engine = LoopbackEngine()
        client = engine.create_client()
        track = await engine.create_microphone_track()

        with pytest.raises(TransportError):
            await client.publish([track])
        track.close()

    @pytest.mark.asyncio
    async def test_publish_notifies_peers(self):
        engine = LoopbackEngine()
        alice = engine.create_client()
        bob = engine.create_client()
        seen = []
        bob.on("user-published", lambda uid, kind: seen.append((uid, kind)))
        await alice.join("", "room", "token", 1)
        await bob.join("", "room", "token", 2)

        track = await engine.create_microphone_track()
        await alice.publish([track])

        assert seen == [(1, MediaKind.AUDIO)]
        remote = await bob.subscribe(1, MediaKind.AUDIO)
        assert remote.source is track
        track.close()

    @pytest.mark.asyncio
    async def test_late_joiner_sees_existing_publishers(self):
        engine = LoopbackEngine()
        alice = engine.create_client()
        await alice.join("", "room", "token", 1)
        track = await engine.create_camera_track()
        await alice.publish([track])

        bob = engine.create_client()
        seen = []
        bob.on("user-published", lambda uid, kind: seen.append((uid, kind)))
        await bob.join("", "room", "token", 2)

        assert seen == [(1, MediaKind.VIDEO)]
        track.close()

    @pytest.mark.asyncio
    async def test_leave_unpublishes(self):
        engine = LoopbackEngine()
        alice = engine.create_client()
        bob = engine.create_client()
        gone = []
        bob.on("user-unpublished", lambda uid, kind: gone.append((uid, kind)))
        await alice.join("", "room", "token", 1)
        await bob.join("", "room", "token", 2)
        track = await engine.create_microphone_track()
        await alice.publish([track])

        await alice.leave()
        await alice.leave()

        assert gone == [(1, MediaKind.AUDIO)]
        assert 1 not in engine.members("room")
        track.close()

    @pytest.mark.asyncio
    async def test_subscribe_to_unpublished_kind_fails(self):
        engine = LoopbackEngine()
        alice = engine.create_client()
        await alice.join("", "room", "token", 1)

        with pytest.raises(TransportError):
            await alice.subscribe(99, MediaKind.AUDIO)


class TestLoopbackTracks:
    @pytest.mark.asyncio
    async def test_denied_devices(self):
        engine = LoopbackEngine(deny_microphone=True, deny_camera=True)

        with pytest.raises(TransportError) as exc_info:
            await engine.create_microphone_track()
        assert exc_info.value.code is TransportErrorCode.PERMISSION_DENIED

        with pytest.raises(TransportError):
            await engine.create_camera_track()

    @pytest.mark.asyncio
    async def test_closed_track_cannot_be_enabled(self):
        engine = LoopbackEngine()
        track = await engine.create_microphone_track()
        track.close()

        with pytest.raises(TransportError):
            await track.set_enabled(True)


class TestLoopbackTokens:
    """Token checks against an issuer."""

    @pytest.fixture
    def issuer(self):
        return ChannelTokenIssuer("app", "cert", ttl_seconds=3600)

    @pytest.mark.asyncio
    async def test_issued_token_accepted(self, issuer):
        engine = LoopbackEngine(app_id="app", token_issuer=issuer)
        issued = issuer.issue("s1", 3)

        uid = await engine.create_client().join("app", issued.channel, issued.token, 3)

        assert uid == 3

    @pytest.mark.asyncio
    async def test_unknown_token_rejected(self, issuer):
        engine = LoopbackEngine(app_id="app", token_issuer=issuer)

        with pytest.raises(TransportError) as exc_info:
            await engine.create_client().join("app", "consultation_s1", "forged", 3)

        assert exc_info.value.code is TransportErrorCode.TOKEN_INVALID

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self):
        now = [1_000_000.0]
        issuer = ChannelTokenIssuer("app", "cert", ttl_seconds=60, clock=lambda: now[0])
        engine = LoopbackEngine(app_id="app", token_issuer=issuer)
        issued = issuer.issue("s1")
        now[0] += 61

        with pytest.raises(TransportError) as exc_info:
            await engine.create_client().join("app", issued.channel, issued.token, 0)

        assert exc_info.value.code is TransportErrorCode.TOKEN_EXPIRED


class TestLoopbackCall:
    """Two call sessions talking through the loopback engine."""

    @pytest.mark.asyncio
    async def test_student_and_expert_see_each_other(self):
        engine = LoopbackEngine()
        student = CallSession(engine)
        expert = CallSession(engine)

        await student.start(SessionDescriptor(app_id="a", channel="c", token="t", uid=1, call_kind=CallKind.VIDEO))
        await expert.start(SessionDescriptor(app_id="a", channel="c", token="t", uid=2, call_kind=CallKind.VOICE))
        await settle()

        [seen_by_student] = student.remote_participants
        assert seen_by_student.uid == 2
        assert seen_by_student.audio_track is not None
        assert seen_by_student.video_track is None

        [seen_by_expert] = expert.remote_participants
        assert seen_by_expert.uid == 1
        assert seen_by_expert.audio_track is not None
        assert seen_by_expert.video_track is not None

        await expert.end()
        await settle()
        assert student.remote_participants == ()
        assert student.state is CallState.CONNECTED

        await student.end()

    @pytest.mark.asyncio
    async def test_expired_token_fails_start(self):
        now = [1_000_000.0]
        issuer = ChannelTokenIssuer("app", "cert", ttl_seconds=60, clock=lambda: now[0])
        engine = LoopbackEngine(app_id="app", token_issuer=issuer)
        issued = issuer.issue("s1")
        now[0] += 120
        session = CallSession(engine)

        with pytest.raises(CallSessionError) as exc_info:
            await session.start(
                SessionDescriptor(app_id="app", channel=issued.channel, token=issued.token, call_kind=CallKind.VOICE)
            )

        assert exc_info.value.kind is CallErrorKind.TOKEN
        assert session.state is CallState.ERROR

    @pytest.mark.asyncio
    async def test_microphone_denied_voice_call(self):
        engine = LoopbackEngine(deny_microphone=True)
        session = CallSession(engine)

        with pytest.raises(CallSessionError) as exc_info:
            await session.start(SessionDescriptor(app_id="a", channel="c", token="t", uid=1, call_kind=CallKind.VOICE))

        assert exc_info.value.kind is CallErrorKind.PERMISSION
        assert session.local_audio_track is None
        assert engine.members("c") == {}
