"""Tests for the per-channel call session manager."""

import pytest

from conftest import FakeClient, FakeEngine
from consult_call.models.state import CallState
from consult_call.services.errors import CallSessionError, TransportError, TransportErrorCode
from consult_call.services.session_manager import CallSessionManager


class TestCallSessionManager:
    @pytest.mark.asyncio
    async def test_open_registers_connected_session(self, fake_engine, video_descriptor):
        manager = CallSessionManager(fake_engine)

        session = await manager.open(video_descriptor)

        assert session.state is CallState.CONNECTED
        assert manager.get("consultation_c1") is session
        assert len(manager) == 1
        await manager.close_all()

    @pytest.mark.asyncio
    async def test_reopen_tears_down_previous(self, fake_engine, fake_client, video_descriptor):
        manager = CallSessionManager(fake_engine)
        first = await manager.open(video_descriptor)
        first_tracks = list(fake_engine.tracks)

        second = await manager.open(video_descriptor)

        assert first.state is CallState.ENDED
        assert all(track.closed for track in first_tracks)
        assert second.state is CallState.CONNECTED
        assert manager.get("consultation_c1") is second
        assert fake_client.leave_count == 1
        await manager.close_all()

    def test_create_refuses_second_session(self, fake_engine):
        manager = CallSessionManager(fake_engine)
        manager.create("consultation_c1")

        with pytest.raises(ValueError):
            manager.create("consultation_c1")

    @pytest.mark.asyncio
    async def test_failed_open_unregisters(self, video_descriptor):
        engine = FakeEngine(FakeClient(join_error=TransportError(TransportErrorCode.TOKEN_INVALID)))
        manager = CallSessionManager(engine)

        with pytest.raises(CallSessionError):
            await manager.open(video_descriptor)

        assert manager.get("consultation_c1") is None
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_close_all(self, fake_engine, video_descriptor):
        manager = CallSessionManager(fake_engine)
        session = await manager.open(video_descriptor)

        await manager.close_all()
        await manager.close("consultation_c1")

        assert session.state is CallState.ENDED
        assert len(manager) == 0
