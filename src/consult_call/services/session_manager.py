"""Keeps at most one call session per channel."""

import logging
from typing import Optional

from ..models.state import SessionDescriptor
from .call_session import CallSession
from .rtc_base import RtcEngine
from .surfaces import SurfaceRegistry

logger = logging.getLogger(__name__)


class CallSessionManager:
    """Owns the call sessions of one process.

    Opening a channel that already has a session tears the old one down
    before the new one is created, so local tracks are never owned twice.
    """

    def __init__(
        self,
        engine: RtcEngine,
        init_timeout: float = 30.0,
        surface_wait_timeout: float = 5.0,
    ):
        self._engine = engine
        self.init_timeout = init_timeout
        self.surface_wait_timeout = surface_wait_timeout
        self._sessions: dict[str, CallSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, channel: str) -> Optional[CallSession]:
        return self._sessions.get(channel)

    def create(self, channel: str, surfaces: Optional[SurfaceRegistry] = None) -> CallSession:
        """Register a new, not yet started session for a channel."""
        if channel in self._sessions:
            raise ValueError(f"channel {channel} already has a session; close it first")
        session = CallSession(
            self._engine,
            surfaces=surfaces,
            init_timeout=self.init_timeout,
            surface_wait_timeout=self.surface_wait_timeout,
        )
        self._sessions[channel] = session
        return session

    async def open(
        self,
        descriptor: SessionDescriptor,
        surfaces: Optional[SurfaceRegistry] = None,
    ) -> CallSession:
        """Replace any session on the descriptor's channel and start a new one.

        Raises:
            CallSessionError: If the new session fails to start; it is
                closed and unregistered before the error propagates
        """
        await self.close(descriptor.channel)
        session = self.create(descriptor.channel, surfaces)
        try:
            await session.start(descriptor)
        except BaseException:
            if self._sessions.get(descriptor.channel) is session:
                del self._sessions[descriptor.channel]
            await session.end()
            raise
        return session

    async def close(self, channel: str) -> None:
        session = self._sessions.pop(channel, None)
        if session is not None:
            logger.info(f"Closing call session on {channel}")
            await session.end()

    async def close_all(self) -> None:
        for channel in list(self._sessions):
            await self.close(channel)
