"""Channel token issuance backed by the Agora token builder."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from agora_token_builder import RtcTokenBuilder

from ..models.state import Uid

logger = logging.getLogger(__name__)

# Publisher role may both publish and subscribe
ROLE_PUBLISHER = 1


class TokenServiceUnavailable(Exception):
    """Raised when tokens cannot be issued (missing credentials or builder failure)."""


class TokenStatus(str, Enum):
    VALID = "valid"
    UNKNOWN = "unknown"
    EXPIRED = "expired"
    WRONG_CHANNEL = "wrong_channel"


@dataclass(frozen=True)
class IssuedToken:
    token: str
    app_id: str
    channel: str
    uid: int
    expires_at: int


class ChannelTokenIssuer:
    """Issues time-limited publisher tokens for consultation channels.

    Issued tokens are remembered so an in-process engine can check them.
    """

    def __init__(
        self,
        app_id: str,
        app_certificate: str,
        ttl_seconds: int = 3600,
        channel_prefix: str = "consultation_",
        clock: Callable[[], float] = time.time,
    ):
        self.app_id = app_id
        self.app_certificate = app_certificate
        self.ttl_seconds = ttl_seconds
        self.channel_prefix = channel_prefix
        self._clock = clock
        self._issued: dict[str, IssuedToken] = {}

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.app_certificate)

    def normalize_channel(self, channel: str) -> str:
        """Prefix a session id to form its channel name, unless already prefixed."""
        if channel.startswith(self.channel_prefix):
            return channel
        return f"{self.channel_prefix}{channel}"

    def issue(self, channel: str, uid: int = 0) -> IssuedToken:
        """Build a publisher token for a channel.

        Args:
            channel: Session id or full channel name
            uid: Participant id; 0 lets the engine assign one

        Returns:
            The issued token and its metadata

        Raises:
            TokenServiceUnavailable: If credentials are missing or building fails
        """
        if not self.is_configured:
            logger.error("Agora App ID or App Certificate not configured")
            raise TokenServiceUnavailable("token service is not configured")

        channel_name = self.normalize_channel(channel)
        privilege_expire_ts = int(self._clock()) + self.ttl_seconds

        try:
            token = RtcTokenBuilder.buildTokenWithUid(
                self.app_id,
                self.app_certificate,
                channel_name,
                uid,
                ROLE_PUBLISHER,
                privilege_expire_ts,
            )
        except Exception as e:
            logger.error(f"Failed to build token for {channel_name}: {e}")
            raise TokenServiceUnavailable(str(e)) from e

        issued = IssuedToken(
            token=token,
            app_id=self.app_id,
            channel=channel_name,
            uid=uid,
            expires_at=privilege_expire_ts,
        )
        self._issued[token] = issued
        logger.info(
            f"Token generated - channel: {channel_name}, uid: {uid}, "
            f"expires_at: {privilege_expire_ts}, length: {len(token)}"
        )
        return issued

    def check(self, token: str, channel: str, uid: Uid = 0) -> TokenStatus:
        """Check a token previously issued by this issuer."""
        issued = self._issued.get(token)
        if issued is None:
            return TokenStatus.UNKNOWN
        if issued.channel != channel:
            return TokenStatus.WRONG_CHANNEL
        if issued.uid not in (0, uid):
            return TokenStatus.UNKNOWN
        if self._clock() >= issued.expires_at:
            return TokenStatus.EXPIRED
        return TokenStatus.VALID
