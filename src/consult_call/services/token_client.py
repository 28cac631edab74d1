"""Client for the token endpoint; produces fresh session descriptors."""

import logging

import aiohttp

from ..models.state import CallKind, SessionDescriptor
from .errors import CallErrorKind, CallSessionError

logger = logging.getLogger(__name__)


class TokenClient:
    """Fetches channel tokens and turns them into session descriptors."""

    def __init__(self, endpoint_url: str, timeout: float = 10.0):
        """Initialize token client.

        Args:
            endpoint_url: Absolute URL of the token endpoint
            timeout: Request timeout in seconds
        """
        self.endpoint_url = endpoint_url
        self.timeout = timeout

    async def fetch_descriptor(
        self,
        channel: str,
        call_kind: CallKind = CallKind.VIDEO,
        uid: int = 0,
    ) -> SessionDescriptor:
        """Request a token for a channel.

        Args:
            channel: Consultation session id or channel name
            call_kind: Voice or video
            uid: Participant id; 0 lets the engine assign one

        Returns:
            A descriptor ready to pass to CallSession.start()

        Raises:
            CallSessionError: Token error on HTTP or payload failures,
                network error when the endpoint is unreachable
        """
        params = {"channel": channel}
        if uid:
            params["uid"] = str(uid)

        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
            try:
                response = await session.get(self.endpoint_url, params=params)
                response.raise_for_status()
                data = await response.json()
            except aiohttp.ClientResponseError as e:
                logger.error(f"Token endpoint returned {e.status} for channel {channel}")
                raise CallSessionError(CallErrorKind.TOKEN, f"token request failed: {e.status}", cause=e) from e
            except aiohttp.ClientError as e:
                logger.error(f"Token endpoint unreachable: {e}")
                raise CallSessionError(CallErrorKind.NETWORK, f"token endpoint unreachable: {e}", cause=e) from e

        try:
            descriptor = SessionDescriptor(
                app_id=data["appId"],
                channel=data["channel"],
                token=data["token"],
                uid=data.get("uid", uid),
                call_kind=call_kind,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed token response: {e}")
            raise CallSessionError(CallErrorKind.TOKEN, "malformed token response", cause=e) from e

        logger.info(f"Fetched token for channel {descriptor.channel}")
        return descriptor
