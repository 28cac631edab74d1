"""Error taxonomy for call sessions and the real-time transport."""

import asyncio
from enum import Enum
from typing import Optional


class TransportErrorCode(str, Enum):
    """Typed failure codes reported by a real-time engine."""

    PERMISSION_DENIED = "PERMISSION_DENIED"
    DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "DYNAMIC_KEY_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_APP_ID = "INVALID_APP_ID"
    INVALID_OPERATION = "INVALID_OPERATION"
    UNEXPECTED = "UNEXPECTED_ERROR"


class TransportError(Exception):
    """Raised by an engine or client when an operation fails."""

    def __init__(self, code: TransportErrorCode, message: str = ""):
        self.code = code
        super().__init__(message or code.value)


class CallErrorKind(str, Enum):
    """Categories of call failures surfaced to the UI."""

    CONFIGURATION = "configuration"
    PERMISSION = "permission"
    TOKEN = "token"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


_MESSAGE_PREFIX = "Failed to initialize call. "

USER_MESSAGES = {
    CallErrorKind.CONFIGURATION: "Missing or invalid call configuration. Please try starting the call again.",
    CallErrorKind.PERMISSION: _MESSAGE_PREFIX + "Please allow microphone/camera access and try again.",
    CallErrorKind.TOKEN: _MESSAGE_PREFIX + "Token expired or invalid. Please try starting the call again.",
    CallErrorKind.NETWORK: _MESSAGE_PREFIX + "Network error. Please check your connection and try again.",
    CallErrorKind.TIMEOUT: "Call initialization timed out. Please try again.",
    CallErrorKind.UNKNOWN: _MESSAGE_PREFIX + "Please try again.",
}

_CODE_KINDS = {
    TransportErrorCode.PERMISSION_DENIED: CallErrorKind.PERMISSION,
    TransportErrorCode.DEVICE_NOT_FOUND: CallErrorKind.PERMISSION,
    TransportErrorCode.TOKEN_INVALID: CallErrorKind.TOKEN,
    TransportErrorCode.TOKEN_EXPIRED: CallErrorKind.TOKEN,
    TransportErrorCode.NETWORK_ERROR: CallErrorKind.NETWORK,
    TransportErrorCode.INVALID_APP_ID: CallErrorKind.CONFIGURATION,
}


class CallSessionError(Exception):
    """A classified call failure with a user-facing message."""

    def __init__(self, kind: CallErrorKind, detail: str = "", cause: Optional[BaseException] = None):
        self.kind = kind
        self.detail = detail
        self.cause = cause
        super().__init__(detail or USER_MESSAGES[kind])

    @property
    def user_message(self) -> str:
        """Human-readable message shown next to the Close action."""
        return USER_MESSAGES[self.kind]


class CallCancelled(Exception):
    """Raised by start() when end() aborts the setup."""


def classify_error(error: BaseException) -> CallSessionError:
    """Map any setup failure onto the call error taxonomy.

    Classification relies on typed transport codes and exception types,
    never on the text of the message.
    """
    if isinstance(error, CallSessionError):
        return error
    if isinstance(error, TransportError):
        kind = _CODE_KINDS.get(error.code, CallErrorKind.UNKNOWN)
        return CallSessionError(kind, str(error), cause=error)
    if isinstance(error, PermissionError):
        return CallSessionError(CallErrorKind.PERMISSION, str(error), cause=error)
    if isinstance(error, asyncio.TimeoutError):
        return CallSessionError(CallErrorKind.TIMEOUT, str(error), cause=error)
    if isinstance(error, (ConnectionError, OSError)):
        return CallSessionError(CallErrorKind.NETWORK, str(error), cause=error)
    return CallSessionError(CallErrorKind.UNKNOWN, str(error), cause=error)
