from __future__ import annotations

from typing import Any


class AccessWatchError(Exception):
    """Base class for all errors raised by the Access Watch client."""


class AccessWatchMisconfiguration(AccessWatchError):
    """Raised when the client is constructed or called with invalid options."""


class AccessWatchTransportError(AccessWatchError):
    """Raised when the Access Watch API cannot be reached."""


class AccessWatchProtocolError(AccessWatchError):
    """Raised when the Access Watch API answers with something unexpected.

    Covers a non-200 answer to ``hello()`` (the message is the response body)
    and a session lookup answered without a JSON content type.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AccessWatchCacheError(AccessWatchError):
    """Raised when the configured session cache fails."""


class CallbackError(AccessWatchError):
    """A completion callback was invoked with a non-exception error value."""

    def __init__(self, value: Any) -> None:
        super().__init__(str(value))
        self.value = value
