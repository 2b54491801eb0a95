from __future__ import annotations

from ._callbacks import call_with_callback, promisify
from ._errors import (
    AccessWatchCacheError,
    AccessWatchError,
    AccessWatchMisconfiguration,
    AccessWatchProtocolError,
    AccessWatchTransportError,
    CallbackError,
)
from .api import ApiResponse
from .cache import (
    CallbackCache,
    CallbackCacheSync,
    MemorySessionCache,
    MemorySessionCacheSync,
    SessionCache,
    SessionCacheSync,
)
from .client import (
    DEFAULT_API_BASE,
    AccessWatch,
    AccessWatchSync,
    access_watch,
    access_watch_sync,
)
from .context import RequestContext, coerce_request_context
from .forwarded import (
    STANDARD_FORWARDED_HEADERS,
    Derived,
    ForwardedHeaders,
    HeaderName,
)
from .report import DEFAULT_HEADER_BLACKLIST
from .session import Session
from .signing import SIGNATURE_HEADERS

__all__ = [
    "access_watch",
    "access_watch_sync",
    "AccessWatch",
    "AccessWatchCacheError",
    "AccessWatchError",
    "AccessWatchMisconfiguration",
    "AccessWatchProtocolError",
    "AccessWatchSync",
    "AccessWatchTransportError",
    "ApiResponse",
    "call_with_callback",
    "CallbackCache",
    "CallbackCacheSync",
    "CallbackError",
    "coerce_request_context",
    "DEFAULT_API_BASE",
    "DEFAULT_HEADER_BLACKLIST",
    "Derived",
    "ForwardedHeaders",
    "HeaderName",
    "MemorySessionCache",
    "MemorySessionCacheSync",
    "promisify",
    "RequestContext",
    "Session",
    "SessionCache",
    "SessionCacheSync",
    "SIGNATURE_HEADERS",
    "STANDARD_FORWARDED_HEADERS",
]
