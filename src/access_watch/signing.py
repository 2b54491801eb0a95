"""Request identities used as session cache keys.

An identity is the MD5 hex digest of the client address followed by a
compact JSON object of the signature headers that the request carries, in
``SIGNATURE_HEADERS`` order. The serialization matches what other Access
Watch clients produce, so identities stay compatible across a shared cache.
Nothing else about the request (URL, method, other headers) feeds the
identity.
"""

from __future__ import annotations

import hashlib
import json
from typing import Mapping, Optional

from .context import RequestContext
from .forwarded import ForwardedHeaders

SIGNATURE_HEADERS: tuple[str, ...] = (
    "user-agent",
    "accept",
    "accept-charset",
    "accept-language",
    "accept-encoding",
    "from",
    "dnt",
)
"""Headers that describe the client software; order is significant."""


def signature_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Pick the signature headers present in ``headers``.

    Absent headers are left out; present-but-empty headers are kept.
    """
    return {name: headers[name] for name in SIGNATURE_HEADERS if name in headers}


def signature_address(
    ctx: RequestContext, fwd_headers: Optional[ForwardedHeaders] = None
) -> str:
    """Forwarded client address when configured and present, else the socket address."""
    if fwd_headers is not None:
        forwarded = fwd_headers.resolve("address", ctx.headers)
        if forwarded:
            return forwarded
    return ctx.address or ""


def request_signature(
    ctx: RequestContext, fwd_headers: Optional[ForwardedHeaders] = None
) -> str:
    payload = signature_address(ctx, fwd_headers) + json.dumps(
        signature_headers(ctx.headers), separators=(",", ":"), ensure_ascii=False
    )
    return hashlib.md5(payload.encode("utf-8"), usedforsecurity=False).hexdigest()
