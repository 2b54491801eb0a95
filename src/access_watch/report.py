"""Activity records sent to the ``/log`` endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from .context import RequestContext
from .forwarded import NO_FORWARDED_HEADERS, ForwardedHeaders

DEFAULT_HEADER_BLACKLIST: frozenset[str] = frozenset({"cookie"})
"""Headers left out of activity reports unless a blacklist is configured."""

_DEFAULT_PORTS = {"http": "80", "https": "443"}


def normalize_blacklist(names: Iterable[str]) -> frozenset[str]:
    return frozenset(str(n).lower() for n in names)


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO-8601 timestamp with millisecond precision and a ``Z`` suffix."""
    now = now or datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def split_host(value: str) -> tuple[str, Optional[str]]:
    """Split ``"host:port"`` into its parts; bracketed IPv6 literals keep brackets."""
    if value.startswith("["):
        end = value.find("]")
        if end != -1:
            rest = value[end + 1 :]
            port = rest[1:] if rest.startswith(":") else None
            return value[: end + 1], port or None
        return value, None
    host, _, port = value.partition(":")
    if ":" in port:
        # unbracketed IPv6 literal
        return value, None
    return host, port or None


def filter_headers(
    headers: Mapping[str, str], blacklist: frozenset[str]
) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in blacklist}


def build_log_record(
    ctx: RequestContext,
    status: int,
    *,
    fwd_headers: Optional[ForwardedHeaders] = None,
    header_blacklist: frozenset[str] = DEFAULT_HEADER_BLACKLIST,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Describe one request/response cycle for the activity log.

    Forwarded ``address``, ``scheme`` and ``host`` values win over the
    literal request values when ``fwd_headers`` provides them. ``port`` is
    only included when the host carries one that is not the scheme default.
    """
    fwd = fwd_headers or NO_FORWARDED_HEADERS
    headers = ctx.headers

    address = fwd.resolve("address", headers) or ctx.address
    scheme = fwd.resolve("scheme", headers) or ("https" if ctx.encrypted else "http")
    raw_host = fwd.resolve("host", headers) or headers.get("host") or ctx.host or ""
    host, port = split_host(raw_host)

    request: dict[str, Any] = {
        # No standard header forwards the HTTP version.
        "protocol": f"HTTP/{ctx.http_version}",
        "method": ctx.method,
        "scheme": scheme,
        "host": host,
    }
    if port and port != _DEFAULT_PORTS.get(scheme.lower()):
        request["port"] = port
    request["url"] = ctx.url
    request["headers"] = filter_headers(headers, header_blacklist)

    return {
        "time": iso_timestamp(now),
        "address": address,
        "request": request,
        "response": {"status": status},
    }
