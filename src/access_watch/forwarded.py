"""Reverse-proxy header configuration.

When the protected server sits behind a reverse proxy such as nginx or
HAProxy, the socket-level client address, the ``Host`` header and the
transport scheme describe the proxy hop rather than the original request.
``ForwardedHeaders`` tells the client where to find the forwarded values:

    from access_watch import ForwardedHeaders, HeaderName, Derived

    fwd = ForwardedHeaders(
        host=HeaderName("x-forwarded-host"),
        scheme=HeaderName("x-forwarded-proto"),
        address=Derived(lambda headers: headers.get("x-real-ip")),
    )

Most deployments can use ``STANDARD_FORWARDED_HEADERS`` as-is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union


@dataclass(frozen=True, slots=True)
class HeaderName:
    """Read a forwarded value verbatim from a single request header."""

    name: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise TypeError("HeaderName.name must be a non-empty string")

    def extract(self, headers: Mapping[str, str]) -> Optional[str]:
        return headers.get(self.name.lower())


@dataclass(frozen=True, slots=True)
class Derived:
    """Compute a forwarded value from the full (lower-cased) header mapping."""

    func: Callable[[Mapping[str, str]], Optional[str]]

    def __post_init__(self):
        if not callable(self.func):
            raise TypeError("Derived.func must be callable")

    def extract(self, headers: Mapping[str, str]) -> Optional[str]:
        return self.func(headers)


ForwardedField = Union[HeaderName, Derived]


@dataclass(frozen=True, slots=True)
class ForwardedHeaders:
    """Where to read forwarded ``host``, ``scheme`` and ``address`` values.

    Fields left as ``None`` fall back to the literal request values.
    """

    host: Optional[ForwardedField] = None
    scheme: Optional[ForwardedField] = None
    address: Optional[ForwardedField] = None

    def __post_init__(self):
        for name in ("host", "scheme", "address"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, (HeaderName, Derived)):
                raise TypeError(
                    f"ForwardedHeaders.{name} must be a HeaderName, Derived or None"
                )

    def resolve(self, name: str, headers: Mapping[str, str]) -> Optional[str]:
        """Return the forwarded value for ``name`` or ``None`` when unavailable.

        Empty values count as unavailable.
        """
        field: Optional[ForwardedField] = getattr(self, name)
        if field is None:
            return None
        value = field.extract(headers)
        return value or None


_XFF_SEPARATORS = re.compile(r"[,\s]+")


def first_forwarded_for(headers: Mapping[str, str]) -> Optional[str]:
    """Return the left-most address of ``X-Forwarded-For``, the original client."""
    raw = headers.get("x-forwarded-for")
    if not raw:
        return None
    for part in _XFF_SEPARATORS.split(raw):
        if part:
            return part
    return None


STANDARD_FORWARDED_HEADERS = ForwardedHeaders(
    host=HeaderName("x-forwarded-host"),
    scheme=HeaderName("x-forwarded-proto"),
    address=Derived(first_forwarded_for),
)
"""The headers a conventional reverse proxy sets."""

NO_FORWARDED_HEADERS = ForwardedHeaders()
"""Reads nothing; every value comes from the request itself."""
