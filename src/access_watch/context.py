"""Framework-agnostic request descriptor.

``RequestContext`` carries the handful of request fields the client reads:
the socket-level client address, the headers, the method, the URL as
received, the HTTP version and whether the connection was encrypted.
``coerce_request_context`` builds one from the request objects of common
Python web stacks:

- ASGI HTTP scope dicts and objects exposing one as ``.scope``
  (Starlette/FastAPI ``Request``).
- Objects exposing a WSGI environ as ``.environ`` (Flask/Werkzeug
  ``Request``) or ``.META`` (Django ``HttpRequest``).
- Plain mappings with ``address``/``ip``, ``headers``, ``method``,
  ``url``/``path``, ``http_version`` and ``encrypted`` keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from ._errors import AccessWatchMisconfiguration


def normalize_headers(headers: Any) -> dict[str, str]:
    """Lower-case header names and join repeated headers with ``", "``.

    Accepts a mapping (values may be strings, bytes or lists of those) or an
    iterable of ``(name, value)`` pairs such as ASGI header lists.
    """
    if not headers:
        return {}
    if isinstance(headers, Mapping):
        pairs: Iterable[tuple[Any, Any]] = headers.items()
    elif hasattr(headers, "items") and callable(headers.items):
        pairs = headers.items()
    else:
        pairs = headers

    out: dict[str, str] = {}
    for name, value in pairs:
        key = _text(name).lower()
        if isinstance(value, (list, tuple)):
            text = ", ".join(_text(v) for v in value)
        else:
            text = _text(value)
        if key in out:
            out[key] = f"{out[key]}, {text}"
        else:
            out[key] = text
    return out


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return str(value)


@dataclass(frozen=True, slots=True)
class RequestContext:
    """What the client needs to know about an inbound request.

    ``headers`` keys are lower-case. ``url`` is the path plus query string as
    received (``"/a?b=1"``). ``host`` is a fallback used only when the request
    has no ``Host`` header.
    """

    address: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    method: Optional[str] = None
    url: Optional[str] = None
    http_version: str = "1.1"
    encrypted: bool = False
    host: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", normalize_headers(self.headers))


def _from_asgi_scope(scope: Mapping[str, Any]) -> RequestContext:
    client = scope.get("client")
    address = None
    if client:
        try:
            address = str(client[0])
        except (TypeError, IndexError):
            address = None

    path = scope.get("raw_path")
    if isinstance(path, (bytes, bytearray)):
        path = bytes(path).decode("latin-1")
    if not path:
        path = scope.get("root_path", "") + scope.get("path", "")
    query = scope.get("query_string") or b""
    if isinstance(query, (bytes, bytearray)):
        query = bytes(query).decode("latin-1")
    url = f"{path}?{query}" if query else path

    host = None
    server = scope.get("server")
    if server:
        try:
            name, port = server[0], server[1]
            host = f"{name}:{port}" if port else str(name)
        except (TypeError, IndexError):
            host = None

    return RequestContext(
        address=address,
        headers=normalize_headers(scope.get("headers")),
        method=scope.get("method"),
        url=url or "/",
        http_version=str(scope.get("http_version") or "1.1"),
        encrypted=scope.get("scheme") in ("https", "wss"),
        host=host,
    )


def _headers_from_environ(environ: Mapping[str, Any]) -> dict[str, str]:
    pairs: list[tuple[str, Any]] = []
    for key, value in environ.items():
        if not isinstance(key, str):
            continue
        if key.startswith("HTTP_"):
            pairs.append((key[5:].replace("_", "-"), value))
        elif key in ("CONTENT_TYPE", "CONTENT_LENGTH") and value:
            pairs.append((key.replace("_", "-"), value))
    return normalize_headers(pairs)


def _from_wsgi_environ(environ: Mapping[str, Any]) -> RequestContext:
    path = f"{environ.get('SCRIPT_NAME', '')}{environ.get('PATH_INFO', '')}"
    query = environ.get("QUERY_STRING")
    url = f"{path}?{query}" if query else path

    protocol = str(environ.get("SERVER_PROTOCOL") or "HTTP/1.1")
    http_version = protocol.split("/", 1)[1] if "/" in protocol else protocol

    host = None
    if environ.get("SERVER_NAME"):
        port = environ.get("SERVER_PORT")
        host = f"{environ['SERVER_NAME']}:{port}" if port else environ["SERVER_NAME"]

    return RequestContext(
        address=environ.get("REMOTE_ADDR"),
        headers=_headers_from_environ(environ),
        method=environ.get("REQUEST_METHOD"),
        url=url or "/",
        http_version=http_version,
        encrypted=environ.get("wsgi.url_scheme") == "https",
        host=host,
    )


def _from_mapping(m: Mapping[str, Any]) -> RequestContext:
    encrypted = m.get("encrypted")
    if encrypted is None:
        encrypted = m.get("scheme") == "https"
    return RequestContext(
        address=m.get("address") or m.get("ip"),
        headers=normalize_headers(m.get("headers")),
        method=m.get("method"),
        url=m.get("url") or m.get("path"),
        http_version=str(m.get("http_version") or "1.1"),
        encrypted=bool(encrypted),
        host=m.get("host"),
    )


def coerce_request_context(request: Any) -> RequestContext:
    """Build a ``RequestContext`` from a supported request object.

    Raises:
        AccessWatchMisconfiguration: If ``request`` is not a recognised shape.
    """
    if isinstance(request, RequestContext):
        return request

    if isinstance(request, Mapping):
        if request.get("type") in ("http", "websocket"):
            return _from_asgi_scope(request)
        return _from_mapping(request)

    scope = getattr(request, "scope", None)
    if isinstance(scope, Mapping) and scope.get("type") in ("http", "websocket"):
        return _from_asgi_scope(scope)

    environ = getattr(request, "environ", None)
    if isinstance(environ, Mapping):
        return _from_wsgi_environ(environ)

    meta = getattr(request, "META", None)
    if isinstance(meta, Mapping):
        return _from_wsgi_environ(meta)

    raise AccessWatchMisconfiguration(
        f"Unsupported request type: {type(request).__name__}. Pass an ASGI "
        "scope, a Starlette, Flask or Django request, a mapping or a "
        "RequestContext."
    )


def response_status(response: Any) -> int:
    """Read the status code from the host server's response object."""
    if isinstance(response, bool):
        raise AccessWatchMisconfiguration("Response status must be an integer.")
    if isinstance(response, int):
        return response
    if isinstance(response, Mapping):
        status = response.get("status", response.get("status_code"))
    else:
        status = getattr(response, "status_code", None)
        if status is None:
            status = getattr(response, "status", None)
    try:
        return int(status)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise AccessWatchMisconfiguration(
            f"Cannot read a status code from {type(response).__name__}."
        ) from None
