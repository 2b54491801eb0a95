"""HTTP client for the Access Watch API.

Three endpoints, all authenticated with an ``Api-Key`` header:

- ``GET /hello`` checks the base URL and key. Anything but 200 is an error
  whose message is the response body.
- ``POST /identity`` with ``{"address", "headers"}`` returns the session for
  a request as JSON.
- ``POST /log`` accepts an activity record.

Requests go through a ``pyqwest`` client. Callers that need timeouts or
custom transports build their own ``pyqwest.Client`` (or
``pyqwest.SyncClient``) and pass it to the factory functions.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping

import pyqwest

from ._errors import AccessWatchProtocolError, AccessWatchTransportError
from ._logging import logger

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class ApiResponse:
    """Status, lower-cased headers and raw body of an API response."""

    status: int
    headers: Mapping[str, str]
    content: bytes = b""

    @property
    def content_type(self) -> str:
        """Media type without parameters, lower-cased (``""`` when absent)."""
        raw = self.headers.get("content-type", "")
        return raw.split(";", 1)[0].strip().lower()

    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.content)


def _api_response(res: Any) -> ApiResponse:
    headers = {str(k).lower(): str(v) for k, v in res.headers.items()}
    content = res.content
    if isinstance(content, str):
        content = content.encode("utf-8")
    return ApiResponse(status=int(res.status), headers=headers, content=content or b"")


def _request_headers(api_key: str, *, json_body: bool) -> dict[str, str]:
    headers = {"Api-Key": api_key}
    if json_body:
        headers["Content-Type"] = JSON_CONTENT_TYPE
    return headers


def _encode(body: Mapping[str, Any]) -> bytes:
    return json.dumps(body, separators=(",", ":"), default=str).encode("utf-8")


def _check_hello(res: ApiResponse) -> ApiResponse:
    if res.status != 200:
        raise AccessWatchProtocolError(res.text(), status=res.status)
    return res


def _parse_session(res: ApiResponse) -> Any:
    if res.content_type != JSON_CONTENT_TYPE:
        raise AccessWatchProtocolError(
            "Expected a json body from API", status=res.status
        )
    return res.json()


def _log_transport_error(method: str, url: str, e: Exception, t0: float) -> None:
    api_ms = (time.perf_counter() - t0) * 1000.0
    logger.error(
        "access watch transport error: method=%s url=%s error=%s api_ms=%.3f",
        method,
        url,
        str(e),
        round(api_ms, 3),
        extra={
            "event": "access_watch_transport_error",
            "method": method,
            "url": url,
            "error": str(e),
            "api_ms": round(api_ms, 3),
        },
    )


def _log_response(method: str, url: str, res: ApiResponse, t0: float) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        api_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug(
            "api response: method=%s url=%s status=%d api_ms=%.3f",
            method,
            url,
            res.status,
            round(api_ms, 3),
            extra={
                "event": "access_watch_api_response",
                "method": method,
                "url": url,
                "status": res.status,
                "api_ms": round(api_ms, 3),
            },
        )


class ApiClient:
    """Async Access Watch API client."""

    def __init__(self, base_url: str, api_key: str, http_client: Any = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        if http_client is None:
            transport = pyqwest.HTTPTransport(http_version=pyqwest.HTTPVersion.HTTP2)
            http_client = pyqwest.Client(transport)
        self._http = http_client

    async def _send(
        self, method: str, path: str, body: Mapping[str, Any] | None = None
    ) -> ApiResponse:
        url = self.base_url + path
        t0 = time.perf_counter()
        try:
            res = await self._http.execute(
                method,
                url,
                headers=_request_headers(self._api_key, json_body=body is not None),
                content=_encode(body) if body is not None else None,
            )
            out = _api_response(res)
        except Exception as e:
            _log_transport_error(method, url, e, t0)
            raise AccessWatchTransportError(str(e)) from e
        _log_response(method, url, out, t0)
        return out

    async def hello(self) -> ApiResponse:
        return _check_hello(await self._send("GET", "/hello"))

    async def identity(self, address: str | None, headers: Mapping[str, str]) -> Any:
        """Look up the session for a request; returns the decoded JSON body."""
        res = await self._send(
            "POST", "/identity", {"address": address, "headers": dict(headers)}
        )
        return _parse_session(res)

    async def log(self, record: Mapping[str, Any]) -> ApiResponse:
        return await self._send("POST", "/log", record)

    async def aclose(self) -> None:
        close = getattr(self._http, "aclose", None) or getattr(self._http, "close", None)
        if callable(close):
            result = close()
            if inspect.isawaitable(result):
                await result


class ApiClientSync:
    """Sync Access Watch API client."""

    def __init__(self, base_url: str, api_key: str, http_client: Any = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        if http_client is None:
            transport = pyqwest.SyncHTTPTransport(
                http_version=pyqwest.HTTPVersion.HTTP2
            )
            http_client = pyqwest.SyncClient(transport)
        self._http = http_client

    def _send(
        self, method: str, path: str, body: Mapping[str, Any] | None = None
    ) -> ApiResponse:
        url = self.base_url + path
        t0 = time.perf_counter()
        try:
            res = self._http.execute(
                method,
                url,
                headers=_request_headers(self._api_key, json_body=body is not None),
                content=_encode(body) if body is not None else None,
            )
            out = _api_response(res)
        except Exception as e:
            _log_transport_error(method, url, e, t0)
            raise AccessWatchTransportError(str(e)) from e
        _log_response(method, url, out, t0)
        return out

    def hello(self) -> ApiResponse:
        return _check_hello(self._send("GET", "/hello"))

    def identity(self, address: str | None, headers: Mapping[str, str]) -> Any:
        res = self._send(
            "POST", "/identity", {"address": address, "headers": dict(headers)}
        )
        return _parse_session(res)

    def log(self, record: Mapping[str, Any]) -> ApiResponse:
        return self._send("POST", "/log", record)

    def close(self) -> None:
        close = getattr(self._http, "close", None)
        if callable(close):
            close()
