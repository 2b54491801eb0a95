"""Shared test utilities: fake pyqwest clients and recording caches.

The fake HTTP clients stand in for ``pyqwest.Client`` / ``pyqwest.SyncClient``
at the ``execute(method, url, headers=..., content=...)`` seam, so the real
request building and response handling in ``access_watch.api`` is exercised.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

API_BASE = "https://access.watch/api/1.0"


@dataclass
class FakeResponse:
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""


@dataclass
class Call:
    method: str
    url: str
    headers: Dict[str, str]
    content: Optional[bytes]

    def json(self) -> Any:
        return json.loads(self.content or b"null")


class _FakeHttpBase:
    def __init__(self) -> None:
        self.calls: List[Call] = []
        self.closed = False
        self._routes: Dict[Tuple[str, str], Any] = {}

    def reply(
        self,
        method: str,
        path: str,
        status: int = 200,
        body: Any = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """Answer ``method path`` with a canned response.

        Dict/list bodies are JSON-encoded and get a JSON content type.
        """
        headers = dict(headers or {})
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self._routes[(method, path)] = FakeResponse(status, headers, body)

    def fail(self, method: str, path: str, exc: BaseException) -> None:
        self._routes[(method, path)] = exc

    def _handle(self, method: str, url: str, headers: Any, content: Any) -> FakeResponse:
        self.calls.append(Call(method, url, dict(headers or {}), content))
        for (m, path), outcome in self._routes.items():
            if m == method and url.endswith(path):
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
        raise AssertionError(f"unexpected request: {method} {url}")

    def calls_to(self, path: str) -> List[Call]:
        return [c for c in self.calls if c.url.endswith(path)]


class FakeHttpClient(_FakeHttpBase):
    """Async stand-in for ``pyqwest.Client``."""

    async def execute(self, method, url, headers=None, content=None):
        return self._handle(method, url, headers, content)

    async def aclose(self) -> None:
        self.closed = True


class FakeHttpClientSync(_FakeHttpBase):
    """Sync stand-in for ``pyqwest.SyncClient``."""

    def execute(self, method, url, headers=None, content=None):
        return self._handle(method, url, headers, content)

    def close(self) -> None:
        self.closed = True


class _RecordingStore:
    def __init__(
        self,
        initial: Optional[Dict[str, Any]] = None,
        *,
        default: Any = None,
        fail_get: Optional[BaseException] = None,
        fail_set: Optional[BaseException] = None,
    ) -> None:
        self.store: Dict[str, Any] = dict(initial or {})
        self.default = default
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.gets: List[str] = []
        self.sets: List[Tuple[str, Any]] = []
        self.drops: List[str] = []

    def _get(self, key: str) -> Any:
        self.gets.append(key)
        if self.fail_get is not None:
            raise self.fail_get
        return self.store.get(key, self.default)

    def _set(self, key: str, value: Any) -> str:
        self.sets.append((key, value))
        if self.fail_set is not None:
            raise self.fail_set
        self.store[key] = value
        return "ok"

    def _drop(self, key: str) -> str:
        self.drops.append(key)
        self.store.pop(key, None)
        return "ok"


class RecordingCache(_RecordingStore):
    """Async cache that records every call."""

    async def get(self, key):
        return self._get(key)

    async def set(self, key, value):
        return self._set(key, value)

    async def drop(self, key):
        return self._drop(key)


class RecordingCacheSync(_RecordingStore):
    """Sync cache that records every call."""

    def get(self, key):
        return self._get(key)

    def set(self, key, value):
        return self._set(key, value)

    def drop(self, key):
        return self._drop(key)


def make_request(
    headers: Optional[Dict[str, str]] = None,
    address: str = "1.2.3.4",
    **extra: Any,
) -> Dict[str, Any]:
    """A plain-mapping request as accepted by ``coerce_request_context``."""
    req: Dict[str, Any] = {"address": address, "headers": dict(headers or {})}
    req.update(extra)
    return req
