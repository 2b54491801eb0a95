"""Access Watch client for Python web servers.

This module exposes both async (`AccessWatch`) and sync (`AccessWatchSync`)
clients:

- `access_watch(...)` / `access_watch_sync(...)`: Factory functions that
  validate options and construct clients.
- `.is_blocked(request)`: Cache-only check whether a request should be
  blocked. Never raises and never calls the API.
- `.resolve_session(request)`: Cache-first session lookup that falls back to
  the API and refills the cache.
- `.report(request, response)`: Sends an activity record for a finished
  request.

The request object you pass can be a raw framework request (ASGI scope dict,
Starlette/FastAPI `Request`, Flask/Werkzeug `Request`, Django `HttpRequest`),
a plain mapping or a pre-built `RequestContext`; see
`coerce_request_context` for details.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from typing_extensions import deprecated

from ._errors import AccessWatchCacheError, AccessWatchMisconfiguration
from ._logging import logger
from .api import ApiClient, ApiClientSync, ApiResponse
from .cache import CacheOps, resolve_cache_ops
from .context import coerce_request_context, response_status
from .forwarded import ForwardedHeaders
from .report import DEFAULT_HEADER_BLACKLIST, build_log_record, normalize_blacklist
from .session import Session
from .signing import request_signature

DEFAULT_API_BASE = "https://access.watch/api/1.0"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _log_cache_hit(identity: str, t0: float) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        total_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug(
            "session cache hit: identity=%s total_ms=%.3f",
            identity,
            round(total_ms, 3),
            extra={
                "event": "access_watch_cache_hit",
                "identity": identity,
                "total_ms": round(total_ms, 3),
            },
        )


def _log_identity(identity: str, session: Session, t0: float) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        total_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug(
            "session resolved: identity=%s blocked=%s total_ms=%.3f",
            identity,
            session.blocked,
            round(total_ms, 3),
            extra={
                "event": "access_watch_identity",
                "identity": identity,
                "blocked": session.blocked,
                "total_ms": round(total_ms, 3),
            },
        )


def _log_cache_read_error(identity: str | None, e: Exception) -> None:
    logger.warning(
        "session cache read failed: identity=%s error=%s",
        identity,
        str(e),
        extra={
            "event": "access_watch_cache_error",
            "identity": identity,
            "error": str(e),
        },
    )


def _log_cache_write_error(identity: str, e: Exception) -> None:
    logger.warning(
        "session cache write failed: identity=%s error=%s",
        identity,
        str(e),
        extra={
            "event": "access_watch_cache_write_error",
            "identity": identity,
            "error": str(e),
        },
    )


def _log_background_report_error(e: Exception) -> None:
    # Background error: log at debug; do not raise
    logger.debug(
        "background report error: error=%s",
        str(e),
        extra={"event": "access_watch_report_error", "error": str(e)},
    )


@dataclass(slots=True)
class AccessWatch:
    """Async Access Watch client.

    Do not instantiate this class directly - use the ``access_watch()``
    factory function instead, which validates the options.

    Example::

        import os
        from access_watch import (
            STANDARD_FORWARDED_HEADERS,
            MemorySessionCache,
            access_watch,
        )

        aw = access_watch(
            api_key=os.environ["ACCESS_WATCH_API_KEY"],
            cache=MemorySessionCache(ttl_seconds=300),
            # Only when running behind a reverse proxy:
            fwd_headers=STANDARD_FORWARDED_HEADERS,
        )

        # Inside an async route handler:
        if await aw.is_blocked(request):
            return PlainTextResponse("Forbidden", status_code=403)
    """

    _client: ApiClient
    _cache: CacheOps
    _fwd_headers: ForwardedHeaders | None = None
    _header_blacklist: frozenset[str] = DEFAULT_HEADER_BLACKLIST
    _background: set[asyncio.Task[Any]] = field(default_factory=set)

    @property
    def api_base(self) -> str:
        return self._client.base_url

    def request_signature(self, request: Any) -> str:
        """Identity of ``request``, the key its session is cached under.

        Derived from the client address (the forwarded address when
        ``fwd_headers`` provides one) and the signature headers only.
        """
        ctx = coerce_request_context(request)
        return request_signature(ctx, self._fwd_headers)

    async def hello(self) -> ApiResponse:
        """Check that the API base URL and key work.

        Typically called once when the server starts.

        Raises:
            AccessWatchProtocolError: If the API answers with anything but
                200; the message is the response body.
            AccessWatchTransportError: If the API cannot be reached.
        """
        return await self._client.hello()

    async def resolve_session(self, request: Any, skip_cache: bool = False) -> Session:
        """Find the session for ``request`` in the cache, else ask the API.

        A cache hit returns immediately without calling the API. On a miss,
        or when ``skip_cache`` is set, the API is asked and its answer is
        written back to the cache under the request identity. A failed cache
        write is logged and otherwise ignored.

        Args:
            ``request``: The incoming HTTP request (see module docs).
            ``skip_cache``: Do not read the cache; the result is still
                written to it.

        Returns:
            The ``Session`` for this request.

        Raises:
            AccessWatchCacheError: If reading the cache fails.
            AccessWatchTransportError: If the API cannot be reached.
            AccessWatchProtocolError: If the API does not answer with JSON.
            json.JSONDecodeError: If the API body is not valid JSON.
        """
        t0 = time.perf_counter()
        ctx = coerce_request_context(request)
        identity = request_signature(ctx, self._fwd_headers)

        if not skip_cache:
            try:
                cached = Session.from_cached(await _maybe_await(self._cache.get(identity)))
            except Exception as e:
                _log_cache_read_error(identity, e)
                raise AccessWatchCacheError(str(e)) from e
            if cached is not None:
                # cache hit, we're done!
                _log_cache_hit(identity, t0)
                return cached

        payload = await self._client.identity(ctx.address, ctx.headers)
        session = Session(payload)
        try:
            await _maybe_await(self._cache.set(identity, payload))
        except Exception as e:
            _log_cache_write_error(identity, e)
        _log_identity(identity, session, t0)
        return session

    async def is_blocked(self, request: Any) -> bool:
        """Whether ``request`` belongs to a session the API asked to block.

        Only the cache is consulted, so this adds no API latency to the
        request path. A cache miss, a session without a truthy ``blocked``
        flag, or any cache error yields ``False``; this method never raises.

        Example::

            if await aw.is_blocked(request):
                return PlainTextResponse("Forbidden", status_code=403)
        """
        identity = None
        try:
            identity = self.request_signature(request)
            session = Session.from_cached(await _maybe_await(self._cache.get(identity)))
        except Exception as e:
            _log_cache_read_error(identity, e)
            return False
        return bool(session is not None and session.blocked)

    def _log_record(self, request: Any, response: Any) -> dict[str, Any]:
        return build_log_record(
            coerce_request_context(request),
            response_status(response),
            fwd_headers=self._fwd_headers,
            header_blacklist=self._header_blacklist,
        )

    async def report(self, request: Any, response: Any) -> ApiResponse:
        """Send an activity record for a finished request/response cycle.

        Headers in the configured blacklist are left out. Errors propagate
        to the caller; nothing is retried or buffered.

        Raises:
            AccessWatchTransportError: If the API cannot be reached.
        """
        return await self._client.log(self._log_record(request, response))

    def report_in_background(self, request: Any, response: Any) -> asyncio.Task[Any]:
        """Schedule ``report()`` without waiting for it.

        The record is built before returning, so the request and response
        objects may be discarded right away. Failures are logged at debug
        level. Must be called from a running event loop.
        """
        record = self._log_record(request, response)

        async def _send_report() -> None:
            try:
                await self._client.log(record)
            except Exception as e:
                _log_background_report_error(e)

        task = asyncio.create_task(_send_report())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    @deprecated("Use `resolve_session()` instead.")
    async def lookup_session(self, request: Any, no_cache: bool = False) -> Session:
        return await self.resolve_session(request, skip_cache=no_cache)

    @deprecated("Use `is_blocked()` instead.")
    async def check_blocked(self, request: Any) -> bool:
        return await self.is_blocked(request)

    @deprecated("Use `report()` instead.")
    async def log(self, request: Any, response: Any) -> ApiResponse:
        return await self.report(request, response)

    async def aclose(self) -> None:
        """Wait for background reports, then close the underlying transport."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        await self._client.aclose()

    async def __aenter__(self) -> "AccessWatch":
        """Async context manager entry; returns `self`."""
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Async context manager exit; ensures the client is closed."""
        await self.aclose()


@dataclass(slots=True)
class AccessWatchSync:
    """Sync Access Watch client.

    Synchronous counterpart to ``AccessWatch`` for frameworks such as Flask
    or Django. The cache's ``get``/``set``/``drop`` must return plain values;
    wrap callback-style caches with ``CallbackCacheSync``.

    Do not instantiate this class directly - use the ``access_watch_sync()``
    factory function instead.

    Example::

        aw = access_watch_sync(
            api_key=os.environ["ACCESS_WATCH_API_KEY"],
            cache=MemorySessionCacheSync(ttl_seconds=300),
        )

        @app.before_request
        def block():
            if aw.is_blocked(request):
                return "Forbidden", 403
    """

    _client: ApiClientSync
    _cache: CacheOps
    _fwd_headers: ForwardedHeaders | None = None
    _header_blacklist: frozenset[str] = DEFAULT_HEADER_BLACKLIST
    _background: set[threading.Thread] = field(default_factory=set)
    _background_lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def api_base(self) -> str:
        return self._client.base_url

    def request_signature(self, request: Any) -> str:
        """Identity of ``request``; see ``AccessWatch.request_signature``."""
        return request_signature(coerce_request_context(request), self._fwd_headers)

    def hello(self) -> ApiResponse:
        """Check that the API base URL and key work (sync)."""
        return self._client.hello()

    def resolve_session(self, request: Any, skip_cache: bool = False) -> Session:
        """Cache-first session lookup (sync).

        See ``AccessWatch.resolve_session()`` for the full contract.
        """
        t0 = time.perf_counter()
        ctx = coerce_request_context(request)
        identity = request_signature(ctx, self._fwd_headers)

        if not skip_cache:
            try:
                cached = Session.from_cached(self._cache.get(identity))
            except Exception as e:
                _log_cache_read_error(identity, e)
                raise AccessWatchCacheError(str(e)) from e
            if cached is not None:
                _log_cache_hit(identity, t0)
                return cached

        payload = self._client.identity(ctx.address, ctx.headers)
        session = Session(payload)
        try:
            self._cache.set(identity, payload)
        except Exception as e:
            _log_cache_write_error(identity, e)
        _log_identity(identity, session, t0)
        return session

    def is_blocked(self, request: Any) -> bool:
        """Cache-only, fail-open block check (sync). Never raises."""
        identity = None
        try:
            identity = self.request_signature(request)
            session = Session.from_cached(self._cache.get(identity))
        except Exception as e:
            _log_cache_read_error(identity, e)
            return False
        return bool(session is not None and session.blocked)

    def _log_record(self, request: Any, response: Any) -> dict[str, Any]:
        return build_log_record(
            coerce_request_context(request),
            response_status(response),
            fwd_headers=self._fwd_headers,
            header_blacklist=self._header_blacklist,
        )

    def report(self, request: Any, response: Any) -> ApiResponse:
        """Send an activity record for a finished request (sync)."""
        return self._client.log(self._log_record(request, response))

    def report_in_background(self, request: Any, response: Any) -> threading.Thread:
        """Send ``report()`` from a daemon thread; failures are logged at debug."""
        record = self._log_record(request, response)

        def _send_report_sync() -> None:
            try:
                self._client.log(record)
            except Exception as e:
                _log_background_report_error(e)
            finally:
                with self._background_lock:
                    self._background.discard(thread)

        thread = threading.Thread(target=_send_report_sync, daemon=True)
        with self._background_lock:
            self._background.add(thread)
        thread.start()
        return thread

    @deprecated("Use `resolve_session()` instead.")
    def lookup_session(self, request: Any, no_cache: bool = False) -> Session:
        return self.resolve_session(request, skip_cache=no_cache)

    @deprecated("Use `is_blocked()` instead.")
    def check_blocked(self, request: Any) -> bool:
        return self.is_blocked(request)

    @deprecated("Use `report()` instead.")
    def log(self, request: Any, response: Any) -> ApiResponse:
        return self.report(request, response)

    def close(self) -> None:
        """Wait for background reports, then close the underlying transport."""
        with self._background_lock:
            pending = list(self._background)
        for thread in pending:
            thread.join()
        self._client.close()

    def __enter__(self) -> "AccessWatchSync":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _validate_options(
    api_key: str | None,
    cache: Any,
    fwd_headers: ForwardedHeaders | None,
    header_blacklist: Iterable[str] | None,
) -> tuple[CacheOps, frozenset[str]]:
    if cache is None:
        raise AccessWatchMisconfiguration("access-watch missing required option: cache")
    if not api_key:
        raise AccessWatchMisconfiguration("access-watch missing required option: api_key")
    if fwd_headers is not None and not isinstance(fwd_headers, ForwardedHeaders):
        raise AccessWatchMisconfiguration(
            "fwd_headers must be a ForwardedHeaders instance, e.g. "
            "STANDARD_FORWARDED_HEADERS."
        )
    if header_blacklist is None:
        blacklist = DEFAULT_HEADER_BLACKLIST
    elif isinstance(header_blacklist, str):
        blacklist = normalize_blacklist((header_blacklist,))
    else:
        blacklist = normalize_blacklist(header_blacklist)
    return resolve_cache_ops(cache), blacklist


def access_watch(
    *,
    api_key: str | None = None,
    cache: Any = None,
    api_base: str = DEFAULT_API_BASE,
    fwd_headers: ForwardedHeaders | None = None,
    header_blacklist: Iterable[str] | None = None,
    http_client: Any = None,
) -> AccessWatch:
    """Create an async Access Watch client.

    Args:
        ``api_key``: Your Access Watch API key. Keep this secret - store it
            in an environment variable, never in source code.
        ``cache``: Where sessions are cached. Any object with ``get``,
            ``set`` and ``drop`` (or ``del``) whose methods return values or
            awaitables, e.g. ``MemorySessionCache`` or a ``CallbackCache``.
        ``api_base``: Override the API base URL, useful for testing and
            debugging.
        ``fwd_headers``: Where to read forwarded host, scheme and address
            values. Required when the server runs behind a reverse proxy;
            ``STANDARD_FORWARDED_HEADERS`` fits most setups.
        ``header_blacklist``: Header names (case-insensitive) left out of
            activity reports. Defaults to ``DEFAULT_HEADER_BLACKLIST``.
        ``http_client``: A pre-built ``pyqwest.Client``, e.g. one configured
            with your own timeouts.

    Returns:
        An ``AccessWatch`` async client instance.

    Raises:
        AccessWatchMisconfiguration: If ``cache`` or ``api_key`` is missing,
            or the cache lacks one of its operations.

    Example::

        aw = access_watch(
            api_key=os.environ["ACCESS_WATCH_API_KEY"],
            cache=MemorySessionCache(ttl_seconds=300),
        )
        await aw.hello()
    """
    ops, blacklist = _validate_options(api_key, cache, fwd_headers, header_blacklist)
    return AccessWatch(
        _client=ApiClient(api_base, api_key, http_client),  # type: ignore[arg-type]
        _cache=ops,
        _fwd_headers=fwd_headers,
        _header_blacklist=blacklist,
    )


def access_watch_sync(
    *,
    api_key: str | None = None,
    cache: Any = None,
    api_base: str = DEFAULT_API_BASE,
    fwd_headers: ForwardedHeaders | None = None,
    header_blacklist: Iterable[str] | None = None,
    http_client: Any = None,
) -> AccessWatchSync:
    """Create a sync Access Watch client.

    Synchronous counterpart to ``access_watch()``; ``http_client`` is a
    ``pyqwest.SyncClient`` and the cache methods must return plain values.

    Raises:
        AccessWatchMisconfiguration: If ``cache`` or ``api_key`` is missing,
            or the cache lacks one of its operations.
    """
    ops, blacklist = _validate_options(api_key, cache, fwd_headers, header_blacklist)
    return AccessWatchSync(
        _client=ApiClientSync(api_base, api_key, http_client),  # type: ignore[arg-type]
        _cache=ops,
        _fwd_headers=fwd_headers,
        _header_blacklist=blacklist,
    )
