"""Session cache contracts and bundled implementations.

The client stores sessions in a cache it does not own. Any object with
``get(key)``, ``set(key, value)`` and ``drop(key)`` works; ``del`` and
``delete`` are accepted in place of ``drop``. For the async client each
method may return a value or an awaitable, so both coroutine-based caches and
plain in-process ones plug in directly. Caches that signal completion with a
``callback(err, result)`` argument are wrapped with ``CallbackCache`` (async)
or ``CallbackCacheSync`` (sync).

Storage, eviction and expiry belong to the cache. The client only reads,
writes and drops entries keyed by request identity.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from ._callbacks import call_with_callback, promisify
from ._errors import AccessWatchMisconfiguration

_DROP_ALIASES = ("drop", "del", "delete")


@runtime_checkable
class SessionCache(Protocol):
    """Cache contract for the async client."""

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> Any: ...

    async def drop(self, key: str) -> Any: ...


@runtime_checkable
class SessionCacheSync(Protocol):
    """Cache contract for the sync client."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> Any: ...

    def drop(self, key: str) -> Any: ...


def _drop_method(backend: Any) -> Optional[Callable[..., Any]]:
    for name in _DROP_ALIASES:
        method = getattr(backend, name, None)
        if callable(method):
            return method
    return None


@dataclass(frozen=True, slots=True)
class CacheOps:
    """The three cache operations resolved from a user-supplied cache."""

    get: Callable[..., Any]
    set: Callable[..., Any]
    drop: Callable[..., Any]


def resolve_cache_ops(cache: Any) -> CacheOps:
    """Look up ``get``, ``set`` and ``drop`` (or an alias) on ``cache``.

    Raises:
        AccessWatchMisconfiguration: If any operation is missing.
    """
    get = getattr(cache, "get", None)
    set_ = getattr(cache, "set", None)
    drop = _drop_method(cache)
    missing = [
        name
        for name, op in (("get", get), ("set", set_), ("drop", drop))
        if not callable(op)
    ]
    if missing:
        raise AccessWatchMisconfiguration(
            "cache must implement get, set and drop (or del); missing: "
            + ", ".join(missing)
        )
    return CacheOps(get=get, set=set_, drop=drop)  # type: ignore[arg-type]


class CallbackCache:
    """Async view of a cache whose operations take a completion callback.

    Example::

        class Backend:
            def get(self, key, cb): cb(None, store.get(key))
            def set(self, key, value, cb): store[key] = value; cb(None, "ok")
            def drop(self, key, cb): store.pop(key, None); cb(None, "ok")

        aw = access_watch(api_key=key, cache=CallbackCache(Backend()))
    """

    __slots__ = ("_get", "_set", "_drop")

    def __init__(self, backend: Any) -> None:
        ops = resolve_cache_ops(backend)
        self._get = promisify(ops.get)
        self._set = promisify(ops.set)
        self._drop = promisify(ops.drop)

    async def get(self, key: str) -> Any:
        return await self._get(key)

    async def set(self, key: str, value: Any) -> Any:
        return await self._set(key, value)

    async def drop(self, key: str) -> Any:
        return await self._drop(key)


class CallbackCacheSync:
    """Blocking view of a cache whose operations take a completion callback."""

    __slots__ = ("_ops",)

    def __init__(self, backend: Any) -> None:
        self._ops = resolve_cache_ops(backend)

    def get(self, key: str) -> Any:
        return call_with_callback(self._ops.get, key)

    def set(self, key: str, value: Any) -> Any:
        return call_with_callback(self._ops.set, key, value)

    def drop(self, key: str) -> Any:
        return call_with_callback(self._ops.drop, key)


class _MemoryStore:
    """Thread-safe dict with optional per-entry expiry."""

    def __init__(self, ttl_seconds: Optional[float] = None) -> None:
        self._ttl = ttl_seconds
        self._store: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        if ttl is not None and ttl <= 0:
            return
        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._store[key] = (value, expires_at)

    def drop(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


class MemorySessionCache:
    """In-process async session cache.

    ``ttl_seconds`` bounds how long a session is trusted; ``None`` keeps
    entries until dropped. Suitable for a single process; use a shared store
    when running several workers.
    """

    def __init__(self, ttl_seconds: Optional[float] = None) -> None:
        self._store = _MemoryStore(ttl_seconds)

    async def get(self, key: str) -> Any:
        return self._store.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._store.set(key, value)

    async def drop(self, key: str) -> None:
        self._store.drop(key)

    def __len__(self) -> int:
        return len(self._store)


class MemorySessionCacheSync:
    """In-process session cache for the sync client."""

    def __init__(self, ttl_seconds: Optional[float] = None) -> None:
        self._store = _MemoryStore(ttl_seconds)

    def get(self, key: str) -> Any:
        return self._store.get(key)

    def set(self, key: str, value: Any) -> None:
        self._store.set(key, value)

    def drop(self, key: str) -> None:
        self._store.drop(key)

    def __len__(self) -> int:
        return len(self._store)
