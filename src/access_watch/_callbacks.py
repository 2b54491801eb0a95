"""Bridges for operations that report completion through a callback.

Many cache clients signal completion by calling ``callback(err, result)``
instead of returning a value. ``promisify`` turns such an operation into a
coroutine function so it composes with ``await``; ``call_with_callback`` does
the same for synchronous callers by blocking until the callback fires.

Neither helper retries or times out: an operation that never invokes its
callback never completes.

Example::

    get = promisify(backend.get)
    value = await get("key")  # calls backend.get("key", callback)
"""

from __future__ import annotations

import asyncio
import functools
import threading
from typing import Any, Awaitable, Callable

from ._errors import CallbackError


def _as_exception(err: Any) -> BaseException:
    if isinstance(err, BaseException):
        return err
    return CallbackError(err)


def promisify(func: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
    """Wrap a callback-style operation as a coroutine function.

    The returned coroutine function forwards its positional arguments to
    ``func`` and appends a completion callback taking ``(err, result=None)``.
    The callback may run synchronously inside ``func``, later on the event
    loop, or from another thread. A truthy ``err`` fails the awaitable;
    otherwise it resolves with ``result``. Only the first invocation of the
    callback counts.

    Bound methods keep their instance, so ``promisify(cache.get)`` calls
    ``get`` on ``cache``.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any) -> Any:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        def settle(err: Any, result: Any) -> None:
            if future.done():
                return
            if err:
                future.set_exception(_as_exception(err))
            else:
                future.set_result(result)

        def callback(err: Any = None, result: Any = None) -> None:
            loop.call_soon_threadsafe(settle, err, result)

        func(*args, callback)
        return await future

    return wrapper


def call_with_callback(func: Callable[..., Any], *args: Any) -> Any:
    """Call a callback-style operation and block until it completes."""
    done = threading.Event()
    outcome: list[Any] = []

    def callback(err: Any = None, result: Any = None) -> None:
        if done.is_set():
            return
        outcome.append((err, result))
        done.set()

    func(*args, callback)
    done.wait()
    err, result = outcome[0]
    if err:
        raise _as_exception(err)
    return result
