"""
Bounded, isolated execution of plugin calls.

One asyncio task per call, gathered behind a single barrier:
    - at most ``max_in_flight`` plugin calls run at once (semaphore)
    - every call has its own timeout, counted from when it starts
    - a failure or timeout is captured in that call's outcome only
    - cancelling the gather cancels every outstanding call

Synchronous plugin methods each get their own daemon thread, started when
the semaphore admits the call. A call that times out keeps its thread until
it returns, but that thread holds no slot another call is waiting for, and
it never keeps the interpreter alive at exit. Coroutine methods are awaited
directly.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

logger = logging.getLogger(__name__)


DEFAULT_MAX_IN_FLIGHT = 8
DEFAULT_CALL_TIMEOUT_SECONDS = 5.0

THREAD_NAME_PREFIX = "geostamp-plugin"


@dataclass(frozen=True)
class CallOutcome:
    """What happened to one plugin call."""
    index: int
    value: Any = None
    error: Optional[Exception] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


def _run_in_thread(fn: Callable[[], Any], name: str) -> asyncio.Future:
    """Start ``fn`` on a fresh daemon thread; the future settles on the loop."""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(value: Any, error: Optional[Exception]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def target() -> None:
        value, error = None, None
        try:
            value = fn()
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(settle, value, error)
        except RuntimeError:
            # Loop already closed: the call outlived its assessment
            logger.debug("%s finished after its event loop closed", name)

    threading.Thread(target=target, name=name, daemon=True).start()
    return future


async def _invoke(fn: Callable[[], Any], name: str) -> Any:
    if inspect.iscoroutinefunction(fn):
        return await fn()
    result = await _run_in_thread(fn, name)
    if inspect.isawaitable(result):
        result = await result
    return result


async def run_bounded(
    calls: Sequence[Callable[[], Any]],
    max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
    timeout: Optional[float] = DEFAULT_CALL_TIMEOUT_SECONDS,
) -> list[CallOutcome]:
    """
    Run zero-argument calls concurrently and return outcomes in call order.

    Args:
        calls: Zero-argument callables (plain or coroutine functions)
        max_in_flight: Upper bound on concurrently running calls
        timeout: Per-call timeout in seconds (None disables it)
    """
    if max_in_flight < 1:
        raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")

    semaphore = asyncio.Semaphore(max_in_flight)

    async def guarded(index: int, fn: Callable[[], Any]) -> CallOutcome:
        async with semaphore:
            try:
                value = await asyncio.wait_for(
                    _invoke(fn, f"{THREAD_NAME_PREFIX}-{index}"), timeout
                )
            except asyncio.TimeoutError:
                logger.debug("call %d timed out after %ss", index, timeout)
                return CallOutcome(index=index, timed_out=True)
            except Exception as e:
                logger.debug("call %d raised %s: %s", index, type(e).__name__, e)
                return CallOutcome(index=index, error=e)
        return CallOutcome(index=index, value=value)

    return list(await asyncio.gather(*(guarded(i, fn) for i, fn in enumerate(calls))))
