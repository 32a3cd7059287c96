import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from devicecast.control.config import settings
from devicecast.control.constants import WAIT_FOR_POLL_INTERVAL_MS
from devicecast.control.sdk.types.exceptions import OperationTimeoutError


class SupportsListeners(Protocol):
    def on(self, event: str, listener: Callable[[Any], Any]) -> Any: ...

    def off(self, event: str, listener: Callable[[Any], Any]) -> Any: ...


async def wait_for_timeout(ms: float):
    await asyncio.sleep(max(0, ms) / 1000)


T = TypeVar("T")


async def wait_for(
    condition: Callable[[], T | Awaitable[T]],
    timeout_ms: float,
    *,
    interval_ms: float = WAIT_FOR_POLL_INTERVAL_MS,
    timeout_message: str | None = None,
) -> T:
    """
    Poll `condition` until it returns a truthy value.

    Exceptions raised by `condition` propagate immediately, which is how a
    caller bails out early (e.g. on a disconnect).
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    while True:
        result = condition()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return result
        if loop.time() >= deadline:
            raise OperationTimeoutError(timeout_message or f"Timed out after {timeout_ms}ms")
        await asyncio.sleep(interval_ms / 1000)


def wait_for_event(
    emitter: SupportsListeners,
    event: str,
    *,
    timeout_ms: float | None = None,
    predicate: Callable[[Any], bool] | None = None,
    trigger: Awaitable[Any] | None = None,
) -> Awaitable[Any]:
    """
    Subscribe to `event` right away and return an awaitable for its next
    matching payload.

    The subscription happens before this function returns, so a fast response
    is never lost. Pass the request that provokes the event as `trigger`: it is
    awaited inside the wait, and the listener is removed even if it fails.
    """
    timeout_ms = settings.EVENT_TIMEOUT_MS if timeout_ms is None else timeout_ms
    future: asyncio.Future = asyncio.get_running_loop().create_future()

    def listener(value):
        if future.done():
            return
        if predicate is not None and not predicate(value):
            return
        future.set_result(value)

    emitter.on(event, listener)

    async def wait():
        try:
            if trigger is not None:
                await trigger
            return await asyncio.wait_for(future, timeout_ms / 1000)
        except TimeoutError:
            raise OperationTimeoutError(
                f'Timeout {timeout_ms}ms exceeded while waiting for event "{event}"'
            ) from None
        finally:
            emitter.off(event, listener)

    return wait()
