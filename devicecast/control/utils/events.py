import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from devicecast.control.utils.logger import get_logger

logger = get_logger(__name__)

WILDCARD = "*"

Listener = Callable[[Any], Any]


@dataclass(frozen=True)
class DeviceEvent:
    """What wildcard listeners receive: the event name and its payload."""

    type: str
    value: Any = None


class EventEmitter:
    """
    Minimal synchronous event emitter.

    Every `emit` is also delivered to wildcard (`"*"`) listeners as a
    `DeviceEvent`. Listeners returning an awaitable are scheduled on the running
    loop; their failures are logged, never raised into the emitter.
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}
        self._pending: set[asyncio.Future] = set()

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        self._listeners.setdefault(event, []).append(listener)
        return lambda: self.off(event, listener)

    def once(self, event: str, listener: Listener) -> Callable[[], None]:
        def wrapper(value):
            self.off(event, wrapper)
            return listener(value)

        wrapper.__wrapped__ = listener  # type: ignore[attr-defined]
        return self.on(event, wrapper)

    def off(self, event: str, listener: Listener | None = None):
        if listener is None:
            self._listeners.pop(event, None)
            return
        listeners = self._listeners.get(event)
        if not listeners:
            return
        for registered in listeners:
            if registered == listener or getattr(registered, "__wrapped__", None) == listener:
                listeners.remove(registered)
                break
        if not listeners:
            del self._listeners[event]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, value: Any = None):
        self._dispatch(event, value)
        if event != WILDCARD:
            self._dispatch(WILDCARD, DeviceEvent(type=event, value=value))

    def _dispatch(self, event: str, value: Any):
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(value)
            except Exception as e:
                logger.exception(f"Listener for '{event}' raised: {e}")
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    def _schedule(self, event: str, awaitable):
        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)

        def _done(fut: asyncio.Future):
            self._pending.discard(fut)
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                logger.error(f"Async listener for '{event}' failed: {error!r}")

        future.add_done_callback(_done)
