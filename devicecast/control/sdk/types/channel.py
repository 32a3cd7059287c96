from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

Listener = Callable[[Any], Any]


@runtime_checkable
class Channel(Protocol):
    """
    Bidirectional event link to the remote device.

    `send` resolving only means the message reached the transport. Wildcard
    (`"*"`) listeners receive a `DeviceEvent(type, value)` for every event.
    The transport emits `"disconnect"` when the link goes away.
    """

    async def send(self, event: str, payload: Any = None) -> None: ...

    def on(self, event: str, listener: Listener) -> Any: ...

    def off(self, event: str, listener: Listener) -> Any: ...

    def once(self, event: str, listener: Listener) -> Any: ...

    async def disconnect(self) -> None: ...


@runtime_checkable
class ControlChannel(Channel, Protocol):
    """Channel to the service hosting the device, used before and between sessions."""

    async def request(self, event: str, payload: Any = None) -> Any:
        """Send `event` and return the remote's reply."""
        ...

    async def wait_until_ready(self) -> None: ...
