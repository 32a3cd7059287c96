import asyncio
import json
import re
from collections.abc import Callable
from typing import Any

from devicecast.control.config import settings
from devicecast.control.context import AppInfo, DeviceInfo, SessionConfig, SessionInfo
from devicecast.control.controllers.events import (
    ClientEvent,
    PublicEvent,
    SessionEvent,
    map_client_event,
)
from devicecast.control.controllers.mapper import clean_object
from devicecast.control.sdk.session import Session
from devicecast.control.sdk.types.channel import Channel, ControlChannel
from devicecast.control.sdk.types.exceptions import (
    ClientNotReadyError,
    OperationalError,
    OperationTimeoutError,
    SessionStartError,
)
from devicecast.control.utils.decorators import capture_operational_error
from devicecast.control.utils.events import WILDCARD, DeviceEvent, EventEmitter
from devicecast.control.utils.logger import get_logger
from devicecast.control.utils.waiting import wait_for

logger = get_logger(__name__)

TOO_MANY_REQUESTS = re.compile(r"Too many requests")

SessionChannelFactory = Callable[[SessionInfo], Channel]


def _error_message(value: Any) -> str:
    message = value.get("message") if isinstance(value, dict) else value
    if isinstance(message, dict | list):
        return json.dumps(message)
    return str(message)


class Client(EventEmitter):
    """
    Routes events from the hosting service and owns at most one `Session`.

    Public events: `queue`, `queueEnd`, `error`, `session`, `sessionError`,
    plus every unmapped event from the control channel.
    """

    def __init__(
        self,
        control_channel: ControlChannel,
        session_channel_factory: SessionChannelFactory | None = None,
        config: SessionConfig | dict[str, Any] | None = None,
    ):
        super().__init__()
        self.channel = control_channel
        self._session_channel_factory = session_channel_factory or (lambda _info: control_channel)
        self._config: SessionConfig | None = self._map_config(config) if config else None

        self.session: Session | None = None
        self.app: AppInfo | None = None
        self.device: DeviceInfo | None = None
        self.queue: dict[str, Any] | None = None
        self.ready = False

        self.channel.on(WILDCARD, self._handle_channel_event)

    def _handle_channel_event(self, event: DeviceEvent):
        match event.type:
            case ClientEvent.NEW_SESSION:
                if self.queue is not None:
                    self.queue = None
                    self.emit(PublicEvent.QUEUE_END)
                if self.ready:
                    self._schedule(event.type, self._start_granted_session(event.value))
            case ClientEvent.REINIT:
                self.ready = False
                self._drop_session()
                self._schedule(event.type, self.init(is_reinit=True))
            case ClientEvent.APP if self.ready:
                self.app = AppInfo.model_validate(event.value)
            case ClientEvent.DEVICE_INFO if self.ready:
                self.device = DeviceInfo.model_validate(event.value)
            case ClientEvent.CONFIG if self.ready:
                self._config = self._map_config(event.value)

        mapped = map_client_event(event.type, event.value)
        if mapped is not None:
            if mapped.type == PublicEvent.QUEUE:
                self.queue = mapped.value
            self.emit(mapped.type, mapped.value)

    def _drop_session(self):
        if self.session is not None:
            self.session.detach()
            self.session = None

    async def init(self, is_reinit: bool = False):
        await self.channel.wait_until_ready()

        async def push_config():
            if is_reinit:
                previous = self._config.to_payload() if self._config else {}
                current = await self.set_config()
                return await self.set_config({"record": True, **previous, **current.to_payload()})
            existing = self._config.to_payload() if self._config else {}
            return await self.set_config({"record": True, **existing})

        app, device, _ = await asyncio.gather(
            self.channel.request("getApp"),
            self.channel.request("getDeviceInfo"),
            push_config(),
        )
        self.app = AppInfo.model_validate(app) if app else None
        self.device = DeviceInfo.model_validate(device) if device else None
        self.ready = True
        if self.device is not None:
            logger.info(f"Device: {self.device.to_str()}")
        logger.success("Client is ready")

    async def wait_until_ready(self):
        if self.ready:
            return
        await wait_for(
            lambda: self.ready,
            settings.CLIENT_READY_TIMEOUT_MS,
            timeout_message="Timed out waiting for client to be ready",
        )

    async def _start_granted_session(self, value: dict[str, Any]):
        info = SessionInfo(
            path=value["path"],
            token=value.get("sessionToken") or value.get("token"),
        )
        # detach the old instance before the new one subscribes to a possibly shared channel
        self._drop_session()
        session = Session(
            channel=self._session_channel_factory(info),
            config=self._config or SessionConfig(),
            info=info,
            device=self.device,
            app=self.app,
        )
        self.session = session

        def on_disconnect(_value):
            if self.session is session:
                self.session = None

        session.on(SessionEvent.DISCONNECT, on_disconnect)
        try:
            await self._wait_for_session_start(session)
        except OperationalError as e:
            logger.error(f"Session {info.path} failed to start: {e}")
            session.detach()
            if self.session is session:
                self.session = None
            self.emit(PublicEvent.SESSION_ERROR, e)
            return
        self.emit(PublicEvent.SESSION, session)

    async def _wait_for_session_start(self, session: Session):
        failure: asyncio.Future = asyncio.get_running_loop().create_future()

        def fail(error: SessionStartError):
            if not failure.done():
                failure.set_exception(error)

        def on_disconnect(_value):
            fail(SessionStartError("Session disconnected before it was ready"))

        def on_session_error(value):
            fail(SessionStartError(f"Session failed to start - {_error_message(value)}"))

        def on_client_error(value):
            # only some client errors mean the session will never start
            if TOO_MANY_REQUESTS.search(_error_message(value)):
                fail(SessionStartError("Session failed to start due to too many requests"))

        self.on(PublicEvent.ERROR, on_client_error)
        session.on(SessionEvent.DISCONNECT, on_disconnect)
        session.on(PublicEvent.ERROR, on_session_error)
        ready = asyncio.ensure_future(session.wait_until_ready())
        try:
            await asyncio.wait({ready, failure}, return_when=asyncio.FIRST_COMPLETED)
            if failure.done():
                failure.result()
            ready.result()
        finally:
            self.off(PublicEvent.ERROR, on_client_error)
            session.off(SessionEvent.DISCONNECT, on_disconnect)
            session.off(PublicEvent.ERROR, on_session_error)
            for future in (ready, failure):
                if not future.done():
                    future.cancel()
                elif not future.cancelled():
                    future.exception()

    @capture_operational_error
    async def start_session(self, config: dict[str, Any] | None = None, **kwargs: Any) -> Session:
        try:
            await self.wait_until_ready()
        except OperationTimeoutError as e:
            raise ClientNotReadyError(e.message) from e

        if self.session is not None:
            await self.session.end()

        await self.set_config(config, **kwargs)

        granted: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_session(session: Session):
            if not granted.done():
                granted.set_result(session)

        def on_session_error(error):
            if not granted.done():
                if not isinstance(error, Exception):
                    error = SessionStartError(_error_message(error))
                granted.set_exception(error)

        self.on(PublicEvent.SESSION, on_session)
        self.on(PublicEvent.SESSION_ERROR, on_session_error)
        try:
            session, _ = await asyncio.gather(granted, self.channel.request("requestSession"))
        finally:
            self.off(PublicEvent.SESSION, on_session)
            self.off(PublicEvent.SESSION_ERROR, on_session_error)
        return session

    @capture_operational_error
    async def set_config(self, config: dict[str, Any] | None = None, **kwargs: Any) -> SessionConfig:
        values = {**(config or {}), **kwargs}
        public_key = values.pop("publicKey", None) or values.pop("public_key", None)
        if public_key:
            response = await self.channel.request("loadApp", public_key)
            if isinstance(response, dict) and "error" in response:
                raise OperationalError(response["error"])

        value = await self.channel.request("setConfig", self.validate_config(values))
        self._config = self._map_config(value or {})
        return self._config

    def get_config(self) -> SessionConfig | None:
        return self._config

    def validate_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Runs before a config is pushed. Override to add defaults or reject values."""
        return config

    def _map_config(self, config: SessionConfig | dict[str, Any]) -> SessionConfig:
        data = config.to_payload() if isinstance(config, SessionConfig) else clean_object(dict(config))
        if data.get("autoplay") is True:
            logger.warning_once(
                "autoplay=true may cause the session to start before the client is ready. "
                "Start the session with client.start_session() instead."
            )
        device = data.get("deviceType") or data.get("device")
        if device is not None:
            data["device"] = device
        return SessionConfig.model_validate(data)
