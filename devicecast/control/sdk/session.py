import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from PIL import Image
from pydantic import ValidationError

from devicecast.control.config import settings
from devicecast.control.constants import (
    ANIMATION_SETTLE_TIMEOUT_MS,
    DEFAULT_IMAGE_THRESHOLD,
    DEFAULT_IMAGE_THRESHOLD_DURATION_MS,
    DEPENDENT_FIELD_POLL_INTERVAL_MS,
    DEPENDENT_FIELD_TIMEOUT_MS,
    RESTART_APP_DELAY_MS,
    ROTATE_SETTLE_DELAY_MS,
    TYPE_TEXT_POST_DELAY_MS,
    TYPE_TEXT_PRE_DELAY_MS,
)
from devicecast.control.context import (
    AdbConnectionInfo,
    AppInfo,
    DeviceInfo,
    DevicePlatform,
    ProxyMode,
    SessionConfig,
    SessionInfo,
)
from devicecast.control.controllers.events import PublicEvent, SessionEvent, map_session_event
from devicecast.control.controllers.mapper import (
    InternalApiMapper,
    PublicApiMapper,
    is_valid_number,
)
from devicecast.control.controllers.types import (
    Action,
    ActionType,
    AppUI,
    Element,
    FindElementsAction,
    HardwareKey,
    KeypressAction,
    PlayActionResult,
    SwipeAction,
    TapAction,
    TypeTextAction,
)
from devicecast.control.sdk.builders.swipe_gesture import SwipeGesture
from devicecast.control.sdk.dispatcher import ActionDispatcher
from devicecast.control.sdk.types.channel import Channel
from devicecast.control.sdk.types.exceptions import (
    DisconnectedError,
    OperationalError,
    OperationTimeoutError,
    PlatformNotSupportedError,
    RecorderRequiredError,
)
from devicecast.control.utils.decorators import capture_operational_error
from devicecast.control.utils.events import WILDCARD, DeviceEvent, EventEmitter
from devicecast.control.utils.logger import get_logger
from devicecast.control.utils.media import to_bytes, to_data_url, to_image
from devicecast.control.utils.waiting import wait_for, wait_for_event, wait_for_timeout

logger = get_logger(__name__)

ScreenshotFormat = Literal["bytes", "base64", "image"]
Gesture = Literal["up", "down", "left", "right"] | Callable[[SwipeGesture], Any]

# Legacy keypress names used when a key is sent with shift held.
LEGACY_KEY_NAMES = {
    "ArrowUp": "arrowUp",
    "ArrowDown": "arrowDown",
    "ArrowLeft": "arrowLeft",
    "ArrowRight": "arrowRight",
    "Enter": "\r",
    "Tab": "\t",
    "Backspace": "\b",
}


@dataclass
class Screenshot:
    data: bytes | str | Image.Image
    mime_type: str


def _timestamp() -> int:
    return int(time.time() * 1000)


class Session(EventEmitter):
    """
    A running session on a remote device.

    Created -> ready (on the `ready` event) -> disconnected (terminal, on the
    channel's `disconnect` or `end()`). A disconnected instance detaches from
    its channel and never sees later traffic, even if the channel is reused.
    """

    def __init__(
        self,
        channel: Channel,
        config: SessionConfig,
        info: SessionInfo,
        device: DeviceInfo | None = None,
        app: AppInfo | None = None,
    ):
        super().__init__()
        self.channel = channel
        self.config = config
        self.path = info.path
        self.token = info.token
        self.device = device
        self.app = app

        self.ready = False
        self.is_ending_manually = False
        self.countdown_warning = False
        self.is_disconnected = False

        self._adb_connection: AdbConnectionInfo | None = None
        self._network_inspector_url: str | None = None
        self._pixel_change_waiters = 0

        self.dispatcher = ActionDispatcher(
            channel=channel,
            events=self,
            get_mapper=self._internal_mapper,
            is_recording=lambda: bool(self.config.record),
        )
        self.channel.on(WILDCARD, self._handle_channel_event)

    def __repr__(self) -> str:
        return f"Session(path={self.path!r}, ready={self.ready}, platform={self.config.platform})"

    @property
    def platform(self) -> DevicePlatform | None:
        return self.config.platform

    def _screen(self):
        if self.device is None or self.device.screen is None:
            raise OperationalError("Device screen size is not known yet")
        return self.device.screen

    def _internal_mapper(self) -> InternalApiMapper:
        return InternalApiMapper(platform=self.platform, screen=self._screen(), app=self.app)

    def _public_mapper(self) -> PublicApiMapper:
        return PublicApiMapper(platform=self.platform, screen=self._screen(), app=self.app)

    def _handle_channel_event(self, event: DeviceEvent):
        value = event.value
        match event.type:
            case SessionEvent.READY:
                self.ready = True
            case SessionEvent.ADB_OVER_TCP:
                self._adb_connection = AdbConnectionInfo.model_validate(value).with_command()
            case SessionEvent.NETWORK_INSPECTOR_URL:
                self._network_inspector_url = value
            case SessionEvent.COUNTDOWN_WARNING:
                self.countdown_warning = True
            case SessionEvent.TIMEOUT_RESET:
                self.countdown_warning = False
            case SessionEvent.DEVICE_INFO:
                self.device = DeviceInfo.model_validate(value)
            case SessionEvent.DISCONNECT:
                self._handle_disconnect()

        try:
            mapped = map_session_event(self._public_mapper(), event.type, value)
        except (OperationalError, ValidationError) as e:
            logger.warning(f"Could not map '{event.type}' event, emitting it unmapped: {e}")
            mapped = DeviceEvent(event.type, value)

        if mapped is not None:
            self.emit(mapped.type, mapped.value)

    def _handle_disconnect(self):
        self.detach()
        if self.is_ending_manually:
            return
        if self.countdown_warning:
            logger.warning("Session has ended due to inactivity")
        else:
            logger.warning("Session disconnected")

    def detach(self):
        """Stop reacting to the channel. Called on disconnect and when the session is replaced."""
        self.is_disconnected = True
        self.channel.off(WILDCARD, self._handle_channel_event)

    def on(self, event: str, listener: Callable[[Any], Any]) -> Callable[[], None]:
        if event == PublicEvent.NETWORK and self.config.proxy != ProxyMode.INTERCEPT:
            logger.warning(
                'Session must be configured with `proxy: "intercept"` to listen to network events.'
            )
        if event == PublicEvent.LOG and self.config.debug is not True:
            logger.warning("Session must be configured with `debug: true` to listen to log events.")
        if event == PublicEvent.ACTION and self.config.record is not True:
            logger.warning(
                "Session must be configured with `record: true` to listen to action events."
            )
        return super().on(event, listener)

    @property
    def network_inspector_url(self) -> str | None:
        if self.config.proxy != ProxyMode.INTERCEPT:
            logger.warning(
                'Session must be configured with `proxy: "intercept"` to use the network inspector'
            )
        return self._network_inspector_url

    @property
    def adb_connection(self) -> AdbConnectionInfo | None:
        if self.platform and self.platform != DevicePlatform.ANDROID:
            logger.warning("Session must be connected to an Android device to use adb")
        if not self.config.enable_adb:
            logger.warning("Session must be configured with `enableAdb: true` to use adb")
        return self._adb_connection

    # Lifecycle

    @capture_operational_error
    async def wait_until_ready(self):
        def is_ready() -> bool:
            if self.ready:
                return True
            if self.is_disconnected:
                raise DisconnectedError()
            return False

        timeout_ms = settings.SESSION_READY_TIMEOUT_MS
        await wait_for(
            is_ready,
            timeout_ms,
            timeout_message=f"Timed out after {timeout_ms / 1000:g}s waiting for session to be ready",
        )

        dependents = []
        if self.config.proxy == ProxyMode.INTERCEPT:
            dependents.append(self._soft_wait(lambda: self._network_inspector_url is not None))
        if self.config.enable_adb:
            dependents.append(self._soft_wait(lambda: self._adb_connection is not None))
        if dependents:
            await asyncio.gather(*dependents)
        logger.success(f"Session {self.path} is ready")

    async def _soft_wait(self, condition: Callable[[], bool]):
        try:
            await wait_for(
                condition,
                DEPENDENT_FIELD_TIMEOUT_MS,
                interval_ms=DEPENDENT_FIELD_POLL_INTERVAL_MS,
            )
        except OperationTimeoutError:
            logger.debug("Session is ready without all of its optional fields")

    async def end(self):
        # the channel may already be shared by a newer session
        if self.is_disconnected:
            return
        self.is_ending_manually = True
        await self.channel.disconnect()

    @capture_operational_error
    async def wait_for_event(
        self,
        event: str,
        timeout: float | None = None,
        predicate: Callable[[Any], bool] | None = None,
    ) -> Any:
        return await wait_for_event(self, event, timeout_ms=timeout, predicate=predicate)

    # Device

    @capture_operational_error
    async def rotate(self, direction: Literal["left", "right"]) -> str:
        result = await wait_for_event(
            self,
            "orientationChanged",
            trigger=self.channel.send(
                "userInteraction",
                {
                    "type": "keypress",
                    "key": "rotateLeft" if direction == "left" else "rotateRight",
                    "timeStamp": _timestamp(),
                },
            ),
        )
        await wait_for_timeout(ROTATE_SETTLE_DELAY_MS)
        return result

    @capture_operational_error
    async def screenshot(self, format: ScreenshotFormat = "bytes") -> Screenshot:
        result = await wait_for_event(
            self.channel,
            SessionEvent.SCREENSHOT,
            timeout_ms=settings.SCREENSHOT_TIMEOUT_MS,
            trigger=self.channel.send("getScreenshot", {}),
        )

        if not result.get("success"):
            raise OperationalError(result.get("error") or "Screenshot failed")

        mime_type = result.get("mimeType", "image/png")
        match format:
            case "base64":
                data = to_data_url(result["data"], mime_type)
            case "image":
                data = to_image(result["data"])
            case _:
                data = to_bytes(result["data"])
        return Screenshot(data=data, mime_type=mime_type)

    @capture_operational_error
    async def heartbeat(self):
        await self.channel.send("heartbeat")

    @capture_operational_error
    async def set_language(self, language: str):
        self.config = self.config.merged(language=language)
        await self.channel.send("setLanguage", {"language": language, "timeStamp": _timestamp()})

    @capture_operational_error
    async def set_location(self, latitude: float, longitude: float):
        if not (is_valid_number(latitude) and is_valid_number(longitude)):
            raise OperationalError("set_location requires latitude and longitude to be numbers")
        location = [latitude, longitude]
        self.config = self.config.merged(location=location)
        await self.channel.send("setLocation", {"location": location, "timeStamp": _timestamp()})

    @capture_operational_error
    async def open_url(self, url: str):
        await self.channel.send("openUrl", {"url": url, "timeStamp": _timestamp()})

    @capture_operational_error
    async def shake(self):
        await self.channel.send("shakeDevice")

    @capture_operational_error
    async def toggle_soft_keyboard(self):
        if self.platform != DevicePlatform.IOS:
            raise PlatformNotSupportedError("toggle_soft_keyboard()", self.platform)
        await self.channel.send("toggleSoftKeyboard")

    @capture_operational_error
    async def biometry(self, match: bool):
        await self.channel.send("biometryMatch" if match else "biometryNoMatch")

    @capture_operational_error
    async def allow_interactions(self, allow: bool):
        await self.channel.send("enableInteractions" if allow else "disableInteractions")

    @capture_operational_error
    async def restart_app(self):
        if self.platform == DevicePlatform.IOS:
            await wait_for_event(
                self,
                SessionEvent.APP_LAUNCH,
                timeout_ms=settings.APP_LAUNCH_TIMEOUT_MS,
                trigger=self.channel.send("restartApp"),
            )
        else:
            await self.channel.send("restartApp")
            await wait_for_timeout(RESTART_APP_DELAY_MS)

    @capture_operational_error
    async def reinstall_app(self):
        await wait_for_event(
            self,
            SessionEvent.APP_LAUNCH,
            timeout_ms=settings.APP_LAUNCH_TIMEOUT_MS,
            trigger=self.channel.send("reinstallApp"),
        )

    @capture_operational_error
    async def adb_shell_command(self, command: str):
        if self.platform != DevicePlatform.ANDROID:
            raise PlatformNotSupportedError("adb_shell_command()", self.platform)
        await self.channel.send("adbShellCommand", {"command": command, "timeStamp": _timestamp()})

    # Actions

    @capture_operational_error
    async def play_action(
        self, action: Action | dict[str, Any], *, timeout: float | None = None, **options: Any
    ) -> PlayActionResult:
        return await self.dispatcher.play_action(action, timeout=timeout, **options)

    @capture_operational_error
    async def play_actions(
        self, actions: list[Action | dict[str, Any]], *, timeout: float | None = None, **options
    ) -> list[PlayActionResult]:
        if not self.config.record:
            raise RecorderRequiredError("play_actions()")

        results = []
        for index, action in enumerate(actions):
            results.append(
                await self.dispatcher.play_action(
                    action, timeout=timeout, feature="play_actions()", **options
                )
            )
            if index == len(actions) - 1:
                break
            if _is_keypress(action) and _is_keypress(actions[index + 1]):
                continue
            try:
                await self.wait_for_animations(timeout=ANIMATION_SETTLE_TIMEOUT_MS)
            except OperationTimeoutError:
                logger.debug("Animations did not settle, playing the next action anyway")
        return results

    @capture_operational_error
    async def type(self, text: str) -> PlayActionResult:
        # typing right after a tap on an input is dropped without a pause
        await wait_for_timeout(TYPE_TEXT_PRE_DELAY_MS)
        result = await self.dispatcher.play_action(
            TypeTextAction(text=text), feature="type()"
        )
        await wait_for_timeout(TYPE_TEXT_POST_DELAY_MS)
        return result

    @capture_operational_error
    async def keypress(self, key: str, shift: bool = False):
        if key == HardwareKey.ANDROID_KEYCODE_MENU:
            await self.channel.send("androidKeycodeMenu")
            return None

        if shift or key == HardwareKey.HOME:
            action = KeypressAction(key=LEGACY_KEY_NAMES.get(key, key), shift_key=bool(shift))
        else:
            action = KeypressAction(character=key)
        return await self.dispatcher.play_action(action, feature="keypress()")

    @capture_operational_error
    async def get_ui(self, timeout: float | None = None) -> list[AppUI]:
        return await wait_for_event(
            self,
            SessionEvent.UI_DUMP,
            timeout_ms=settings.UI_DUMP_TIMEOUT_MS if timeout is None else timeout,
            trigger=self.channel.send("dumpUi"),
        )

    @capture_operational_error
    async def find_elements(
        self,
        element: Element | dict[str, Any],
        *,
        app_id: str | None = None,
        timeout: float | None = None,
        **options: Any,
    ) -> list[Element]:
        result = await self.dispatcher.play_action(
            FindElementsAction(element=element, app_id=app_id),
            timeout=timeout,
            feature="find_elements()",
            **options,
        )
        return result.matched_elements or []

    @capture_operational_error
    async def find_element(
        self,
        element: Element | dict[str, Any],
        *,
        app_id: str | None = None,
        timeout: float | None = None,
        **options: Any,
    ) -> Element | None:
        result = await self.dispatcher.play_action(
            FindElementsAction(element=element, app_id=app_id),
            timeout=timeout,
            feature="find_element()",
            **options,
        )
        return result.matched_elements[0] if result.matched_elements else None

    @capture_operational_error
    async def tap(
        self,
        *,
        element: Element | dict[str, Any] | None = None,
        position: dict[str, Any] | None = None,
        coordinates: dict[str, Any] | None = None,
        local_position: dict[str, Any] | None = None,
        duration: float | None = None,
        timeout: float | None = None,
        **options: Any,
    ) -> PlayActionResult:
        """`duration` is in milliseconds."""
        if not self.config.record:
            raise RecorderRequiredError("tap()")
        action = TapAction.model_validate(
            {
                "element": element,
                "position": position,
                "coordinates": coordinates,
                "localPosition": local_position,
                "duration": (duration or 0) / 1000,
            }
        )
        return await self.dispatcher.play_action(
            action, timeout=timeout, feature="tap()", **options
        )

    @capture_operational_error
    async def swipe(
        self,
        gesture: Gesture,
        *,
        element: Element | dict[str, Any] | None = None,
        local_position: dict[str, Any] | None = None,
        position: dict[str, Any] | None = None,
        duration: float | None = None,
        step_duration: float | None = None,
        timeout: float | None = None,
        **options: Any,
    ) -> PlayActionResult:
        if not self.config.record:
            raise RecorderRequiredError("swipe()")

        builder = SwipeGesture(duration=duration, step_duration=step_duration)
        if callable(gesture):
            gesture(builder)
        elif gesture in ("up", "down", "left", "right"):
            getattr(builder, gesture)()
        else:
            raise OperationalError(f"Unknown gesture: {gesture}")

        if element is not None:
            target = {"element": element, "localPosition": local_position}
        elif position is not None:
            target = {"position": position}
        else:
            raise OperationalError("Either element or position must be specified")

        action = SwipeAction.model_validate({**target, "moves": builder.build()})
        return await self.dispatcher.play_action(
            action, timeout=timeout, feature="swipe()", **options
        )

    @capture_operational_error
    async def wait_for_animations(
        self,
        image_threshold: float = DEFAULT_IMAGE_THRESHOLD,
        timeout: float = 10_000,
        image_threshold_duration: float = DEFAULT_IMAGE_THRESHOLD_DURATION_MS,
    ):
        """
        Wait until the screen stops changing.

        Resolves once the per-frame pixel change percentage has stayed at or
        below `image_threshold` for `image_threshold_duration` ms, measured on
        the remote's frame timestamps.
        """
        settled: asyncio.Future = asyncio.get_running_loop().create_future()
        lowest = 1.0
        under_threshold_since: float | None = None

        def on_pixels_changed(value: dict[str, Any]):
            nonlocal lowest, under_threshold_since
            percentage = value["percentage"]
            timestamp = value["timestamp"]
            lowest = min(lowest, percentage)
            if percentage > image_threshold:
                under_threshold_since = None
                return
            if under_threshold_since is None:
                under_threshold_since = timestamp
            if timestamp - under_threshold_since >= image_threshold_duration and not settled.done():
                settled.set_result(None)

        def on_disconnect(_value):
            if not settled.done():
                settled.set_exception(DisconnectedError())

        self.channel.on(SessionEvent.PIXELS_CHANGED, on_pixels_changed)
        self.on(SessionEvent.DISCONNECT, on_disconnect)
        self._pixel_change_waiters += 1
        try:
            if self.is_disconnected:
                raise DisconnectedError()
            if self._pixel_change_waiters == 1:
                await self.channel.send("enablePixelChangeDetection")
            await asyncio.wait_for(settled, timeout / 1000)
        except TimeoutError:
            message = f"Timed out after {timeout}ms waiting for animation to end."
            if image_threshold < lowest:
                message += (
                    f" Waited for imageThreshold of {image_threshold} "
                    f"but lowest was {round(lowest, 4)}"
                )
            raise OperationTimeoutError(message) from None
        finally:
            self.channel.off(SessionEvent.PIXELS_CHANGED, on_pixels_changed)
            self.off(SessionEvent.DISCONNECT, on_disconnect)
            self._pixel_change_waiters -= 1
            if self._pixel_change_waiters == 0 and not self.is_disconnected:
                await self.channel.send("disablePixelChangeDetection")


def _is_keypress(action: Action | dict[str, Any]) -> bool:
    kind = action.get("type") if isinstance(action, dict) else getattr(action, "type", None)
    return kind == ActionType.KEYPRESS
