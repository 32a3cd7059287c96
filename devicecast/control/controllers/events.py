"""
Translation of wire event names into the public event stream.

Both tables are closed: every known wire event maps to exactly one public
event, `None` marks a suppressed event, and names missing from the table are
passed through untouched.
"""

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from devicecast.control.controllers.mapper import PublicApiMapper
from devicecast.control.utils.events import DeviceEvent


class SessionEvent(StrEnum):
    READY = "ready"
    DEVICE_INFO = "deviceInfo"
    ADB_OVER_TCP = "adbOverTcp"
    NETWORK_INSPECTOR_URL = "networkInspectorUrl"
    COUNTDOWN_WARNING = "countdownWarning"
    TIMEOUT_RESET = "timeoutReset"
    DISCONNECT = "disconnect"

    DEBUG = "debug"
    INTERCEPT_REQUEST = "interceptRequest"
    INTERCEPT_RESPONSE = "interceptResponse"
    INTERCEPT_ERROR = "interceptError"
    USER_ERROR = "userError"
    RECORDED_ACTION = "recordedAction"
    PLAYBACK_FOUND_AND_SENT = "playbackFoundAndSent"
    PLAYBACK_ERROR = "playbackError"
    UI_DUMP = "uiDump"
    USER_INTERACTION_RECEIVED = "userInteractionReceived"
    H264_DATA = "h264Data"
    FRAME_DATA = "frameData"
    AUDIO_DATA = "audioData"
    DELETE_EVENT = "deleteEvent"

    PIXELS_CHANGED = "pixelsChanged"
    SCREENSHOT = "screenshot"
    APP_LAUNCH = "appLaunch"
    ORIENTATION_CHANGED = "orientationChanged"


class PublicEvent(StrEnum):
    LOG = "log"
    NETWORK = "network"
    ERROR = "error"
    ACTION = "action"
    INTERACTION = "interaction"
    INACTIVITY_WARNING = "inactivityWarning"
    VIDEO = "video"
    AUDIO = "audio"
    QUEUE = "queue"
    QUEUE_END = "queueEnd"
    SESSION = "session"
    SESSION_ERROR = "sessionError"


class ClientEvent(StrEnum):
    READY = "ready"
    QUEUE = "queue"
    CONCURRENT_QUEUE = "concurrentQueue"
    USER_ERROR = "userError"
    NEW_SESSION = "newSession"
    REINIT = "reinit"
    APP = "app"
    DEVICE_INFO = "deviceInfo"
    CONFIG = "config"


EventMapping = Callable[[PublicApiMapper, Any], DeviceEvent | None]


def _rename(public: str) -> EventMapping:
    return lambda _mapper, data: DeviceEvent(public, data)


def _network(kind: str) -> EventMapping:
    return lambda _mapper, data: DeviceEvent(PublicEvent.NETWORK, {"type": kind, **(data or {})})


def _media(public: str, codec: str) -> EventMapping:
    return lambda _mapper, data: DeviceEvent(public, {**(data or {}), "codec": codec})


def _playback(error: bool) -> EventMapping:
    def mapping(mapper: PublicApiMapper, data: Any) -> DeviceEvent:
        name = SessionEvent.PLAYBACK_ERROR if error else SessionEvent.PLAYBACK_FOUND_AND_SENT
        return DeviceEvent(name, mapper.map_play_action_result(data, error=error))

    return mapping


SESSION_EVENT_MAPPINGS: dict[str, EventMapping | None] = {
    SessionEvent.DEBUG: _rename(PublicEvent.LOG),
    SessionEvent.INTERCEPT_REQUEST: _network("request"),
    SessionEvent.INTERCEPT_RESPONSE: _network("response"),
    SessionEvent.INTERCEPT_ERROR: _network("error"),
    SessionEvent.USER_ERROR: _rename(PublicEvent.ERROR),
    SessionEvent.RECORDED_ACTION: lambda mapper, data: DeviceEvent(
        PublicEvent.ACTION, mapper.map_action(data)
    ),
    SessionEvent.PLAYBACK_FOUND_AND_SENT: _playback(error=False),
    SessionEvent.PLAYBACK_ERROR: _playback(error=True),
    SessionEvent.UI_DUMP: lambda mapper, data: DeviceEvent(
        SessionEvent.UI_DUMP, mapper.map_ui(data)
    ),
    SessionEvent.USER_INTERACTION_RECEIVED: _rename(PublicEvent.INTERACTION),
    SessionEvent.COUNTDOWN_WARNING: _rename(PublicEvent.INACTIVITY_WARNING),
    SessionEvent.H264_DATA: _media(PublicEvent.VIDEO, "h264"),
    SessionEvent.FRAME_DATA: _media(PublicEvent.VIDEO, "jpeg"),
    SessionEvent.AUDIO_DATA: _media(PublicEvent.AUDIO, "aac"),
    SessionEvent.DELETE_EVENT: None,
}


def map_session_event(mapper: PublicApiMapper, event: str, data: Any) -> DeviceEvent | None:
    """Returns `None` for suppressed events."""
    if event not in SESSION_EVENT_MAPPINGS:
        return DeviceEvent(event, data)
    mapping = SESSION_EVENT_MAPPINGS[event]
    if mapping is None:
        return None
    return mapping(mapper, data)


def map_client_event(event: str, data: Any) -> DeviceEvent | None:
    match event:
        case ClientEvent.CONCURRENT_QUEUE:
            return DeviceEvent(
                PublicEvent.QUEUE,
                {"type": "concurrent", "name": data.get("name"), "position": data.get("position")},
            )
        case ClientEvent.QUEUE:
            return DeviceEvent(PublicEvent.QUEUE, {"type": "session", "position": data.get("position")})
        case ClientEvent.USER_ERROR:
            return DeviceEvent(PublicEvent.ERROR, data)
        case ClientEvent.NEW_SESSION:
            return None
    return DeviceEvent(event, data)
