from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from devicecast.control.context import DeviceInfo, SessionConfig, SessionInfo
from devicecast.control.sdk import session as session_module
from devicecast.control.sdk.session import Session
from devicecast.control.utils.events import EventEmitter

IPHONE_SCREEN = {"width": 390, "height": 844}
PIXEL_SCREEN = {"width": 412, "height": 915, "devicePixelRatio": 2.625}


class FakeChannel(EventEmitter):
    """In-memory channel: records sends and lets tests script replies."""

    def __init__(self):
        super().__init__()
        self.sent: list[tuple[str, Any]] = []
        self.requests: list[tuple[str, Any]] = []
        self.responders: dict[str, Callable[[Any], Any]] = {}
        self.replies: dict[str, Any] = {}
        self.disconnect_calls = 0

    async def send(self, event: str, payload: Any = None) -> None:
        self.sent.append((event, payload))
        responder = self.responders.get(event)
        if responder is not None:
            responder(payload)

    async def request(self, event: str, payload: Any = None) -> Any:
        self.requests.append((event, payload))
        reply = self.replies.get(event)
        return reply(payload) if callable(reply) else reply

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.emit("disconnect")

    async def wait_until_ready(self) -> None:
        return None

    def receive(self, event: str, value: Any = None):
        self.emit(event, value)

    def sent_names(self) -> list[str]:
        return [name for name, _ in self.sent]

    def payloads(self, event: str) -> list[Any]:
        return [payload for name, payload in self.sent if name == event]


def make_device(screen: dict | None = None) -> DeviceInfo:
    return DeviceInfo.model_validate(
        {"type": "iphone14", "name": "iPhone 14", "osVersion": "17.0", "screen": screen or IPHONE_SCREEN}
    )


def make_session(
    channel: FakeChannel,
    platform: str = "ios",
    screen: dict | None = None,
    **config: Any,
) -> Session:
    return Session(
        channel=channel,
        config=SessionConfig.model_validate({"platform": platform, "record": True, **config}),
        info=SessionInfo(path="/session/abc", token="token"),
        device=make_device(screen),
    )


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def session(channel: FakeChannel) -> Session:
    s = make_session(channel)
    channel.receive("ready")
    return s


@pytest.fixture
def android_session(channel: FakeChannel) -> Session:
    s = make_session(channel, platform="android", screen=PIXEL_SCREEN)
    channel.receive("ready")
    return s


@pytest.fixture(autouse=True)
def no_fixed_delays(monkeypatch):
    for name in (
        "TYPE_TEXT_PRE_DELAY_MS",
        "TYPE_TEXT_POST_DELAY_MS",
        "ROTATE_SETTLE_DELAY_MS",
        "RESTART_APP_DELAY_MS",
    ):
        monkeypatch.setattr(session_module, name, 0)
    monkeypatch.setattr(session_module, "DEPENDENT_FIELD_TIMEOUT_MS", 50)


def reply_with_error(channel: FakeChannel, error_id: str, message: str | None = None, matched=None):
    def responder(payload):
        channel.receive(
            "playbackError",
            {
                "errorId": error_id,
                "message": message,
                "matchedElements": matched,
                "playback": {"id": payload["id"], "action": payload["action"]},
            },
        )

    channel.responders["playAction"] = responder


def reply_with_success(channel: FakeChannel, matched=None):
    def responder(payload):
        channel.receive(
            "playbackFoundAndSent",
            {
                "playback": {"id": payload["id"], "action": payload["action"]},
                "matchedElements": matched or [],
            },
        )

    channel.responders["playAction"] = responder
