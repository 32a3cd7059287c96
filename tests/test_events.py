from __future__ import annotations

import asyncio

import pytest

from devicecast.control.context import DevicePlatform, ScreenBounds
from devicecast.control.controllers.events import map_client_event, map_session_event
from devicecast.control.controllers.mapper import PublicApiMapper
from devicecast.control.sdk.types.exceptions import OperationTimeoutError
from devicecast.control.utils.decorators import wrap_with_callbacks
from devicecast.control.utils.events import DeviceEvent, EventEmitter
from devicecast.control.utils.waiting import wait_for, wait_for_event

MAPPER = PublicApiMapper(DevicePlatform.IOS, ScreenBounds(width=390, height=844))


# ---------------------------------------------------------------------------
# EventEmitter
# ---------------------------------------------------------------------------


class TestEventEmitter:
    def test_wildcard_receives_every_event(self):
        emitter = EventEmitter()
        named, everything = [], []
        emitter.on("ping", named.append)
        emitter.on("*", everything.append)

        emitter.emit("ping", 1)
        emitter.emit("pong")

        assert named == [1]
        assert everything == [DeviceEvent("ping", 1), DeviceEvent("pong", None)]

    def test_once_and_off(self):
        emitter = EventEmitter()
        seen = []
        emitter.once("ping", seen.append)
        unsubscribe = emitter.on("ping", lambda v: seen.append(v * 10))

        emitter.emit("ping", 1)
        unsubscribe()
        emitter.emit("ping", 2)

        assert seen == [1, 10]
        assert emitter.listener_count("ping") == 0

    def test_off_once_listener_by_original(self):
        emitter = EventEmitter()
        seen = []
        emitter.once("ping", seen.append)
        emitter.off("ping", seen.append)

        emitter.emit("ping", 1)

        assert seen == []

    def test_failing_listener_does_not_stop_others(self):
        emitter = EventEmitter()
        seen = []

        def broken(_):
            raise RuntimeError("boom")

        emitter.on("ping", broken)
        emitter.on("ping", seen.append)
        emitter.emit("ping", 1)

        assert seen == [1]

    async def test_async_listener_is_scheduled(self):
        emitter = EventEmitter()
        done = asyncio.Event()

        async def listener(_):
            done.set()

        emitter.on("ping", listener)
        emitter.emit("ping")

        await asyncio.wait_for(done.wait(), 1)


# ---------------------------------------------------------------------------
# waiting helpers
# ---------------------------------------------------------------------------


class TestWaiting:
    async def test_wait_for_returns_truthy_value(self):
        values = iter([None, 0, "ok"])
        assert await wait_for(lambda: next(values), 1_000, interval_ms=1) == "ok"

    async def test_wait_for_timeout_message(self):
        with pytest.raises(OperationTimeoutError, match="never"):
            await wait_for(lambda: False, 20, interval_ms=5, timeout_message="never")

    async def test_wait_for_event_subscribes_immediately(self):
        emitter = EventEmitter()
        pending = wait_for_event(emitter, "ping", timeout_ms=1_000)
        emitter.emit("ping", "fast")

        assert await pending == "fast"
        assert emitter.listener_count("ping") == 0

    async def test_wait_for_event_awaits_trigger(self):
        emitter = EventEmitter()

        async def send():
            emitter.emit("pong", "reply")

        assert await wait_for_event(emitter, "pong", timeout_ms=1_000, trigger=send()) == "reply"
        assert emitter.listener_count("pong") == 0

    async def test_failed_trigger_unsubscribes(self):
        emitter = EventEmitter()

        async def send():
            raise ConnectionError("socket closed")

        with pytest.raises(ConnectionError):
            await wait_for_event(emitter, "pong", timeout_ms=1_000, trigger=send())
        assert emitter.listener_count("pong") == 0


# ---------------------------------------------------------------------------
# decorators
# ---------------------------------------------------------------------------


class TestWrapWithCallbacks:
    async def test_failure_is_reported_and_reraised(self):
        failures = []

        @wrap_with_callbacks(on_failure=failures.append)
        async def fail():
            raise ValueError("nope")

        with pytest.raises(ValueError, match="nope"):
            await fail()
        assert [type(e) for e in failures] == [ValueError]

    async def test_success_passes_result_through(self):
        failures = []

        @wrap_with_callbacks(on_failure=failures.append)
        async def ok():
            return 42

        assert await ok() == 42
        assert failures == []


# ---------------------------------------------------------------------------
# event tables
# ---------------------------------------------------------------------------


class TestEventTables:
    @pytest.mark.parametrize(
        "wire, data, public, value",
        [
            ("debug", "x", "log", "x"),
            ("interceptResponse", {"status": 200}, "network", {"type": "response", "status": 200}),
            ("interceptError", None, "network", {"type": "error"}),
            ("userInteractionReceived", {"a": 1}, "interaction", {"a": 1}),
            ("frameData", {"b": 1}, "video", {"b": 1, "codec": "jpeg"}),
            ("audioData", {}, "audio", {"codec": "aac"}),
            ("appLaunch", {}, "appLaunch", {}),
        ],
    )
    def test_session_events(self, wire, data, public, value):
        assert map_session_event(MAPPER, wire, data) == DeviceEvent(public, value)

    def test_suppressed_session_event(self):
        assert map_session_event(MAPPER, "deleteEvent", {}) is None

    def test_recorded_action_is_mapped(self):
        event = map_session_event(MAPPER, "recordedAction", {"type": "keypress", "key": "home", "shiftKey": 0})
        assert event.type == "action"
        assert event.value.key == "HOME"

    def test_client_events(self):
        assert map_client_event("userError", {"message": "x"}) == DeviceEvent("error", {"message": "x"})
        assert map_client_event("newSession", {"path": "/"}) is None
        assert map_client_event("app", {"name": "Demo"}) == DeviceEvent("app", {"name": "Demo"})
