import asyncio
import math
import uuid
from collections.abc import Callable
from typing import Any

from devicecast.control.config import settings
from devicecast.control.constants import MAX_ATTEMPT_TIMEOUT_MS, RESPONSE_SLACK_MS
from devicecast.control.controllers.events import SessionEvent
from devicecast.control.controllers.mapper import InternalApiMapper, is_valid_number
from devicecast.control.controllers.types import Action, PlayActionErrorResponse, PlayActionResult
from devicecast.control.controllers.validation import validate_action_element
from devicecast.control.sdk.types.channel import Channel
from devicecast.control.sdk.types.exceptions import (
    ActionAmbiguousElementError,
    ActionElementNotFoundError,
    ActionError,
    ActionInternalError,
    ActionInvalidArgumentError,
    ActionTimeoutError,
    DisconnectedError,
    OperationalError,
    RecorderRequiredError,
)
from devicecast.control.utils.decorators import wrap_with_callbacks
from devicecast.control.utils.events import EventEmitter
from devicecast.control.utils.logger import get_logger

logger = get_logger(__name__)

# Failures that another attempt cannot fix.
TERMINAL_ERRORS = (
    ActionTimeoutError,
    ActionInternalError,
    ActionInvalidArgumentError,
    DisconnectedError,
)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def classify_play_action_error(response: PlayActionErrorResponse) -> ActionError:
    playback = response.playback.model_dump(by_alias=True, exclude_none=True, mode="json")
    matched = [element.to_payload() for element in response.matched_elements or []]
    match response.error_id:
        case "internalError":
            return ActionInternalError(playback)
        case "notFound":
            return ActionElementNotFoundError(playback)
        case "ambiguousMatch":
            return ActionAmbiguousElementError(playback, matched)
        case "invalidArgument":
            return ActionInvalidArgumentError(response.message or "Invalid argument", playback)
    return ActionError(
        response.message or "Action failed",
        error_id=response.error_id,
        playback=playback,
        matched_elements=matched,
    )


def _playback_id(value: Any) -> str | None:
    playback = value.get("playback") if isinstance(value, dict) else getattr(value, "playback", None)
    if isinstance(playback, dict):
        return playback.get("id")
    return getattr(playback, "id", None)


class ActionDispatcher:
    """
    Plays actions on the remote executor.

    The executor honours at most `MAX_ATTEMPT_TIMEOUT_MS` per request, so a
    longer timeout is spent over several attempts. Each attempt is a new
    request with its own id; responses are matched on `playback.id` from the
    session's mapped `playbackFoundAndSent` / `playbackError` events.
    """

    def __init__(
        self,
        channel: Channel,
        events: EventEmitter,
        get_mapper: Callable[[], InternalApiMapper],
        is_recording: Callable[[], bool],
    ):
        self.channel = channel
        self.events = events
        self.get_mapper = get_mapper
        self.is_recording = is_recording

    @wrap_with_callbacks(
        on_failure=lambda e: logger.debug(f"Action failed: {e.__class__.__name__}"),
    )
    async def play_action(
        self,
        action: Action | dict[str, Any],
        *,
        timeout: float | None = None,
        feature: str = "play_action()",
        no_map: bool = False,
        **options: Any,
    ) -> PlayActionResult:
        if not self.is_recording():
            raise RecorderRequiredError(feature)

        timeout = settings.PLAY_ACTION_TIMEOUT_MS if timeout is None else timeout
        if not is_valid_number(timeout):
            raise OperationalError(f"Invalid timeout value: {timeout}")
        if timeout < 0:
            raise OperationalError(f"Timeout value cannot be negative: {timeout}")

        validate_action_element(action)
        wire_action = action if no_map else self.get_mapper().map_action(action)

        remaining = timeout
        attempt = 0
        while True:
            attempt += 1
            attempt_timeout = min(remaining, MAX_ATTEMPT_TIMEOUT_MS)
            try:
                return await self._attempt(action, wire_action, attempt_timeout, options)
            except TERMINAL_ERRORS:
                raise
            except ActionError as e:
                remaining = max(0, remaining - MAX_ATTEMPT_TIMEOUT_MS)
                if remaining <= 0:
                    raise
                logger.debug(
                    f"Attempt {attempt} failed with '{e.error_id}', retrying ({remaining}ms left)"
                )

    async def _attempt(
        self,
        action: Action | dict[str, Any],
        wire_action: Any,
        attempt_timeout: float,
        options: dict[str, Any],
    ) -> PlayActionResult:
        request_id = str(uuid.uuid4())
        payload = {
            "id": request_id,
            "action": wire_action,
            "options": {**options, "timeout": round_half_up(attempt_timeout / 1000)},
        }
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_success(result):
            if _playback_id(result) != request_id or future.done():
                return
            future.set_result(result)

        def on_error(response):
            if _playback_id(response) != request_id or future.done():
                return
            future.set_exception(classify_play_action_error(response))

        def on_disconnect(_value):
            if not future.done():
                future.set_exception(DisconnectedError())

        self.events.on(SessionEvent.PLAYBACK_FOUND_AND_SENT, on_success)
        self.events.on(SessionEvent.PLAYBACK_ERROR, on_error)
        self.events.on(SessionEvent.DISCONNECT, on_disconnect)
        try:
            await self.channel.send("playAction", payload)
            return await asyncio.wait_for(future, (attempt_timeout + RESPONSE_SLACK_MS) / 1000)
        except TimeoutError:
            action_payload = action if isinstance(action, dict) else action.to_payload()
            raise ActionTimeoutError(
                {"id": request_id, "action": action_payload, "timeout": payload["options"]["timeout"]}
            ) from None
        finally:
            self.events.off(SessionEvent.PLAYBACK_FOUND_AND_SENT, on_success)
            self.events.off(SessionEvent.PLAYBACK_ERROR, on_error)
            self.events.off(SessionEvent.DISCONNECT, on_disconnect)
