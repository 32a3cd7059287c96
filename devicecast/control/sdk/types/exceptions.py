"""
Exceptions raised by the devicecast control SDK.

Every expected failure derives from `OperationalError`. Anything else that
escapes the SDK is a bug.
"""

import json
from typing import Any

MAX_AMBIGUOUS_ELEMENTS_SHOWN = 5


class OperationalError(Exception):
    """Base exception for expected, user-facing failures."""

    is_operational = True

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class OperationTimeoutError(OperationalError):
    """A wait on a remote event or condition ran out of time."""


class DisconnectedError(OperationalError):
    def __init__(self, message: str = "Session disconnected"):
        super().__init__(message)


class SessionStartError(OperationalError):
    """The remote side refused or failed to grant a session."""


class ClientNotReadyError(OperationalError):
    def __init__(self, reason: str):
        super().__init__(f"Failed to start session. {reason}")


class PlatformNotSupportedError(OperationalError):
    def __init__(self, operation: str, platform: str | None):
        super().__init__(f"{operation} is not supported on platform '{platform}'")


class RecorderRequiredError(OperationalError):
    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(
            f"App Recorder must be enabled to use {feature}. "
            'Please set "record" to true in the config.'
        )


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def format_ambiguous_elements(elements: list[dict[str, Any]]) -> str:
    shown = elements[:MAX_AMBIGUOUS_ELEMENTS_SHOWN]
    text = "\n\n".join(f"// {index}\n{_to_json(element)}" for index, element in enumerate(shown))
    hidden = len(elements) - len(shown)
    if hidden > 0:
        text += f"\n\n...and {hidden} more"
    return text


class ActionError(OperationalError):
    """The remote executor reported a failure for a played action."""

    def __init__(
        self,
        message: str,
        *,
        error_id: str | None = None,
        playback: dict[str, Any] | None = None,
        matched_elements: list[dict[str, Any]] | None = None,
    ):
        self.error_id = error_id
        self.playback = playback or {}
        self.matched_elements = matched_elements or []
        super().__init__(message)

    @property
    def action(self) -> dict[str, Any]:
        return self.playback.get("action") or {}


class ActionElementNotFoundError(ActionError):
    def __init__(self, playback: dict[str, Any] | None = None, **kwargs):
        element = ((playback or {}).get("action") or {}).get("element")
        super().__init__(
            f"No element found for selector\n{_to_json(element)}",
            error_id="notFound",
            playback=playback,
            **kwargs,
        )


class ActionAmbiguousElementError(ActionError):
    def __init__(
        self,
        playback: dict[str, Any] | None = None,
        matched_elements: list[dict[str, Any]] | None = None,
    ):
        matched_elements = matched_elements or []
        super().__init__(
            f"Action requires 1 unique element but the selector returned "
            f"{len(matched_elements)}. Provide a `matchIndex` to pick an element below "
            f"or add additional attributes to your selector.\n\n"
            f"{format_ambiguous_elements(matched_elements)}",
            error_id="ambiguousMatch",
            playback=playback,
            matched_elements=matched_elements,
        )


class ActionInvalidArgumentError(ActionError):
    def __init__(self, message: str, playback: dict[str, Any] | None = None):
        if "outside the screen bounds" in message:
            local_position = ((playback or {}).get("action") or {}).get("localPosition")
            if local_position:
                message = (
                    f"localPosition ({local_position.get('x')}, {local_position.get('y')}) "
                    "for the element evaluates to a coordinate outside of screen bounds."
                )
            else:
                message = "Element is outside of screen bounds."
        super().__init__(message, error_id="invalidArgument", playback=playback)


class ActionInternalError(ActionError):
    def __init__(self, playback: dict[str, Any] | None = None):
        super().__init__(
            f"An internal error has occurred for the action:\n"
            f"{_to_json((playback or {}).get('action'))}",
            error_id="internalError",
            playback=playback,
        )


class ActionTimeoutError(OperationTimeoutError):
    def __init__(
        self,
        playback: dict[str, Any] | None = None,
        message: str = "Timed out waiting for response from device",
    ):
        self.playback = playback or {}
        super().__init__(message)
