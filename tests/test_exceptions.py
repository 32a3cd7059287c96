from __future__ import annotations

from devicecast.control.controllers.types import PlayActionErrorResponse
from devicecast.control.sdk.dispatcher import classify_play_action_error
from devicecast.control.sdk.types.exceptions import (
    ActionAmbiguousElementError,
    ActionElementNotFoundError,
    ActionError,
    ActionInternalError,
    ActionInvalidArgumentError,
    ClientNotReadyError,
    OperationalError,
    PlatformNotSupportedError,
    format_ambiguous_elements,
)


def response(error_id, **kwargs) -> PlayActionErrorResponse:
    return PlayActionErrorResponse.model_validate(
        {"errorId": error_id, "playback": {"id": "1", "action": {"type": "tap"}}, **kwargs}
    )


class TestClassification:
    def test_known_error_ids(self):
        assert isinstance(classify_play_action_error(response("internalError")), ActionInternalError)
        assert isinstance(classify_play_action_error(response("notFound")), ActionElementNotFoundError)
        assert isinstance(classify_play_action_error(response("ambiguousMatch")), ActionAmbiguousElementError)
        assert isinstance(
            classify_play_action_error(response("invalidArgument", message="bad")), ActionInvalidArgumentError
        )

    def test_unknown_error_id_keeps_remote_message(self):
        error = classify_play_action_error(response("quotaExceeded", message="Slow down"))
        assert type(error) is ActionError
        assert error.message == "Slow down"
        assert error.action == {"type": "tap"}


class TestMessages:
    def test_everything_is_operational(self):
        for error in (
            ActionInternalError(),
            ClientNotReadyError("reason"),
            PlatformNotSupportedError("shake()", "android"),
        ):
            assert isinstance(error, OperationalError)
            assert error.is_operational is True

    def test_element_outside_screen_without_local_position(self):
        error = ActionInvalidArgumentError("Element is outside the screen bounds", {"action": {"type": "tap"}})
        assert error.message == "Element is outside of screen bounds."

    def test_other_invalid_argument_messages_pass_through(self):
        assert ActionInvalidArgumentError("Text too long").message == "Text too long"

    def test_format_ambiguous_elements(self):
        text = format_ambiguous_elements([{"n": i} for i in range(3)])
        assert text.startswith("// 0\n{")
        assert "...and" not in text

    def test_platform_not_supported(self):
        assert str(PlatformNotSupportedError("shake()", "android")) == (
            "shake() is not supported on platform 'android'"
        )
