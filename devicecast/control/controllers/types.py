"""
Public action and element shapes, as callers build them and as recorded
actions and playback results are reported back.

Values are in device-independent units: positions are normalized `[0, 1]`
(or `"NN%"` strings), coordinates are points, booleans are booleans.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PositionValue = float | str


class ActionType(StrEnum):
    TAP = "tap"
    SWIPE = "swipe"
    KEYPRESS = "keypress"
    FIND_ELEMENTS = "findElements"
    TYPE_TEXT = "typeText"


class HardwareKey(StrEnum):
    HOME = "HOME"
    VOLUME_UP = "VOLUME_UP"
    VOLUME_DOWN = "VOLUME_DOWN"
    ANDROID_KEYCODE_MENU = "ANDROID_KEYCODE_MENU"


class ApiModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Position(BaseModel):
    """
    0%,0%        # top-left corner
    100%,100%    # bottom-right corner
    50%,50%      # center
    """

    model_config = ConfigDict(extra="forbid")

    x: PositionValue
    y: PositionValue


class Coordinates(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: float
    y: float


class ElementBounds(BaseModel):
    x: float
    y: float
    width: float
    height: float


class Element(ApiModel):
    """An element, or a selector for one. Unknown keys (e.g. `matchIndex`) are kept."""

    attributes: dict[str, Any] | None = None
    bounds: ElementBounds | None = None
    accessibility_elements: list[dict[str, Any]] | None = Field(
        default=None, alias="accessibilityElements"
    )
    children: list["Element"] | None = None


class SwipeMove(BaseModel):
    x: PositionValue
    y: PositionValue
    t: float = 0


class TargetedAction(ApiModel):
    element: Element | None = None
    position: Position | None = None
    coordinates: Coordinates | None = None
    local_position: Position | None = Field(default=None, alias="localPosition")
    duration: float | None = None

    def targeting_modes(self) -> list[str]:
        return [
            name
            for name in ("element", "position", "coordinates")
            if getattr(self, name) is not None
        ]


class TapAction(TargetedAction):
    type: Literal["tap"] = "tap"


class SwipeAction(TargetedAction):
    type: Literal["swipe"] = "swipe"
    moves: list[SwipeMove] = []


class KeypressAction(ApiModel):
    type: Literal["keypress"] = "keypress"
    key: str | None = None
    character: str | None = None
    shift_key: bool | None = Field(default=None, alias="shiftKey")


class FindElementsAction(ApiModel):
    type: Literal["findElements"] = "findElements"
    element: Element
    app_id: str | None = Field(default=None, alias="appId")


class TypeTextAction(ApiModel):
    type: Literal["typeText"] = "typeText"
    text: str


Action = Annotated[
    TapAction | SwipeAction | KeypressAction | FindElementsAction | TypeTextAction,
    Field(discriminator="type"),
]


class Playback(ApiModel):
    id: str | None = None
    action: Any = None


class PlayActionResult(ApiModel):
    playback: Playback = Playback()
    matched_elements: list[Element] | None = Field(default=None, alias="matchedElements")


class PlayActionErrorResponse(PlayActionResult):
    error_id: str | None = Field(default=None, alias="errorId")
    message: str | None = None


class AppUI(BaseModel):
    type: Literal["app"] = "app"
    app_id: str | None = Field(default=None, alias="appId")
    children: list[Element] = []

    model_config = ConfigDict(populate_by_name=True)
