"""
Shapes exchanged with the remote executor: pixel units, numeric shift keys
on iOS, string booleans on iOS and `"inf"`/`"-inf"` for unbounded frames.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from devicecast.control.controllers.types import ActionType

ObjCNumber = float | str


class WireModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WirePosition(BaseModel):
    x: float
    y: float


class WireCoordinates(BaseModel):
    x: float
    y: float


class WireElementBounds(BaseModel):
    x: ObjCNumber
    y: ObjCNumber
    width: ObjCNumber
    height: ObjCNumber


class WireElement(WireModel):
    attributes: dict[str, Any] | None = None
    bounds: WireElementBounds | None = None
    accessibility_elements: list[dict[str, Any]] | None = Field(
        default=None, alias="accessibilityElements"
    )
    children: list["WireElement"] | None = None


class WireSwipeMove(WireModel):
    x: float
    y: float
    t: float = 0


class WireTargetedAction(WireModel):
    element: WireElement | None = None
    coordinates: WireCoordinates | None = None
    local_position: WirePosition | None = Field(default=None, alias="localPosition")
    duration: float | None = None


class WireTapAction(WireTargetedAction):
    type: Literal["tap"] = "tap"


class WireSwipeAction(WireTargetedAction):
    type: Literal["swipe"] = "swipe"
    moves: list[WireSwipeMove] = []


class WireKeypressAction(WireModel):
    type: Literal["keypress"] = "keypress"
    key: str | None = None
    character: str | None = None
    shift_key: int | bool | None = Field(default=None, alias="shiftKey")


class WireFindElementsAction(WireModel):
    type: Literal["findElements"] = "findElements"
    element: WireElement
    app_id: str | None = Field(default=None, alias="appId")


class WireTypeTextAction(WireModel):
    type: Literal["typeText"] = "typeText"
    text: str


WIRE_ACTION_MODELS: dict[str, type[WireModel]] = {
    ActionType.TAP: WireTapAction,
    ActionType.SWIPE: WireSwipeAction,
    ActionType.KEYPRESS: WireKeypressAction,
    ActionType.FIND_ELEMENTS: WireFindElementsAction,
    ActionType.TYPE_TEXT: WireTypeTextAction,
}
