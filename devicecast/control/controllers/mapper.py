"""
Conversion between the public action/element shapes and the remote executor's
wire shapes.

`InternalApiMapper` goes public -> wire (outbound actions), `PublicApiMapper`
goes wire -> public (recorded actions, playback results, UI dumps). Platform
differences live in the `PlatformUnits` strategies.
"""

import math
from typing import Any

from pydantic import TypeAdapter, ValidationError

from devicecast.control.constants import SPRINGBOARD_APP_ID
from devicecast.control.context import AppInfo, DevicePlatform, ScreenBounds
from devicecast.control.controllers.types import (
    Action,
    AppUI,
    Coordinates,
    Element,
    ElementBounds,
    FindElementsAction,
    HardwareKey,
    KeypressAction,
    Playback,
    PlayActionErrorResponse,
    PlayActionResult,
    Position,
    PositionValue,
    SwipeAction,
    SwipeMove,
    TapAction,
    TargetedAction,
    TypeTextAction,
)
from devicecast.control.controllers.wire_types import (
    WIRE_ACTION_MODELS,
    ObjCNumber,
    WireCoordinates,
    WireElement,
    WireElementBounds,
    WireFindElementsAction,
    WireKeypressAction,
    WireModel,
    WirePosition,
    WireSwipeAction,
    WireSwipeMove,
    WireTapAction,
    WireTargetedAction,
    WireTypeTextAction,
)
from devicecast.control.sdk.types.exceptions import OperationalError

IOS_BOOLEAN_ATTRIBUTES = ("userInteractionEnabled", "isHidden")

HARDWARE_KEYS_TO_WIRE = {
    HardwareKey.HOME: "home",
    HardwareKey.VOLUME_UP: "volumeUp",
    HardwareKey.VOLUME_DOWN: "volumeDown",
}
HARDWARE_KEYS_FROM_WIRE = {wire: key.value for key, wire in HARDWARE_KEYS_TO_WIRE.items()}

_action_adapter = TypeAdapter(Action)


def clean_object(value: Any) -> Any:
    """Recursively drop `None` values from dicts and lists."""
    if isinstance(value, dict):
        return {k: clean_object(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [clean_object(v) for v in value if v is not None]
    return value


def is_valid_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return not math.isnan(value)


def parse_position_value(value: PositionValue) -> float:
    """`"50%"` -> 0.5; numbers are returned as-is."""
    if isinstance(value, str):
        if not value.endswith("%"):
            raise OperationalError(
                f"Invalid position value: {value}. "
                "Must be a number between 0 and 1, or a string ending with %"
            )
        try:
            return float(value[:-1]) / 100
        except ValueError:
            return math.nan
    return value


def parse_objc_number(value: ObjCNumber) -> float:
    if isinstance(value, int | float):
        return value
    if value == "inf":
        return math.inf
    if value == "-inf":
        return -math.inf
    return float(value)


def to_objc_number(value: float) -> ObjCNumber:
    if value == math.inf:
        return "inf"
    if value == -math.inf:
        return "-inf"
    return value


def decode_boolean_attributes(attributes: dict[str, Any]) -> dict[str, Any]:
    decoded = dict(attributes)
    for key in IOS_BOOLEAN_ATTRIBUTES:
        if key in decoded:
            decoded[key] = decoded[key] == "1"
    return decoded


class PlatformUnits:
    """
    Unit and encoding rules for a platform without special handling.

    Screen values are device-independent points; the remote measures in the
    units returned by `to_device`.
    """

    platform: DevicePlatform | None = None

    def __init__(self, screen: ScreenBounds):
        self.screen = screen

    def to_device(self, value: float) -> float:
        return value

    def from_device(self, value: float) -> float:
        return value

    @property
    def max_x(self) -> float:
        return self.to_device(self.screen.width) - 1

    @property
    def max_y(self) -> float:
        return self.to_device(self.screen.height) - 1

    def encode_bounds(self, bounds: ElementBounds) -> WireElementBounds:
        return WireElementBounds(
            x=to_objc_number(bounds.x),
            y=to_objc_number(bounds.y),
            width=to_objc_number(bounds.width),
            height=to_objc_number(bounds.height),
        )

    def decode_bounds(self, bounds: WireElementBounds) -> ElementBounds:
        return ElementBounds(
            x=parse_objc_number(bounds.x),
            y=parse_objc_number(bounds.y),
            width=parse_objc_number(bounds.width),
            height=parse_objc_number(bounds.height),
        )

    def encode_attributes(self, attributes: dict[str, Any]) -> dict[str, Any]:
        return dict(attributes)

    def encode_shift_key(self, shift_key: bool | None) -> bool | int | None:
        return shift_key


class AndroidUnits(PlatformUnits):
    platform = DevicePlatform.ANDROID

    def to_device(self, value: float) -> float:
        return value * self.screen.ratio

    def from_device(self, value: float) -> float:
        return value / self.screen.ratio

    def encode_bounds(self, bounds: ElementBounds) -> WireElementBounds:
        return WireElementBounds(
            x=self.to_device(bounds.x),
            y=self.to_device(bounds.y),
            width=self.to_device(bounds.width),
            height=self.to_device(bounds.height),
        )

    def decode_bounds(self, bounds: WireElementBounds) -> ElementBounds:
        return ElementBounds(
            x=self.from_device(float(bounds.x)),
            y=self.from_device(float(bounds.y)),
            width=self.from_device(float(bounds.width)),
            height=self.from_device(float(bounds.height)),
        )


class IosUnits(PlatformUnits):
    platform = DevicePlatform.IOS

    def encode_attributes(self, attributes: dict[str, Any]) -> dict[str, Any]:
        encoded = dict(attributes)
        for key in IOS_BOOLEAN_ATTRIBUTES:
            if key in encoded:
                encoded[key] = "1" if encoded[key] else "0"
        return encoded

    def encode_shift_key(self, shift_key: bool | None) -> int:
        return 1 if shift_key else 0


PLATFORM_UNITS: dict[DevicePlatform, type[PlatformUnits]] = {
    DevicePlatform.ANDROID: AndroidUnits,
    DevicePlatform.IOS: IosUnits,
}


def get_platform_units(platform: DevicePlatform | str | None, screen: ScreenBounds):
    return PLATFORM_UNITS.get(platform, PlatformUnits)(screen)  # type: ignore[arg-type]


def percentage_to_pixel(
    position: Position,
    screen: ScreenBounds,
    platform: DevicePlatform | None = None,
) -> WireCoordinates:
    x = parse_position_value(position.x)
    y = parse_position_value(position.y)
    if not is_valid_number(x) or not is_valid_number(y):
        raise OperationalError(
            f"Invalid position: ({position.x}, {position.y}). "
            "Values must be a number or a percentage"
        )
    if not (0 <= x <= 1 and 0 <= y <= 1):
        limits = "(0%, 0%) and (100%, 100%)" if isinstance(position.x, str) else "(0, 0) and (1, 1)"
        raise OperationalError(
            f"Invalid position: ({position.x}, {position.y}) "
            f"must be within {limits}"
        )
    units = get_platform_units(platform, screen)
    return WireCoordinates(x=x * units.max_x, y=y * units.max_y)


def pixel_to_percentage(
    coordinates: WireCoordinates,
    screen: ScreenBounds,
    platform: DevicePlatform | None = None,
) -> Position:
    units = get_platform_units(platform, screen)
    return Position(x=coordinates.x / units.max_x, y=coordinates.y / units.max_y)


class InternalApiMapper:
    """Public shapes -> wire shapes."""

    def __init__(
        self,
        platform: DevicePlatform | None,
        screen: ScreenBounds,
        app: AppInfo | None = None,
    ):
        self.platform = platform
        self.screen = screen
        self.app = app
        self.units = get_platform_units(platform, screen)

    def map_element(self, element: Element | dict[str, Any]) -> WireElement:
        if isinstance(element, dict):
            element = Element.model_validate(element)
        data: dict[str, Any] = dict(element.model_extra or {})
        if element.attributes is not None:
            data["attributes"] = self.units.encode_attributes(element.attributes)
        if element.bounds is not None:
            data["bounds"] = self.units.encode_bounds(element.bounds)
        if element.children is not None:
            data["children"] = [self.map_element(child) for child in element.children]
        # the executor does not replay against accessibility elements
        return WireElement.model_validate(data)

    def map_action(self, action: Action | dict[str, Any]) -> dict[str, Any]:
        if isinstance(action, dict):
            try:
                action = _action_adapter.validate_python(clean_object(action))
            except ValidationError as e:
                raise OperationalError(f"Invalid action: {e}") from e
        return clean_object(self._map(action).to_payload())

    def _map(self, action) -> WireModel:
        extra = dict(action.model_extra or {})
        match action:
            case TapAction():
                return WireTapAction.model_validate({**extra, **self._map_target(action)})
            case SwipeAction():
                return WireSwipeAction.model_validate(
                    {
                        **extra,
                        **self._map_target(action),
                        "moves": [self._map_move(move) for move in action.moves],
                    }
                )
            case KeypressAction():
                return WireKeypressAction.model_validate(
                    {
                        **extra,
                        "key": HARDWARE_KEYS_TO_WIRE.get(action.key, action.key),
                        "character": HARDWARE_KEYS_TO_WIRE.get(action.character, action.character),
                        "shiftKey": self.units.encode_shift_key(action.shift_key),
                    }
                )
            case FindElementsAction():
                return WireFindElementsAction.model_validate(
                    {**extra, "element": self.map_element(action.element), "appId": action.app_id}
                )
            case TypeTextAction():
                return WireTypeTextAction.model_validate({**extra, "text": action.text})
        raise OperationalError(f"Unsupported action type: {getattr(action, 'type', action)}")

    def _map_target(self, action: TargetedAction) -> dict[str, Any]:
        modes = action.targeting_modes()
        if len(modes) != 1:
            raise OperationalError(
                f"Action '{action.type}' requires exactly one of element, position or "
                f"coordinates, got {', '.join(modes) if modes else 'none'}"
            )

        target: dict[str, Any] = {"duration": action.duration}
        if action.duration is not None and not is_valid_number(action.duration):
            raise OperationalError(f"Invalid duration: {action.duration}. Value must be a number")

        if action.element is not None:
            target["element"] = self.map_element(action.element)
            target["localPosition"] = self._map_local_position(action.local_position)
        elif action.position is not None:
            target["coordinates"] = percentage_to_pixel(action.position, self.screen, self.platform)
        else:
            target["coordinates"] = self._map_coordinates(action.coordinates)
        return target

    def _map_local_position(self, local_position: Position | None) -> WirePosition:
        if local_position is None:
            return WirePosition(x=0.5, y=0.5)
        x = parse_position_value(local_position.x)
        y = parse_position_value(local_position.y)
        if not is_valid_number(x) or not is_valid_number(y):
            raise OperationalError(
                f"Invalid localPosition: ({local_position.x}, {local_position.y}). "
                "Values must be a number or a percentage"
            )
        # the remote reports out-of-range local positions itself
        return WirePosition(x=x, y=y)

    def _map_coordinates(self, coordinates: Coordinates) -> WireCoordinates:
        if not is_valid_number(coordinates.x) or not is_valid_number(coordinates.y):
            raise OperationalError(
                f"Invalid coordinates: ({coordinates.x}, {coordinates.y}). Values must be a number"
            )
        max_x = self.screen.width - 1
        max_y = self.screen.height - 1
        if not (0 <= coordinates.x <= max_x and 0 <= coordinates.y <= max_y):
            raise OperationalError(
                f"Invalid coordinates: ({coordinates.x}, {coordinates.y}) "
                f"exceed screen bounds ({max_x}, {max_y})"
            )
        return WireCoordinates(
            x=self.units.to_device(coordinates.x),
            y=self.units.to_device(coordinates.y),
        )

    def _map_move(self, move: SwipeMove) -> WireSwipeMove:
        x = parse_position_value(move.x)
        y = parse_position_value(move.y)
        if not is_valid_number(x) or not is_valid_number(y):
            raise OperationalError(
                f"Invalid move: ({move.x}, {move.y}). Values must be a number or a percentage"
            )
        return WireSwipeMove(x=x * self.units.max_x, y=y * self.units.max_y, t=move.t)


class PublicApiMapper:
    """Wire shapes -> public shapes."""

    def __init__(
        self,
        platform: DevicePlatform | None,
        screen: ScreenBounds,
        app: AppInfo | None = None,
    ):
        self.platform = platform
        self.screen = screen
        self.app = app
        self.units = get_platform_units(platform, screen)

    def map_element(self, element: WireElement | dict[str, Any]) -> Element:
        if isinstance(element, dict):
            element = WireElement.model_validate(element)
        data: dict[str, Any] = dict(element.model_extra or {})
        if element.attributes is not None:
            data["attributes"] = decode_boolean_attributes(element.attributes)
        if element.bounds is not None:
            data["bounds"] = self.units.decode_bounds(element.bounds)
        if element.accessibility_elements is not None:
            data["accessibilityElements"] = [
                self._map_accessibility_element(item) for item in element.accessibility_elements
            ]
        if element.children is not None:
            data["children"] = [self.map_element(child) for child in element.children]
        return Element.model_validate(data)

    def _map_accessibility_element(self, item: dict[str, Any]) -> dict[str, Any]:
        mapped = decode_boolean_attributes(item)
        frame = item.get("accessibilityFrame")
        if frame:
            bounds = self.units.decode_bounds(WireElementBounds.model_validate(frame))
            mapped["accessibilityFrame"] = bounds.model_dump()
        else:
            mapped.pop("accessibilityFrame", None)
        return mapped

    def map_action(self, action: dict[str, Any]) -> Action | dict[str, Any]:
        """Unknown action types are returned unchanged."""
        model = WIRE_ACTION_MODELS.get(action.get("type"))
        if model is None:
            return action
        wire = model.model_validate(action)
        extra = dict(wire.model_extra or {})
        match wire:
            case WireTapAction():
                return TapAction.model_validate({**extra, **self._map_target(wire)})
            case WireSwipeAction():
                return SwipeAction.model_validate(
                    {
                        **extra,
                        **self._map_target(wire),
                        "moves": [
                            SwipeMove(
                                **pixel_to_percentage(
                                    WireCoordinates(x=move.x, y=move.y), self.screen, self.platform
                                ).model_dump(),
                                t=move.t,
                            )
                            for move in wire.moves
                        ],
                    }
                )
            case WireKeypressAction():
                return KeypressAction.model_validate(
                    {
                        **extra,
                        "key": HARDWARE_KEYS_FROM_WIRE.get(wire.key, wire.key),
                        "character": HARDWARE_KEYS_FROM_WIRE.get(wire.character, wire.character),
                        "shiftKey": self._decode_shift_key(wire.shift_key),
                    }
                )
            case WireFindElementsAction():
                return FindElementsAction.model_validate(
                    {**extra, "element": self.map_element(wire.element), "appId": wire.app_id}
                )
            case WireTypeTextAction():
                return TypeTextAction.model_validate({**extra, "text": wire.text})
        return action

    @staticmethod
    def _decode_shift_key(shift_key: int | bool | None) -> bool:
        if isinstance(shift_key, int) and not isinstance(shift_key, bool):
            return shift_key == 1
        return bool(shift_key)

    def _map_target(self, wire: WireTargetedAction) -> dict[str, Any]:
        target: dict[str, Any] = {"duration": wire.duration}
        if wire.element is None:
            if wire.coordinates is not None:
                target["position"] = pixel_to_percentage(wire.coordinates, self.screen, self.platform)
            return target

        element = self.map_element(wire.element)
        target["element"] = element
        local_position = (
            Position(x=wire.local_position.x, y=wire.local_position.y)
            if wire.local_position
            else None
        )
        bounds = element.bounds
        if wire.coordinates is not None and bounds is not None and _has_area(bounds):
            x = self.units.from_device(wire.coordinates.x)
            y = self.units.from_device(wire.coordinates.y)
            local_position = Position(
                x=(x - bounds.x) / bounds.width,
                y=(y - bounds.y) / bounds.height,
            )
        target["localPosition"] = local_position
        return target

    def map_ui(self, dump: dict[str, Any]) -> list[AppUI]:
        app_ui = dump.get("ui")
        if app_ui is None:
            app_ui = dump.get("result")
        springboard_ui = dump.get("springboard")

        result: list[AppUI] = []
        if app_ui is not None:
            app_id = self.app.bundle if self.platform == DevicePlatform.IOS and self.app else None
            result.append(
                AppUI(app_id=app_id, children=[self.map_element(element) for element in app_ui])
            )
        if springboard_ui is not None:
            result.append(
                AppUI(
                    app_id=SPRINGBOARD_APP_ID,
                    children=[self.map_element(element) for element in springboard_ui],
                )
            )
        return result

    def map_play_action_result(
        self, data: dict[str, Any], *, error: bool = False
    ) -> PlayActionResult | PlayActionErrorResponse:
        data = dict(data)
        playback = dict(data.pop("playback", None) or {})
        if playback.get("action"):
            playback["action"] = self.map_action(playback["action"])
        matched = data.pop("matchedElements", None)
        if matched is not None:
            data["matchedElements"] = [self.map_element(e) for e in matched if e]
        model = PlayActionErrorResponse if error else PlayActionResult
        return model.model_validate({**data, "playback": Playback.model_validate(playback)})


def _has_area(bounds: ElementBounds) -> bool:
    return all(
        math.isfinite(value) for value in (bounds.x, bounds.y, bounds.width, bounds.height)
    ) and bounds.width != 0 and bounds.height != 0
