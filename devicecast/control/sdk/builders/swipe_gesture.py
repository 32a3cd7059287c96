import math
from dataclasses import dataclass

from devicecast.control.constants import DEFAULT_STEP_DURATION_MS, MIN_GESTURE_DURATION_MS
from devicecast.control.controllers.types import SwipeMove
from devicecast.control.sdk.types.exceptions import OperationalError


@dataclass
class _Waypoint:
    x: float
    y: float
    wait: float = 0


def _parse_percentage(value: str) -> float:
    try:
        return float(value.rstrip("%")) / 100
    except ValueError:
        raise OperationalError(f'Invalid percentage: "{value}"') from None


class SwipeGesture:
    """
    Builder for a multi-step swipe path.

    Waypoints are offsets from the starting point, in percentages of the screen:

        SwipeGesture(duration=800).to("0%", "-30%").wait(200).to("20%", "-30%").build()
    """

    def __init__(self, duration: float | None = None, step_duration: float | None = None):
        self._duration = duration
        self._step_duration = step_duration or DEFAULT_STEP_DURATION_MS
        self._waypoints: list[_Waypoint] = [_Waypoint(0, 0)]

    def to(self, x: str, y: str) -> "SwipeGesture":
        if not isinstance(x, str) or not isinstance(y, str):
            raise OperationalError('x and y must be strings and in percentages (e.g. "50%")')
        if not x.endswith("%") or not y.endswith("%"):
            raise OperationalError('x and y must be in percentages (e.g. "50%")')
        self._waypoints.append(_Waypoint(_parse_percentage(x), _parse_percentage(y)))
        return self

    def wait(self, ms: float) -> "SwipeGesture":
        self._waypoints[-1].wait += ms
        return self

    def up(self, distance: str = "50%") -> "SwipeGesture":
        return self.to("0%", f"-{_strip(distance)}%")

    def down(self, distance: str = "50%") -> "SwipeGesture":
        return self.to("0%", f"{_strip(distance)}%")

    def left(self, distance: str = "50%") -> "SwipeGesture":
        return self.to(f"-{_strip(distance)}%", "0%")

    def right(self, distance: str = "50%") -> "SwipeGesture":
        return self.to(f"{_strip(distance)}%", "0%")

    def build(self) -> list[SwipeMove]:
        step = self._step_duration
        segments = len(self._waypoints) - 1
        if segments == 0:
            raise OperationalError("A swipe gesture needs at least one move, add one with to()")

        duration = (
            self._duration if self._duration is not None else max(MIN_GESTURE_DURATION_MS, step * segments)
        )
        total_steps = math.floor(duration / step)
        steps_per_segment = math.floor(total_steps / segments)
        if steps_per_segment == 0:
            raise OperationalError(
                f"Duration is too short for {segments} moves, "
                f"please set duration to at least {segments * step}ms"
            )

        moves: list[SwipeMove] = []
        accrued_wait = 0.0
        for i in range(segments):
            lower = self._waypoints[i]
            upper = self._waypoints[i + 1]
            is_last_segment = i == segments - 1

            for n in range(steps_per_segment + 1):
                # the next segment starts on this point
                if n == steps_per_segment and not is_last_segment:
                    continue
                progress = n / steps_per_segment
                x = lower.x + progress * (upper.x - lower.x)
                y = lower.y + progress * (upper.y - lower.y)
                t = ((i * steps_per_segment + n) * step + accrued_wait) / 1000
                moves.append(SwipeMove(x=x, y=y, t=t))

                if n == 0 and lower.wait:
                    moves.append(SwipeMove(x=x, y=y, t=t + lower.wait / 1000))
                    accrued_wait += lower.wait

            if is_last_segment and upper.wait:
                last = moves[-1]
                moves.append(SwipeMove(x=last.x, y=last.y, t=last.t + upper.wait / 1000))

        return moves


def _strip(distance: str) -> str:
    try:
        value = float(str(distance).rstrip("%"))
    except ValueError:
        raise OperationalError(f'Invalid distance: "{distance}"') from None
    return f"{value:g}"
