from __future__ import annotations

import pytest

from devicecast.control.sdk.builders.swipe_gesture import SwipeGesture
from devicecast.control.sdk.types.exceptions import OperationalError


class TestSwipeGesture:
    def test_single_move_ends_at_duration(self):
        moves = SwipeGesture(duration=800).up().build()
        assert moves[0].x == 0 and moves[0].y == 0 and moves[0].t == 0
        assert moves[-1].y == pytest.approx(-0.5)
        assert moves[-1].t == pytest.approx(0.8)
        assert len(moves) == 51

    @pytest.mark.parametrize("duration", [500, 800, 1600])
    def test_full_width_move(self, duration):
        moves = SwipeGesture(duration=duration, step_duration=16).to("100%", "0%").build()
        times = [move.t for move in moves]
        assert times == sorted(times)
        assert moves[-1].x == pytest.approx(1)
        assert moves[-1].t == pytest.approx((duration // 16) * 16 / 1000)

    def test_times_never_decrease(self):
        moves = (
            SwipeGesture(duration=960, step_duration=16)
            .wait(100)
            .to("0%", "-30%")
            .wait(200)
            .to("20%", "-30%")
            .wait(50)
            .build()
        )
        times = [move.t for move in moves]
        assert times == sorted(times)
        assert times[-1] == pytest.approx(0.96 + 0.35)

    def test_segments_share_their_joint(self):
        moves = SwipeGesture(duration=320, step_duration=16).to("0%", "-10%").to("10%", "-10%").build()
        # 20 steps split over 2 segments, the joint point is emitted once
        assert len(moves) == 21
        assert moves[10].x == pytest.approx(0)
        assert moves[10].y == pytest.approx(-0.1)
        assert moves[-1].x == pytest.approx(0.1)

    def test_wait_adds_a_hold_point(self):
        moves = SwipeGesture(duration=800).wait(300).down("25%").build()
        assert moves[0].t == 0
        assert moves[1].t == pytest.approx(0.3)
        assert (moves[1].x, moves[1].y) == (moves[0].x, moves[0].y)
        assert moves[-1].t == pytest.approx(1.1)

    def test_default_duration(self):
        moves = SwipeGesture().left().build()
        assert moves[-1].t == pytest.approx(0.496)
        assert moves[-1].x == pytest.approx(-0.5)

    def test_duration_too_short(self):
        gesture = SwipeGesture(duration=40, step_duration=16).to("0%", "10%").to("0%", "20%").to("0%", "30%")
        with pytest.raises(OperationalError, match="please set duration to at least 48ms"):
            gesture.build()

    def test_requires_a_move(self):
        with pytest.raises(OperationalError, match="at least one move"):
            SwipeGesture(duration=500).build()

    @pytest.mark.parametrize("x, y", [("10", "10%"), ("10%", 0.1), ("abc%", "1%")])
    def test_rejects_non_percentages(self, x, y):
        with pytest.raises(OperationalError):
            SwipeGesture().to(x, y)

    @pytest.mark.parametrize("direction", ["up", "down", "left", "right"])
    def test_rejects_non_numeric_distance(self, direction):
        with pytest.raises(OperationalError, match='Invalid distance: "abc"'):
            getattr(SwipeGesture(), direction)("abc")

    def test_named_directions(self):
        assert SwipeGesture(duration=800).right("30%").build()[-1].x == pytest.approx(0.3)
        assert SwipeGesture(duration=800).down("30").build()[-1].y == pytest.approx(0.3)
