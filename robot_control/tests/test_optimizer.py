"""Tests for toolpath ordering.

Validates completeness (every segment exactly once, endpoints preserved),
deterministic tie-breaking, travel reduction against input order, block
chaining and the image → plotter frame conversion.
"""

from __future__ import annotations

import random

import pytest

from robot_control.planning.optimizer import (
    ToolpathSegment,
    optimize_channel_blocks,
    optimize_path,
    path_travel_length,
    to_toolpath_segments,
)
from src.data_pipeline.segments import FilteredSegment


def _seg(x1: float, y1: float, x2: float, y2: float, ch: str = "K") -> ToolpathSegment:
    return ToolpathSegment(channel=ch, x1=x1, y1=y1, x2=x2, y2=y2)


def _undirected(seg: ToolpathSegment) -> frozenset:
    return frozenset([seg.start, seg.end])


@pytest.fixture()
def scattered() -> list[ToolpathSegment]:
    rng = random.Random(7)
    segs = []
    for _ in range(40):
        x, y = rng.uniform(0, 100), rng.uniform(0, 100)
        segs.append(_seg(x, y, x + rng.uniform(-5, 5), y + rng.uniform(-5, 5)))
    return segs


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------


class TestCompleteness:
    def test_empty(self) -> None:
        assert optimize_path([]) == []

    def test_every_segment_once(self, scattered: list[ToolpathSegment]) -> None:
        ordered = optimize_path(scattered, (0.0, 0.0))
        assert len(ordered) == len(scattered)
        assert sorted(map(_undirected, ordered), key=sorted) == sorted(
            map(_undirected, scattered), key=sorted
        )

    def test_reversal_keeps_metadata(self) -> None:
        seg = ToolpathSegment(channel="C", x1=10, y1=0, x2=0, y2=0, subline=3)
        (out,) = optimize_path([seg], (0.0, 0.0))
        assert out.start == (0, 0)
        assert out.end == (10, 0)
        assert out.channel == "C"
        assert out.subline == 3


# ---------------------------------------------------------------------------
# Ordering quality and determinism
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_nearest_first(self) -> None:
        far = _seg(90, 90, 95, 90)
        near = _seg(1, 0, 5, 0)
        assert optimize_path([far, near], (0.0, 0.0)) == [near, far]

    def test_equidistant_segments_repeatable(self) -> None:
        a = _seg(1, 0, 2, 0)
        b = _seg(-1, 0, -2, 0)
        first = optimize_path([a, b], (0.0, 0.0))
        assert set(first) == {a, b}
        assert optimize_path([a, b], (0.0, 0.0)) == first

    def test_tie_prefers_start_endpoint(self) -> None:
        # Both endpoints at distance 5 from the origin
        seg = _seg(3, 4, -3, 4)
        (out,) = optimize_path([seg], (0.0, 0.0))
        assert out == seg

    def test_deterministic(self, scattered: list[ToolpathSegment]) -> None:
        assert optimize_path(scattered, (0.0, 0.0)) == optimize_path(scattered, (0.0, 0.0))

    def test_travel_not_worse_than_input_order(
        self, scattered: list[ToolpathSegment],
    ) -> None:
        before = path_travel_length(scattered, (0.0, 0.0))
        after = path_travel_length(optimize_path(scattered, (0.0, 0.0)), (0.0, 0.0))
        assert after <= before

    def test_hatch_rows_snake(self) -> None:
        rows = [_seg(0, float(y), 10, float(y)) for y in range(5)]
        ordered = optimize_path(rows, (0.0, 0.0))
        assert [s.y1 for s in ordered] == [0, 1, 2, 3, 4]
        assert [s.x1 for s in ordered] == [0, 10, 0, 10, 0]
        assert path_travel_length(ordered, (0.0, 0.0)) == pytest.approx(4.0)


# ---------------------------------------------------------------------------
# Blocks and conversion
# ---------------------------------------------------------------------------


class TestBlocks:
    def test_block_chaining(self) -> None:
        blocks = [
            ("K", [_seg(10, 0, 20, 0, "K")]),
            ("C", [_seg(0, 0, 19, 0, "C")]),
        ]
        out = optimize_channel_blocks(blocks, (0.0, 0.0))
        assert [ch for ch, _ in out] == ["K", "C"]
        # C starts from where K ended (20, 0), so it is reversed
        assert out[1][1][0].start == (19, 0)

    def test_empty_blocks_dropped(self) -> None:
        out = optimize_channel_blocks([("C", []), ("K", [_seg(0, 0, 1, 0)])])
        assert [ch for ch, _ in out] == ["K"]


class TestConversion:
    def test_y_flip_and_scale(self) -> None:
        fs = FilteredSegment(channel="M", section=2, subline=1,
                             x1=0.0, y1=0.0, x2=20.0, y2=40.0)
        (tp,) = to_toolpath_segments([fs], canvas_height_mm=20.0, px_per_mm=2.0)
        assert tp.start == pytest.approx((0.0, 20.0))
        assert tp.end == pytest.approx((10.0, 0.0))
        assert tp.channel == "M"
        assert tp.subline == 1

    def test_non_finite_replaced(self) -> None:
        fs = FilteredSegment(channel="K", section=0, subline=0,
                             x1=float("nan"), y1=0.0, x2=2.0, y2=0.0)
        (tp,) = to_toolpath_segments([fs], canvas_height_mm=10.0, px_per_mm=1.0)
        assert tp.x1 == 0.0

    def test_infinite_replaced(self) -> None:
        fs = FilteredSegment(channel="K", section=0, subline=0,
                             x1=float("inf"), y1=float("-inf"), x2=2.0, y2=0.0)
        (tp,) = to_toolpath_segments([fs], canvas_height_mm=50.0, px_per_mm=3.78)
        assert tp.x1 == 0.0
        assert tp.y1 == 0.0
        assert tp.x2 == pytest.approx(2.0 / 3.78)

    def test_empty(self) -> None:
        assert to_toolpath_segments([], canvas_height_mm=10.0) == []
