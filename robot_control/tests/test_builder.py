"""Tests for the motion-program builder.

Validates the z-hop rule (short pen-down gaps are dragged, long ones
lift), the program envelope (starts and ends pen-up), channel block
markers, pen-swap pauses and the running totals.
"""

from __future__ import annotations

import dataclasses

import pytest

from robot_control.configs.loader import ChannelChangeConfig, MachineConfig, load_config
from robot_control.job_ir.builder import build_motion_program
from robot_control.job_ir.operations import (
    LinearMove,
    Pause,
    RapidXY,
    SelectChannel,
    ToolDown,
    ToolUp,
)
from robot_control.planning.optimizer import ToolpathSegment


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> MachineConfig:
    """Default config with a 2 mm z-hop threshold."""
    cfg = load_config()
    return dataclasses.replace(
        cfg, travel=dataclasses.replace(cfg.travel, prevent_zhop_mm=2.0)
    )


def _seg(x1: float, y1: float, x2: float, y2: float, ch: str = "K") -> ToolpathSegment:
    return ToolpathSegment(channel=ch, x1=x1, y1=y1, x2=x2, y2=y2)


# ---------------------------------------------------------------------------
# Z-hop rule
# ---------------------------------------------------------------------------


class TestZHop:
    def test_short_gap_is_dragged(self, config: MachineConfig) -> None:
        blocks = [("K", [_seg(0, 0, 10, 0), _seg(10, 1.5, 0, 1.5)])]
        ops, stats = build_motion_program(blocks, config)
        assert ops == [
            ToolUp(),
            RapidXY(x=0.0, y=0.0),
            SelectChannel(channel="K"),
            ToolDown(),
            LinearMove(x=10.0, y=0.0),
            LinearMove(x=10.0, y=1.5, drag=True),
            LinearMove(x=0.0, y=1.5),
            ToolUp(),
        ]
        assert stats.drag_mm == pytest.approx(1.5)
        assert stats.drags == 1
        assert stats.drag_lines["K"] == [((10.0, 0.0), (10.0, 1.5))]

    def test_long_gap_lifts(self, config: MachineConfig) -> None:
        blocks = [("K", [_seg(0, 0, 10, 0), _seg(10, 3.0, 0, 3.0)])]
        ops, stats = build_motion_program(blocks, config)
        i = ops.index(LinearMove(x=10.0, y=0.0))
        assert ops[i + 1:i + 4] == [ToolUp(), RapidXY(x=10.0, y=3.0), ToolDown()]
        assert stats.drags == 0
        assert stats.travel_mm == pytest.approx(3.0)

    def test_gap_equal_to_threshold_is_dragged(self, config: MachineConfig) -> None:
        blocks = [("K", [_seg(0, 0, 10, 0), _seg(10, 2.0, 0, 2.0)])]
        ops, _ = build_motion_program(blocks, config)
        assert LinearMove(x=10.0, y=2.0, drag=True) in ops

    def test_zero_threshold_always_lifts(self, config: MachineConfig) -> None:
        cfg = dataclasses.replace(
            config, travel=dataclasses.replace(config.travel, prevent_zhop_mm=0.0)
        )
        blocks = [("K", [_seg(0, 0, 10, 0), _seg(10, 0.5, 0, 0.5)])]
        ops, stats = build_motion_program(blocks, cfg)
        assert not any(isinstance(op, LinearMove) and op.drag for op in ops)
        assert stats.pen_lifts == 2

    def test_contiguous_segments_stay_down(self, config: MachineConfig) -> None:
        blocks = [("K", [_seg(0, 0, 5, 0), _seg(5, 0, 5, 5)])]
        ops, stats = build_motion_program(blocks, config)
        assert ops.count(ToolDown()) == 1
        assert stats.drags == 0
        assert stats.pen_drops == 1


# ---------------------------------------------------------------------------
# Program envelope and blocks
# ---------------------------------------------------------------------------


class TestProgramShape:
    def test_empty_program(self, config: MachineConfig) -> None:
        ops, stats = build_motion_program([], config)
        assert ops == [ToolUp(), RapidXY(x=0.0, y=0.0)]
        assert stats.segments == 0

    def test_empty_blocks_skipped(self, config: MachineConfig) -> None:
        ops, _ = build_motion_program([("C", []), ("K", [_seg(1, 1, 4, 1)])], config)
        channels = [op.channel for op in ops if isinstance(op, SelectChannel)]
        assert channels == ["K"]

    def test_block_order_and_final_lift(self, config: MachineConfig) -> None:
        blocks = [
            ("K", [_seg(1, 1, 4, 1, "K")]),
            ("C", [_seg(50, 50, 60, 50, "C")]),
        ]
        ops, stats = build_motion_program(blocks, config)
        channels = [op.channel for op in ops if isinstance(op, SelectChannel)]
        assert channels == ["K", "C"]
        assert ops[-1] == ToolUp()
        # Pen is up when the second block starts
        c_idx = ops.index(SelectChannel(channel="C"))
        assert ops[c_idx - 1] == ToolUp()
        assert stats.segments == 2
        assert stats.draw_mm == pytest.approx(13.0)

    def test_no_drag_across_blocks(self, config: MachineConfig) -> None:
        blocks = [
            ("K", [_seg(0, 0, 5, 0, "K")]),
            ("C", [_seg(5, 0.5, 0, 0.5, "C")]),
        ]
        _, stats = build_motion_program(blocks, config)
        assert stats.drags == 0

    def test_pause_between_blocks(self, config: MachineConfig) -> None:
        cfg = dataclasses.replace(config, channel_change=ChannelChangeConfig(pause=True))
        blocks = [
            ("K", [_seg(1, 1, 4, 1, "K")]),
            ("C", [_seg(5, 5, 9, 5, "C")]),
        ]
        ops, _ = build_motion_program(blocks, cfg)
        pauses = [op for op in ops if isinstance(op, Pause)]
        assert pauses == [Pause(message="Change pen (C)")]
        assert ops.index(pauses[0]) == ops.index(SelectChannel(channel="C")) - 1

    def test_travel_lines_recorded(self, config: MachineConfig) -> None:
        _, stats = build_motion_program([("K", [_seg(3, 4, 6, 4)])], config)
        assert stats.travel_lines == [((0.0, 0.0), (3.0, 4.0))]
        assert stats.travel_mm == pytest.approx(5.0)
