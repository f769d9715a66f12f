"""Tests for plot export (hatch results → G-code + SVG).

Validates channel block order (first channel in ``channel_order`` drawn
last), the image → plotter Y flip with bed offset, per-channel programs,
and that the SVG mirrors drag moves in the channel group.
"""

from __future__ import annotations

import re

import pytest

from robot_control.configs.loader import MachineConfig, load_config
from robot_control.planning.export import compile_combined, compile_per_channel
from src.data_pipeline.hatch_tracer import ChannelResult
from src.data_pipeline.segments import FilteredSegment
from src.utils.validators import CanvasParams, HatchJobV1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def machine() -> MachineConfig:
    return load_config()


@pytest.fixture()
def job() -> HatchJobV1:
    """20 × 20 mm canvas at 2 px/mm (40 × 40 px), C and K enabled."""
    return HatchJobV1(
        canvas=CanvasParams(width_mm=20.0, height_mm=20.0, px_per_mm=2.0),
        enabled_channels=["C", "K"],
        channel_order=["C", "M", "Y", "K"],
    )


def _fs(ch: str, x1: float, y1: float, x2: float, y2: float) -> FilteredSegment:
    return FilteredSegment(channel=ch, section=0, subline=0, x1=x1, y1=y1, x2=x2, y2=y2)


@pytest.fixture()
def results() -> dict[str, ChannelResult]:
    return {
        # Bottom row of the canvas in image pixels
        "K": ChannelResult(channel="K", segments=(_fs("K", 0.0, 40.0, 20.0, 40.0),)),
        # Top row
        "C": ChannelResult(channel="C", segments=(_fs("C", 0.0, 0.0, 20.0, 0.0),)),
    }


# ---------------------------------------------------------------------------
# Combined export
# ---------------------------------------------------------------------------


class TestCombined:
    def test_channel_blocks_in_reverse_order(
        self, results, job: HatchJobV1, machine: MachineConfig,
    ) -> None:
        art = compile_combined(results, job, machine)
        assert art.channels == ("K", "C")
        assert art.gcode.index("; --- Channel K ---") < art.gcode.index("; --- Channel C ---")

    def test_y_flip_with_bed_offset(
        self, results, job: HatchJobV1, machine: MachineConfig,
    ) -> None:
        art = compile_combined(results, job, machine)
        ox, oy = machine.canvas.offset_x_mm, machine.canvas.offset_y_mm
        # Image bottom row → plotter y = 0, image top row → plotter y = 20
        assert f"G1 X{ox + 10.0:.3f} Y{oy:.3f}" in art.gcode
        assert f"Y{oy + 20.0:.3f}" in art.gcode

    def test_xy_words_three_decimals(
        self, results, job: HatchJobV1, machine: MachineConfig,
    ) -> None:
        art = compile_combined(results, job, machine)
        for value in re.findall(r"\b[XY](-?\d+\.\d+)", art.gcode):
            assert len(value.split(".")[1]) == 3

    def test_stats(self, results, job: HatchJobV1, machine: MachineConfig) -> None:
        art = compile_combined(results, job, machine)
        assert art.stats.segments == 2
        assert art.stats.draw_mm == pytest.approx(20.0)

    def test_svg_groups_stacked_in_plot_order(
        self, results, job: HatchJobV1, machine: MachineConfig,
    ) -> None:
        art = compile_combined(results, job, machine)
        assert art.svg.index('id="channel-K"') < art.svg.index('id="channel-C"')
        assert art.svg.count("<line") == 2
        assert 'id="travel"' not in art.svg

    def test_svg_travel_group(
        self, results, job: HatchJobV1, machine: MachineConfig,
    ) -> None:
        art = compile_combined(results, job, machine, include_travel=True)
        assert 'id="travel"' in art.svg

    def test_no_results(self, job: HatchJobV1, machine: MachineConfig) -> None:
        art = compile_combined({}, job, machine)
        assert art.channels == ()
        assert "; --- Channel" not in art.gcode
        assert "M30" in art.gcode
        assert "<line" not in art.svg

    def test_drag_mirrored_in_channel_group(
        self, job: HatchJobV1, machine: MachineConfig,
    ) -> None:
        # Two rows 1 mm apart (2 px): the connecting move is a drag
        res = {"K": ChannelResult(channel="K", segments=(
            _fs("K", 0.0, 40.0, 20.0, 40.0),
            _fs("K", 20.0, 38.0, 0.0, 38.0),
        ))}
        art = compile_combined(res, job, machine)
        assert art.stats.drags == 1
        assert "; Drag" in art.gcode
        k_group = art.svg.split('id="channel-K"')[1]
        assert k_group.count("<line") == 3


# ---------------------------------------------------------------------------
# Per-channel export
# ---------------------------------------------------------------------------


class TestPerChannel:
    def test_one_program_per_channel(
        self, results, job: HatchJobV1, machine: MachineConfig,
    ) -> None:
        arts = compile_per_channel(results, job, machine)
        assert list(arts) == ["K", "C"]
        assert "; --- Channel C ---" not in arts["K"].gcode
        assert 'id="channel-C"' not in arts["K"].svg
        assert arts["C"].stats.segments == 1

    def test_missing_result_skipped(self, job: HatchJobV1, machine: MachineConfig) -> None:
        res = {"K": ChannelResult(channel="K", segments=())}
        arts = compile_per_channel(res, job, machine)
        assert list(arts) == ["K"]
        assert arts["K"].stats.segments == 0
