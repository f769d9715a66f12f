"""Hatch results → plot artifacts (G-code + mirrored SVG).

Combined export plots every enabled channel in one program, channel
blocks in ``reversed(channel_order)`` so the first channel in the order
is drawn last and sits on top.  Each block is optimized on its own,
starting where the previous block ended.  Per-channel export produces
one independent program and document per channel.

Usage::

    from robot_control.planning.export import compile_combined
    art = compile_combined(results, job, machine)
    art.gcode, art.svg, art.stats
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from robot_control.configs.loader import MachineConfig
from robot_control.gcode.generator import GCodeGenerator
from robot_control.job_ir.builder import ToolpathStats, build_motion_program
from robot_control.planning.optimizer import (
    ToolpathSegment,
    optimize_channel_blocks,
    to_toolpath_segments,
)
from src.data_pipeline import vector_export
from src.utils.validators import HatchJobV1

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotArtifacts:
    """One exported plot: G-code program, drawing document, totals."""

    gcode: str
    svg: str
    stats: ToolpathStats
    channels: tuple[str, ...]


def _toolpath_blocks(
    results: Mapping,
    job: HatchJobV1,
    channels: list[str],
) -> list[tuple[str, list[ToolpathSegment]]]:
    canvas = job.canvas
    return [
        (ch, to_toolpath_segments(results[ch].segments, canvas.height_mm, canvas.px_per_mm))
        for ch in channels
        if ch in results
    ]


def _compile(
    results: Mapping,
    job: HatchJobV1,
    machine: MachineConfig,
    channels: list[str],
    include_travel: bool,
) -> PlotArtifacts:
    blocks = optimize_channel_blocks(
        _toolpath_blocks(results, job, channels), machine.start_position
    )
    ops, stats = build_motion_program(blocks, machine)
    gcode = GCodeGenerator(machine).generate(ops)

    canvas = job.canvas
    drag_px = {
        ch: vector_export.machine_lines_to_px(lines, canvas)
        for ch, lines in stats.drag_lines.items()
    }
    travel_px = (
        vector_export.machine_lines_to_px(stats.travel_lines, canvas)
        if include_travel else None
    )
    groups = [(ch, results[ch].segments) for ch in channels if ch in results]
    doc = vector_export.build_svg_document(
        groups, canvas, job.hatch.pen_diameter_mm, drag_px, travel_px
    )
    return PlotArtifacts(
        gcode=gcode,
        svg=doc.as_str(),
        stats=stats,
        channels=tuple(ch for ch, _ in groups),
    )


def compile_combined(
    results: Mapping,
    job: HatchJobV1,
    machine: MachineConfig,
    include_travel: bool = False,
) -> PlotArtifacts:
    """All enabled channels in one program.

    Parameters
    ----------
    results : Mapping
        channel → ``ChannelResult`` (anything with ``segments``).
    job : HatchJobV1
        Supplies channel order, canvas and pen diameter.
    machine : MachineConfig
        Plotter configuration.
    include_travel : bool
        Add the pen-up ``travel`` group to the SVG.

    Returns
    -------
    PlotArtifacts
        With no results the program holds only header, lift and footer.
    """
    art = _compile(
        results, job, machine, vector_export.plot_order(job), include_travel
    )
    logger.info(
        "Combined plot: channels %s, %d segments",
        ",".join(art.channels) or "-", art.stats.segments,
    )
    return art


def compile_per_channel(
    results: Mapping,
    job: HatchJobV1,
    machine: MachineConfig,
    include_travel: bool = False,
) -> dict[str, PlotArtifacts]:
    """One independent plot per enabled channel that has a result."""
    out: dict[str, PlotArtifacts] = {}
    for ch in vector_export.plot_order(job):
        if ch not in results:
            continue
        out[ch] = _compile(results, job, machine, [ch], include_travel)
    return out
