"""Ordered toolpaths → Job IR motion program.

Two-state pen machine, starting with the pen up.  For every segment:

1. If the tool is not already at the segment start (beyond ``_EPS_MM``),
   travel there.  With the pen down, a gap longer than
   ``travel.prevent_zhop_mm`` lifts first; a shorter gap is a *drag*
   (pen-down ``LinearMove`` that marks the paper).  With the pen up the
   travel is a ``RapidXY``.
2. Lower the pen if it is up.
3. ``LinearMove`` to the segment end.

Each channel block opens with ``SelectChannel`` and a lift, optionally
preceded by an operator ``Pause``.  The program always ends pen-up.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

from robot_control.configs.loader import MachineConfig
from robot_control.job_ir.operations import (
    LinearMove,
    MotionProgram,
    Pause,
    RapidXY,
    SelectChannel,
    ToolDown,
    ToolUp,
)
from robot_control.planning.optimizer import ToolpathSegment

logger = logging.getLogger(__name__)

_EPS_MM = 1e-3

Line = tuple[tuple[float, float], tuple[float, float]]


@dataclass
class ToolpathStats:
    """Totals for one motion program (all lengths in mm).

    ``drag_lines`` (per channel) and ``travel_lines`` hold the
    connecting moves in canvas-relative plotter mm so a preview can
    mirror the physical output.
    """

    segments: int = 0
    draw_mm: float = 0.0
    drag_mm: float = 0.0
    travel_mm: float = 0.0
    pen_lifts: int = 0
    pen_drops: int = 0
    drag_lines: dict[str, list[Line]] = field(default_factory=dict)
    travel_lines: list[Line] = field(default_factory=list)

    @property
    def drags(self) -> int:
        return sum(len(v) for v in self.drag_lines.values())


class _PenState:
    """Mutable pen/position tracker used while emitting one program."""

    def __init__(self, ops: MotionProgram, stats: ToolpathStats,
                 pos: tuple[float, float]) -> None:
        self.ops = ops
        self.stats = stats
        self.pos = pos
        self.down = False
        self.channel = ""

    def lift(self) -> None:
        if self.down:
            self.ops.append(ToolUp())
            self.stats.pen_lifts += 1
            self.down = False

    def lower(self) -> None:
        if not self.down:
            self.ops.append(ToolDown())
            self.stats.pen_drops += 1
            self.down = True

    def travel(self, x: float, y: float, zhop_mm: float) -> None:
        d = math.hypot(x - self.pos[0], y - self.pos[1])
        if d <= _EPS_MM:
            return
        if self.down and d > zhop_mm:
            self.lift()
        line = (self.pos, (x, y))
        if self.down:
            self.ops.append(LinearMove(x=x, y=y, drag=True))
            self.stats.drag_mm += d
            self.stats.drag_lines.setdefault(self.channel, []).append(line)
        else:
            self.ops.append(RapidXY(x=x, y=y))
            self.stats.travel_mm += d
            self.stats.travel_lines.append(line)
        self.pos = (x, y)

    def draw(self, seg: ToolpathSegment) -> None:
        self.ops.append(LinearMove(x=seg.x2, y=seg.y2))
        self.stats.draw_mm += seg.length
        self.stats.segments += 1
        self.pos = seg.end


def build_motion_program(
    blocks: Sequence[tuple[str, Sequence[ToolpathSegment]]],
    machine: MachineConfig,
) -> tuple[MotionProgram, ToolpathStats]:
    """Build the Job IR for ordered channel blocks.

    Parameters
    ----------
    blocks : Sequence[tuple[str, Sequence[ToolpathSegment]]]
        ``(channel, ordered_segments)`` pairs in plotting order, usually
        the output of ``optimize_channel_blocks``.
    machine : MachineConfig
        Supplies the z-hop threshold, start position and pen-swap pause.

    Returns
    -------
    tuple[MotionProgram, ToolpathStats]
        Operations (always starting with ``ToolUp`` + ``RapidXY`` to the
        start position and ending pen-up) and the running totals.
    """
    ops: MotionProgram = []
    stats = ToolpathStats()
    start = machine.start_position
    zhop = machine.travel.prevent_zhop_mm

    ops.append(ToolUp())
    ops.append(RapidXY(x=start[0], y=start[1]))
    pen = _PenState(ops, stats, start)

    first_block = True
    for channel, segments in blocks:
        if not segments:
            continue
        pen.lift()
        if machine.channel_change.pause and not first_block:
            ops.append(Pause(message=f"{machine.channel_change.message} ({channel})"))
        ops.append(SelectChannel(channel=channel))
        pen.channel = channel
        first_block = False

        for seg in segments:
            pen.travel(seg.x1, seg.y1, zhop)
            pen.lower()
            pen.draw(seg)

    pen.lift()

    logger.info(
        "Motion program: %d segments, draw %.1f mm, drag %.1f mm (%d), "
        "travel %.1f mm, %d lifts, %d drops",
        stats.segments, stats.draw_mm, stats.drag_mm, stats.drags,
        stats.travel_mm, stats.pen_lifts, stats.pen_drops,
    )
    return ops, stats
