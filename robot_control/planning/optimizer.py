"""Toolpath ordering for the pen plotter.

Converts filtered hatch segments (image pixels, +Y down) into
``ToolpathSegment`` objects in plotter millimetres (+Y up) and orders
them with a greedy nearest-endpoint search:

    repeat until empty:
        pick the (segment, endpoint) pair closest to the current position
        emit the segment starting at that endpoint
        move to its other endpoint

The search runs on a ``vpype.LineIndex`` built with ``reverse=True`` so
both endpoints of every segment are candidates. Between a segment's two
endpoints at equal distance the start wins; ties between segments resolve
through the index's KD-tree, which is the same on every run for identical
input. Each step is one nearest-neighbour query on the remaining segments.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import vpype

from src.utils import compute

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolpathSegment:
    """One drawable straight line in canvas-relative plotter mm.

    Parameters
    ----------
    channel : str
        Ink channel the segment belongs to.
    x1, y1, x2, y2 : float
        Start and end points, +Y up.
    subline : int
        Originating subline index (for diagnostics).
    """

    channel: str
    x1: float
    y1: float
    x2: float
    y2: float
    subline: int = 0

    @property
    def start(self) -> tuple[float, float]:
        return self.x1, self.y1

    @property
    def end(self) -> tuple[float, float]:
        return self.x2, self.y2

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)

    def reversed(self) -> ToolpathSegment:
        """Same segment traversed end → start."""
        return ToolpathSegment(
            channel=self.channel,
            x1=self.x2,
            y1=self.y2,
            x2=self.x1,
            y2=self.y1,
            subline=self.subline,
        )


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def to_toolpath_segments(
    segments: Iterable,
    canvas_height_mm: float,
    px_per_mm: float = compute.PX_PER_MM,
) -> list[ToolpathSegment]:
    """Pixel-frame filtered segments → plotter-frame toolpath segments.

    Parameters
    ----------
    segments : Iterable
        Objects with ``channel``, ``subline``, ``x1``, ``y1``, ``x2``,
        ``y2`` attributes in image pixels (top-left origin, +Y down).
    canvas_height_mm : float
        Canvas height used for the Y flip.
    px_per_mm : float
        Raster scale.

    Returns
    -------
    list[ToolpathSegment]
        Same order as the input.  Non-finite coordinates are replaced
        with 0.0 (a warning is logged) so they never reach G-code.
    """
    segments = list(segments)
    if not segments:
        return []

    pts = np.array(
        [[[s.x1, s.y1], [s.x2, s.y2]] for s in segments], dtype=np.float64
    )
    mm = compute.image_px_to_machine_mm(pts, canvas_height_mm, px_per_mm)
    mm = compute.clamp_finite(mm)

    return [
        ToolpathSegment(
            channel=s.channel,
            x1=float(p[0, 0]),
            y1=float(p[0, 1]),
            x2=float(p[1, 0]),
            y2=float(p[1, 1]),
            subline=s.subline,
        )
        for s, p in zip(segments, mm)
    ]


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def optimize_path(
    segments: Sequence[ToolpathSegment],
    start: tuple[float, float] = (0.0, 0.0),
) -> list[ToolpathSegment]:
    """Greedy nearest-endpoint ordering.

    Parameters
    ----------
    segments : Sequence[ToolpathSegment]
        Segments for one export unit (one channel or a whole block).
    start : tuple[float, float]
        Current tool position.

    Returns
    -------
    list[ToolpathSegment]
        Every input segment exactly once, possibly reversed.
    """
    if not segments:
        return []

    # vpype lines are complex arrays; index i is segments[i]
    index = vpype.LineIndex(
        [np.array([complex(*seg.start), complex(*seg.end)]) for seg in segments],
        reverse=True,
    )
    pos = complex(*start)
    ordered: list[ToolpathSegment] = []

    while len(index) > 0:
        idx, rev = index.find_nearest(pos)
        idx = int(idx)
        index.pop(idx)
        seg = segments[idx].reversed() if rev else segments[idx]
        ordered.append(seg)
        pos = complex(*seg.end)

    return ordered


def path_travel_length(
    segments: Sequence[ToolpathSegment],
    start: tuple[float, float] = (0.0, 0.0),
) -> float:
    """Total pen-up distance when drawing ``segments`` in the given order."""
    total = 0.0
    cx, cy = start
    for seg in segments:
        total += math.hypot(seg.x1 - cx, seg.y1 - cy)
        cx, cy = seg.end
    return total


def optimize_channel_blocks(
    blocks: Sequence[tuple[str, Sequence[ToolpathSegment]]],
    start: tuple[float, float] = (0.0, 0.0),
) -> list[tuple[str, list[ToolpathSegment]]]:
    """Order each channel block, chaining start positions between blocks.

    Blocks are kept in the given order; each block's search starts from
    the previous block's final position.  Empty blocks are dropped.
    """
    out: list[tuple[str, list[ToolpathSegment]]] = []
    pos = start
    for channel, segs in blocks:
        if not segs:
            continue
        before = path_travel_length(segs, pos)
        ordered = optimize_path(segs, pos)
        after = path_travel_length(ordered, pos)
        logger.info(
            "Channel %s: %d segments, travel %.1f mm -> %.1f mm",
            channel, len(ordered), before, after,
        )
        out.append((channel, ordered))
        pos = ordered[-1].end
    return out
