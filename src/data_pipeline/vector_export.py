"""SVG drawing document for hatch results.

One ``<g>`` per channel holding straight ``<line>`` primitives in image
pixels (top-left origin, +Y down). The document is sized in millimetres
with a pixel ``viewBox`` so it prints at the canvas' physical size.

Group order follows plotting order, ``reversed(channel_order)``: later
groups paint over earlier ones, so the first channel in
``channel_order`` ends up on top, exactly as on paper.

The connecting moves of a motion program can be mirrored too: drag
moves (pen-down, shorter than the z-hop threshold) join their channel's
group because they mark the paper; pen-up rapids go into a separate
``travel`` group for preview only.

Public API:
    plot_order(job) → channels in plotting order
    build_svg_document(groups, canvas, pen_diameter_mm, ...) → svg.SVG
    export_combined(results, job, ...) → str
    export_per_channel(results, job) → {channel: str}
"""

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import svg

from ..utils import compute
from ..utils.validators import CanvasParams, HatchJobV1

logger = logging.getLogger(__name__)

CHANNEL_COLORS: Dict[str, str] = {
    "C": "#00ffff",
    "M": "#ff00ff",
    "Y": "#ffff00",
    "K": "#000000",
}
TRAVEL_COLOR = "#ff0000"

# Endpoints closer than this on both axes are not written
_MIN_EXTENT_PX = 1e-3

Line = Tuple[Tuple[float, float], Tuple[float, float]]


def plot_order(job: HatchJobV1) -> List[str]:
    """Enabled channels in the order they are plotted (and stacked)."""
    return list(reversed(job.ordered_channels()))


def _coord(v: float) -> float:
    return round(float(v), 3) if math.isfinite(v) else 0.0


def _line_elements(
    lines: Sequence[Line],
    stroke: str = "#000000",
    stroke_width: float = 1.0,
    dasharray: Optional[List[float]] = None,
) -> List[svg.Element]:
    # svg.G carries no stroke attributes, so every line is styled itself
    elements: List[svg.Element] = []
    for (x1, y1), (x2, y2) in lines:
        x1, y1, x2, y2 = _coord(x1), _coord(y1), _coord(x2), _coord(y2)
        if abs(x2 - x1) <= _MIN_EXTENT_PX and abs(y2 - y1) <= _MIN_EXTENT_PX:
            continue
        elements.append(svg.Line(
            x1=x1, y1=y1, x2=x2, y2=y2,
            stroke=stroke,
            stroke_width=stroke_width,
            stroke_linecap="round",
            stroke_dasharray=dasharray,
        ))
    return elements


def _segment_lines(segments: Sequence) -> List[Line]:
    return [((s.x1, s.y1), (s.x2, s.y2)) for s in segments]


def build_svg_document(
    groups: Sequence[Tuple[str, Sequence]],
    canvas: CanvasParams,
    pen_diameter_mm: float,
    drag_lines: Optional[Mapping[str, Sequence[Line]]] = None,
    travel_lines: Optional[Sequence[Line]] = None,
) -> svg.SVG:
    """Assemble the drawing document.

    Parameters
    ----------
    groups : Sequence[Tuple[str, Sequence]]
        ``(channel, segments)`` in stacking order (first = bottom).
        Segments need ``x1, y1, x2, y2`` in image pixels.
    canvas : CanvasParams
        Physical size and raster scale
    pen_diameter_mm : float
        Stroke width of every drawn line
    drag_lines : Mapping[str, Sequence[Line]], optional
        Pen-down connecting moves per channel, image pixels
    travel_lines : Sequence[Line], optional
        Pen-up moves, image pixels

    Returns
    -------
    svg.SVG
        Document; call ``.as_str()`` to serialize
    """
    width_px, height_px = compute.canvas_size_px(
        canvas.width_mm, canvas.height_mm, canvas.px_per_mm
    )
    stroke_width = _coord(pen_diameter_mm * canvas.px_per_mm) or 1.0

    elements: List[svg.Element] = []
    for channel, segments in groups:
        lines = _segment_lines(segments)
        if drag_lines and drag_lines.get(channel):
            lines.extend(drag_lines[channel])
        elements.append(svg.G(
            id=f"channel-{channel}",
            fill="none",
            elements=_line_elements(
                lines, CHANNEL_COLORS.get(channel, "#000000"), stroke_width
            ),
        ))

    if travel_lines:
        elements.append(svg.G(
            id="travel",
            fill="none",
            elements=_line_elements(
                travel_lines, TRAVEL_COLOR, _coord(stroke_width / 4) or 0.25, [2, 2]
            ),
        ))

    return svg.SVG(
        width=svg.Length(canvas.width_mm, "mm"),
        height=svg.Length(canvas.height_mm, "mm"),
        viewBox=svg.ViewBoxSpec(0, 0, width_px, height_px),
        elements=elements,
    )


def export_combined(
    results: Mapping,
    job: HatchJobV1,
    drag_lines: Optional[Mapping[str, Sequence[Line]]] = None,
    travel_lines: Optional[Sequence[Line]] = None,
) -> str:
    """All enabled channels in one document, stacked in plotting order.

    ``results`` maps channel → object with a ``segments`` sequence
    (``ChannelResult``). Channels without a result are skipped; with no
    results at all an empty, correctly sized document is returned.
    """
    groups = [(ch, results[ch].segments) for ch in plot_order(job) if ch in results]
    doc = build_svg_document(
        groups, job.canvas, job.hatch.pen_diameter_mm, drag_lines, travel_lines
    )
    n_lines = sum(len(s) for _, s in groups)
    logger.info(f"SVG (combined): {len(groups)} channels, {n_lines} lines")
    return doc.as_str()


def export_per_channel(results: Mapping, job: HatchJobV1) -> Dict[str, str]:
    """One independent document per enabled channel with a result."""
    out: Dict[str, str] = {}
    for ch in plot_order(job):
        if ch not in results:
            continue
        doc = build_svg_document(
            [(ch, results[ch].segments)], job.canvas, job.hatch.pen_diameter_mm
        )
        out[ch] = doc.as_str()
    return out


def machine_lines_to_px(
    lines: Sequence[Line],
    canvas: CanvasParams,
) -> List[Line]:
    """Plotter-frame mm lines (+Y up) → image-frame pixel lines."""
    if not lines:
        return []
    arr = compute.machine_mm_to_image_px(
        np.asarray(lines, dtype=np.float64), canvas.height_mm, canvas.px_per_mm
    )
    return [((float(a[0, 0]), float(a[0, 1])), (float(a[1, 0]), float(a[1, 1]))) for a in arr]
