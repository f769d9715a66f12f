"""Rotated scan-line layout clipped to the canvas.

Sections are parallel centerlines at direction θ, spaced ``section_width``
apart along the perpendicular axis and centred on the canvas centre. Enough
sections are generated to cover the canvas diagonal twice over, so every
angle covers the whole canvas; sections that miss the canvas are dropped.

With several channels enabled, channel ``k`` (its position among enabled
channels in drawing order) is shifted by ``k × line_spacing`` along the
perpendicular, so channel hatches interleave line-by-line inside the shared
section grid instead of stacking on top of each other.

Output order is ascending section index, which downstream merging relies on.
"""

import logging
import math
from typing import List

from ..utils import geometry
from .segments import ClippedSegment

logger = logging.getLogger(__name__)


def num_sections(width_px: float, height_px: float, section_width_px: float) -> int:
    """N = ceil(diagonal / section_width) × 2.

    Raises
    ------
    ValueError
        If section_width_px is not a positive finite number
    """
    if not (section_width_px > 0.0 and math.isfinite(section_width_px)):
        raise ValueError(f"section_width_px must be positive and finite, got {section_width_px}")
    diagonal = math.hypot(width_px, height_px)
    return math.ceil(diagonal / section_width_px) * 2


def section_offset(index: int, n_sections: int, section_width_px: float) -> float:
    """Perpendicular offset of section ``index`` from the canvas centre."""
    return (index - n_sections / 2) * section_width_px


def channel_offset_px(channel_index: int, num_enabled: int, line_spacing_px: float) -> float:
    """Interleave shift for a channel; 0 when only one channel is enabled."""
    if num_enabled <= 1:
        return 0.0
    return channel_index * line_spacing_px


def generate_scan_lines(
    width_px: float,
    height_px: float,
    angle_deg: float,
    section_width_px: float,
    channel_index: int = 0,
    num_enabled: int = 1,
    line_spacing_px: float = 0.0
) -> List[ClippedSegment]:
    """Clipped section centerlines for one channel.

    Parameters
    ----------
    width_px, height_px : float
        Canvas raster size
    angle_deg : float
        Hatch direction, degrees (0 = +X, 90 = +Y i.e. down the image)
    section_width_px : float
        Spacing between centerlines
    channel_index : int
        Position of this channel among enabled channels (drawing order)
    num_enabled : int
        Number of enabled channels
    line_spacing_px : float
        Interleave step (this channel's subline spacing)

    Returns
    -------
    List[ClippedSegment]
        One entry per section that crosses the canvas, ascending section index.
        ``section`` keeps the index in the full grid (gaps where sections missed).
    """
    theta = math.radians(angle_deg)
    dx, dy = math.cos(theta), math.sin(theta)
    perp_angle = theta + math.pi / 2
    px, py = math.cos(perp_angle), math.sin(perp_angle)

    n = num_sections(width_px, height_px, section_width_px)
    shift = channel_offset_px(channel_index, num_enabled, line_spacing_px)
    cx0, cy0 = width_px / 2.0, height_px / 2.0

    lines = []
    for i in range(n):
        offset = section_offset(i, n, section_width_px) + shift
        clipped = geometry.clip_line_to_rect(
            cx0 + px * offset, cy0 + py * offset, dx, dy, width_px, height_px
        )
        if clipped is None:
            continue
        (x1, y1), (x2, y2) = clipped
        lines.append(ClippedSegment(section=i, x1=x1, y1=y1, x2=x2, y2=y2))

    logger.debug(
        f"Scan grid: {n} sections at {angle_deg:.1f}°, {len(lines)} cross the canvas "
        f"(channel shift {shift:.2f} px)"
    )
    return lines
