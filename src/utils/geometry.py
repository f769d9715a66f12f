"""Geometric primitives for scan lines and segments.

Provides:
    - clip_line_to_rect(): infinite line (point + direction) ∩ axis-aligned rectangle
    - perpendicular(): unit normal of a direction

Used by:
    - Scan geometry: clipping section centerlines to the canvas
    - Line synthesis: subline offsets along the segment normal

All coordinates are canvas pixels (image frame, +Y down) unless noted.
"""

import logging
import math
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

# Intersections closer than this (per axis) are the same boundary hit (corners)
DEDUP_TOL_PX = 0.1
# Direction components below this are treated as parallel to an edge
PARALLEL_EPS = 1e-12


def clip_line_to_rect(
    cx: float,
    cy: float,
    dx: float,
    dy: float,
    width: float,
    height: float,
    dedup_tol: float = DEDUP_TOL_PX
) -> Optional[Tuple[Point, Point]]:
    """Clip the infinite line through (cx, cy) with direction (dx, dy) to [0,W]×[0,H].

    Parameters
    ----------
    cx, cy : float
        A point on the line
    dx, dy : float
        Line direction (need not be unit length)
    width, height : float
        Rectangle size; the rectangle spans [0, width] × [0, height]
    dedup_tol : float
        Boundary hits closer than this on both axes are merged (corner hits)

    Returns
    -------
    Optional[Tuple[Point, Point]]
        (start, end) ordered by line parameter, or None if the line misses the
        rectangle, only touches it at a single point, or the input is degenerate

    Notes
    -----
    Each edge is intersected parametrically (t = (edge − c) / d) and kept if
    the hit lies on the closed edge. Edges the line runs parallel to are
    skipped. Non-finite hits are dropped with a warning.
    """
    if not all(math.isfinite(v) for v in (cx, cy, dx, dy, width, height)):
        logger.warning(f"Non-finite scan line input: c=({cx}, {cy}) d=({dx}, {dy})")
        return None
    if abs(dx) < PARALLEL_EPS and abs(dy) < PARALLEL_EPS:
        logger.warning("Zero-length scan line direction; no segment")
        return None

    hits: List[Tuple[float, float, float]] = []

    # Left / right edges
    if abs(dx) >= PARALLEL_EPS:
        for edge_x in (0.0, width):
            t = (edge_x - cx) / dx
            y = cy + dy * t
            if 0.0 <= y <= height:
                hits.append((edge_x, y, t))

    # Top / bottom edges
    if abs(dy) >= PARALLEL_EPS:
        for edge_y in (0.0, height):
            t = (edge_y - cy) / dy
            x = cx + dx * t
            if 0.0 <= x <= width:
                hits.append((x, edge_y, t))

    finite = [h for h in hits if all(math.isfinite(v) for v in h)]
    if len(finite) != len(hits):
        logger.warning(f"Dropped {len(hits) - len(finite)} non-finite boundary intersections")

    unique: List[Tuple[float, float, float]] = []
    for hit in finite:
        if not any(
            abs(hit[0] - u[0]) < dedup_tol and abs(hit[1] - u[1]) < dedup_tol
            for u in unique
        ):
            unique.append(hit)

    if len(unique) < 2:
        return None

    unique.sort(key=lambda h: h[2])
    (x1, y1, _), (x2, y2, _) = unique[0], unique[1]
    return (x1, y1), (x2, y2)


def perpendicular(dx: float, dy: float) -> Point:
    """Unit normal (−dy, dx) / |d|; (0, 0) for a zero vector."""
    norm = math.hypot(dx, dy)
    if norm == 0.0:
        return 0.0, 0.0
    return -dy / norm, dx / norm
