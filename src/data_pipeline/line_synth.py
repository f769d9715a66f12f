"""Variable-density line synthesis along one scan section.

Each clipped centerline is sampled every ``sample_step_px`` pixels. At every
sample the channel intensity is averaged over a (2r+1)×(2r+1) neighbourhood
(cells outside the map are ignored, not zero-filled). Up to
``max_lines_per_channel`` parallel sublines sit around the centerline:

    index:   0    1     2     3      4    ...
    offset:  0  +1·s  −1·s  +2·s   −2·s   ...   (s = line spacing)

Subline i is drawn at a sample iff i < ceil(max_lines × intensity), so the
local number of parallel strokes tracks local darkness. Each maximal run of
active samples becomes one RawSegment.

The neighbourhood average is computed once per map with ``cv2.boxFilter``
on a zero-padded copy, then looked up per sample.
"""

import logging
import math
from typing import Dict, List, Sequence

import cv2
import numpy as np

from ..utils.geometry import perpendicular
from .segments import ClippedSegment, IntensitySample, RawSegment

logger = logging.getLogger(__name__)

# max_lines × intensity within this of an integer counts as that integer
_COUNT_DECIMALS = 9


class IntensitySampler:
    """Neighbourhood-average lookup over one channel intensity map.

    Parameters
    ----------
    intensity_map : np.ndarray
        (H, W) float map in [0, 1]
    radius : int
        Half-size of the square window, default 3 (7×7 cells)

    Notes
    -----
    Sample positions are rounded half-up to the nearest cell, the window is
    centred there, and the value is the mean of the in-bounds cells. A window
    with no in-bounds cells (or a non-finite position) samples as 0.
    """

    def __init__(self, intensity_map: np.ndarray, radius: int = 3):
        if radius < 0:
            raise ValueError(f"radius must be ≥ 0, got {radius}")
        intensity_map = np.asarray(intensity_map, dtype=np.float64)
        if intensity_map.ndim != 2:
            raise ValueError(f"intensity_map must be 2D, got shape {intensity_map.shape}")

        self.radius = int(radius)
        self.height, self.width = intensity_map.shape

        # Pad by 2r so every window centred within r of the map stays inside the array
        pad = 2 * self.radius
        ksize = (2 * self.radius + 1, 2 * self.radius + 1)
        values = np.pad(intensity_map, pad, mode="constant", constant_values=0.0)
        mask = np.pad(np.ones_like(intensity_map), pad, mode="constant", constant_values=0.0)

        sums = cv2.boxFilter(values, cv2.CV_64F, ksize, normalize=False)
        counts = cv2.boxFilter(mask, cv2.CV_64F, ksize, normalize=False)
        counts = np.rint(counts)

        with np.errstate(invalid="ignore", divide="ignore"):
            self._means = np.where(counts > 0, sums / np.maximum(counts, 1.0), 0.0)
        self._pad = pad

    def sample(self, xs, ys) -> np.ndarray:
        """Smoothed intensity at pixel positions ``(xs, ys)`` (scalars or arrays)."""
        xs = np.atleast_1d(np.asarray(xs, dtype=np.float64))
        ys = np.atleast_1d(np.asarray(ys, dtype=np.float64))
        out = np.zeros(np.broadcast(xs, ys).shape, dtype=np.float64)
        xs, ys = np.broadcast_arrays(xs, ys)

        finite = np.isfinite(xs) & np.isfinite(ys)
        sx = np.zeros(xs.shape, dtype=np.int64)
        sy = np.zeros(ys.shape, dtype=np.int64)
        sx[finite] = np.floor(xs[finite] + 0.5).astype(np.int64)
        sy[finite] = np.floor(ys[finite] + 0.5).astype(np.int64)

        r = self.radius
        inside = (
            finite
            & (sx >= -r) & (sx < self.width + r)
            & (sy >= -r) & (sy < self.height + r)
        )
        out[inside] = self._means[sy[inside] + self._pad, sx[inside] + self._pad]
        return out


def sample_profile(
    segment: ClippedSegment,
    sampler: IntensitySampler,
    step_px: float = 2.0
) -> List[IntensitySample]:
    """Evenly spaced intensity samples along ``segment``.

    ``steps = ceil(length / step_px)`` samples at ``t = i / (steps − 1)``,
    endpoints included. Fewer than two steps samples only the start (t = 0).
    """
    steps = math.ceil(segment.length / step_px) if step_px > 0 else 0
    if steps < 2:
        ts = np.zeros(1)
    else:
        ts = np.arange(steps, dtype=np.float64) / (steps - 1)

    xs, ys = segment.point_at(ts)
    values = sampler.sample(xs, ys)

    return [
        IntensitySample(t=float(t), x=float(x), y=float(y), intensity=float(v))
        for t, x, y, v in zip(ts, xs, ys, values)
    ]


def required_lines(intensity, max_lines_per_channel: int):
    """Number of active sublines for an intensity: ceil(max_lines × intensity).

    0 at intensity 0, ``max_lines_per_channel`` at 1, non-decreasing between.
    Accepts scalars (returns int) or arrays (returns int64 array).
    """
    v = np.clip(np.asarray(intensity, dtype=np.float64), 0.0, 1.0)
    counts = np.ceil(np.round(max_lines_per_channel * v, _COUNT_DECIMALS)).astype(np.int64)
    if counts.ndim == 0:
        return int(counts)
    return counts


def subline_offset(index: int, spacing: float) -> float:
    """Centre-then-alternate offset: 0, +s, −s, +2s, −2s, ..."""
    if index == 0:
        return 0.0
    ring = math.ceil(index / 2)
    return ring * spacing if index % 2 == 1 else -ring * spacing


def _active_runs(active: np.ndarray) -> List[tuple]:
    """(first, last) index pairs of each maximal run of True."""
    padded = np.concatenate([[False], active, [False]]).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    stops = np.flatnonzero(edges == -1) - 1
    return list(zip(starts.tolist(), stops.tolist()))


def synthesize_sublines(
    segment: ClippedSegment,
    profile: Sequence[IntensitySample],
    channel: str,
    max_lines_per_channel: int,
    line_spacing_px: float
) -> Dict[int, List[RawSegment]]:
    """Raw dashed sublines for one clipped section.

    Parameters
    ----------
    segment : ClippedSegment
        The section centerline
    profile : Sequence[IntensitySample]
        Output of :func:`sample_profile` for ``segment``
    channel : str
        Channel tag carried on every output segment
    max_lines_per_channel : int
        Sublines at full intensity
    line_spacing_px : float
        Distance between adjacent sublines

    Returns
    -------
    Dict[int, List[RawSegment]]
        Subline index → runs in ascending t. Only sublines that are active
        somewhere appear; indices run 0..ceil(max_lines × max intensity) − 1.
    """
    if not profile:
        return {}

    length = segment.length
    if length == 0.0 or not math.isfinite(length):
        logger.warning(f"Degenerate section {segment.section} (length {length}); skipped")
        return {}

    nx, ny = perpendicular(segment.x2 - segment.x1, segment.y2 - segment.y1)

    ts = np.array([s.t for s in profile])
    xs = np.array([s.x for s in profile])
    ys = np.array([s.y for s in profile])
    counts = required_lines(np.array([s.intensity for s in profile]), max_lines_per_channel)
    n_lines = int(counts.max()) if counts.size else 0

    sublines: Dict[int, List[RawSegment]] = {}
    for line_index in range(n_lines):
        offset = subline_offset(line_index, line_spacing_px)
        ox, oy = nx * offset, ny * offset
        runs = []
        for first, last in _active_runs(line_index < counts):
            runs.append(RawSegment(
                channel=channel,
                section=segment.section,
                subline=line_index,
                x1=float(xs[first] + ox),
                y1=float(ys[first] + oy),
                x2=float(xs[last] + ox),
                y2=float(ys[last] + oy),
                t_start=float(ts[first]),
                t_end=float(ts[last]),
            ))
        if runs:
            sublines[line_index] = runs
    return sublines
