"""Gap merging and minimum-length filtering of subline runs.

Runs on the same subline are ordered by their start parameter along the
section centerline. A run is joined into the previous one when the distance
from the previous run's end to its start is ≤ ``max_merge_px``. Only after
merging are segments shorter than ``min_line_length_mm`` dropped, so two
short neighbouring dashes can combine into one that survives.

``max_merge_px ≤ 0`` disables merging entirely and returns the runs as given.
"""

import dataclasses
import logging
import math
from typing import Dict, List, Sequence, Tuple

from .segments import FilteredSegment, MergedSegment, RawSegment

logger = logging.getLogger(__name__)


def merge_close_segments(
    segments: Sequence[RawSegment],
    max_merge_px: float
) -> List[MergedSegment]:
    """Join consecutive runs of one subline whose gap is ≤ ``max_merge_px``.

    Parameters
    ----------
    segments : Sequence[RawSegment]
        Runs of a single subline (any order)
    max_merge_px : float
        Largest gap (end of one run → start of the next) that is closed

    Returns
    -------
    List[MergedSegment]
        Merged runs in ascending ``t_start``; the input unchanged when
        merging is disabled or there is nothing to merge
    """
    if max_merge_px <= 0 or len(segments) < 2:
        return list(segments)

    ordered = sorted(segments, key=lambda s: s.t_start)
    merged = []
    current = ordered[0]
    for nxt in ordered[1:]:
        gap = math.hypot(nxt.x1 - current.x2, nxt.y1 - current.y2)
        if gap <= max_merge_px:
            current = dataclasses.replace(current, x2=nxt.x2, y2=nxt.y2, t_end=nxt.t_end)
        else:
            merged.append(current)
            current = nxt
    merged.append(current)
    return merged


def filter_short_segments(
    segments: Sequence[MergedSegment],
    min_line_length_mm: float,
    px_per_mm: float
) -> List[FilteredSegment]:
    """Keep segments whose physical length is ≥ ``min_line_length_mm``."""
    kept = []
    for seg in segments:
        if seg.length / px_per_mm >= min_line_length_mm:
            kept.append(FilteredSegment.from_raw(seg))
    return kept


def consolidate_sublines(
    sublines: Dict[int, List[RawSegment]],
    max_merge_px: float,
    min_line_length_mm: float,
    px_per_mm: float
) -> List[FilteredSegment]:
    """Merge then length-filter every subline of one section.

    Returns
    -------
    List[FilteredSegment]
        Survivors ordered by subline index, then by position along the section
    """
    kept, _ = consolidate_with_counts(sublines, max_merge_px, min_line_length_mm, px_per_mm)
    return kept


def consolidate_with_counts(
    sublines: Dict[int, List[RawSegment]],
    max_merge_px: float,
    min_line_length_mm: float,
    px_per_mm: float
) -> Tuple[List[FilteredSegment], int]:
    """Like :func:`consolidate_sublines`, also returning the post-merge run count."""
    out: List[FilteredSegment] = []
    n_merged = 0
    for index in sorted(sublines):
        merged = merge_close_segments(sublines[index], max_merge_px)
        n_merged += len(merged)
        out.extend(filter_short_segments(merged, min_line_length_mm, px_per_mm))
    return out, n_merged
