"""Per-channel hatching pipeline: scan lines → filtered segments.

A channel is a pure function of (intensity map, job parameters, channel):

    generate_scan_lines → for each section, in ascending index:
        sample_profile → synthesize_sublines → consolidate_sublines

Channels share nothing mutable, so one channel can be recomputed without
touching another's result. ``trace_channel`` accepts an optional
``checkpoint`` hook called after every section; the scheduler uses it for
batching, time-budget yields and cancellation.

Public API:
    TraceSettings.from_job(job, channel)
    trace_section(section, sampler, settings) → (segments, stats)
    trace_channel(intensity_map, job, channel, checkpoint=None) → ChannelResult
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from ..utils import compute
from ..utils.validators import HatchJobV1
from . import scan_geometry
from .consolidate import consolidate_with_counts
from .line_synth import IntensitySampler, sample_profile, synthesize_sublines
from .segments import ClippedSegment, FilteredSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TraceSettings:
    """Resolved, pixel-unit parameters for one channel run."""

    channel: str
    channel_index: int
    num_enabled: int
    width_px: float
    height_px: float
    px_per_mm: float
    angle_deg: float
    section_width_px: float
    line_spacing_px: float
    max_lines_per_channel: int
    max_merge_px: float
    min_line_length_mm: float
    sample_radius_px: int
    sample_step_px: float

    @classmethod
    def from_job(cls, job: HatchJobV1, channel: str) -> TraceSettings:
        """Resolve ``job`` for ``channel``.

        Raises
        ------
        ValueError
            If ``channel`` is not enabled in ``job``
        """
        ordered = job.ordered_channels()
        if channel not in ordered:
            raise ValueError(f"Channel '{channel}' is not enabled (enabled: {ordered})")
        ppm = job.canvas.px_per_mm
        width_px, height_px = compute.canvas_size_px(job.canvas.width_mm, job.canvas.height_mm, ppm)
        hatch = job.hatch
        return cls(
            channel=channel,
            channel_index=ordered.index(channel),
            num_enabled=len(ordered),
            width_px=float(width_px),
            height_px=float(height_px),
            px_per_mm=ppm,
            angle_deg=hatch.line_angle_deg,
            section_width_px=hatch.section_width_mm * ppm,
            line_spacing_px=job.line_spacing_mm_for(channel) * ppm,
            max_lines_per_channel=hatch.max_lines_per_channel,
            max_merge_px=hatch.max_merge_distance_mm * ppm,
            min_line_length_mm=hatch.min_line_length_mm,
            sample_radius_px=hatch.sample_radius_px,
            sample_step_px=hatch.sample_step_px,
        )


@dataclass(frozen=True)
class SectionStats:
    raw: int = 0
    merged: int = 0
    kept: int = 0


@dataclass(frozen=True)
class ChannelResult:
    """Published output of one channel run."""

    channel: str
    segments: Tuple[FilteredSegment, ...]
    n_sections: int = 0
    n_scan_lines: int = 0
    n_raw: int = 0
    n_merged: int = 0
    n_dropped: int = 0
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def line_count(self) -> int:
        return len(self.segments)


def trace_section(
    section: ClippedSegment,
    sampler: IntensitySampler,
    settings: TraceSettings
) -> Tuple[list, SectionStats]:
    """Filtered segments for one clipped section, plus run counts."""
    profile = sample_profile(section, sampler, settings.sample_step_px)
    sublines = synthesize_sublines(
        section,
        profile,
        settings.channel,
        settings.max_lines_per_channel,
        settings.line_spacing_px,
    )
    kept, n_merged = consolidate_with_counts(
        sublines, settings.max_merge_px, settings.min_line_length_mm, settings.px_per_mm
    )
    n_raw = sum(len(runs) for runs in sublines.values())
    return kept, SectionStats(raw=n_raw, merged=n_merged, kept=len(kept))


def trace_channel(
    intensity_map: np.ndarray,
    job: HatchJobV1,
    channel: str,
    checkpoint: Optional[Callable[[int], None]] = None
) -> ChannelResult:
    """Run the full hatching pipeline for one channel.

    Parameters
    ----------
    intensity_map : np.ndarray
        (H, W) float map in [0, 1] for ``channel``
    job : HatchJobV1
        Validated parameter set
    channel : str
        Enabled channel to trace
    checkpoint : Callable[[int], None], optional
        Called with the number of sections processed so far after each
        section. May raise to abort the run (partial output is discarded).

    Returns
    -------
    ChannelResult
        Segments in deterministic order: ascending section, then subline,
        then position along the section
    """
    settings = TraceSettings.from_job(job, channel)
    h, w = intensity_map.shape
    if (w, h) != (int(settings.width_px), int(settings.height_px)):
        logger.warning(
            f"Intensity map {w}×{h} does not match canvas raster "
            f"{int(settings.width_px)}×{int(settings.height_px)}; tracing map extent"
        )
        settings = dataclasses.replace(settings, width_px=float(w), height_px=float(h))

    n_sections = scan_geometry.num_sections(
        settings.width_px, settings.height_px, settings.section_width_px
    )
    scan_lines = scan_geometry.generate_scan_lines(
        settings.width_px,
        settings.height_px,
        settings.angle_deg,
        settings.section_width_px,
        channel_index=settings.channel_index,
        num_enabled=settings.num_enabled,
        line_spacing_px=settings.line_spacing_px,
    )
    sampler = IntensitySampler(intensity_map, radius=settings.sample_radius_px)

    segments = []
    n_raw = n_merged = 0
    for done, section in enumerate(scan_lines, start=1):
        kept, stats = trace_section(section, sampler, settings)
        segments.extend(kept)
        n_raw += stats.raw
        n_merged += stats.merged
        if checkpoint is not None:
            checkpoint(done)

    result = ChannelResult(
        channel=channel,
        segments=tuple(segments),
        n_sections=n_sections,
        n_scan_lines=len(scan_lines),
        n_raw=n_raw,
        n_merged=n_merged,
        n_dropped=n_merged - len(segments),
    )
    logger.info(
        f"Channel {channel}: {len(scan_lines)}/{n_sections} sections, {n_raw} runs, "
        f"{n_raw - n_merged} merged away, {result.n_dropped} too short, {result.line_count} lines"
    )
    return result
