"""Immutable geometry records passed between hatching stages.

Flow:
    ClippedSegment (one per scan section)
      → IntensitySample profile
      → RawSegment runs per subline
      → merged RawSegment runs (MergedSegment)
      → FilteredSegment (length-checked, handed to optimizer / exporters)

All coordinates are canvas pixels, image frame (top-left origin, +Y down).
Records are frozen so results can be published across threads without copies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ClippedSegment:
    """A section centerline clipped to the canvas rectangle."""

    section: int
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)

    def point_at(self, t):
        """Point at parameter ``t``; ``t`` may be a float or a numpy array."""
        return self.x1 + (self.x2 - self.x1) * t, self.y1 + (self.y2 - self.y1) * t


@dataclass(frozen=True, slots=True)
class IntensitySample:
    """Smoothed intensity at parameter t along a ClippedSegment."""

    t: float
    x: float
    y: float
    intensity: float


@dataclass(frozen=True, slots=True)
class RawSegment:
    """Contiguous run of active samples on one subline.

    ``t_start``/``t_end`` are parameters along the originating centerline,
    used to order runs before gap merging.
    """

    channel: str
    section: int
    subline: int
    x1: float
    y1: float
    x2: float
    y2: float
    t_start: float
    t_end: float

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


# Merging joins runs without changing their shape
MergedSegment = RawSegment


@dataclass(frozen=True, slots=True)
class FilteredSegment:
    """A merged run that passed the minimum length check."""

    channel: str
    section: int
    subline: int
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)

    @classmethod
    def from_raw(cls, seg: RawSegment) -> FilteredSegment:
        return cls(
            channel=seg.channel,
            section=seg.section,
            subline=seg.subline,
            x1=seg.x1,
            y1=seg.y1,
            x2=seg.x2,
            y2=seg.y2,
        )
