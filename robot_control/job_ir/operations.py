"""Job IR operations -- the vocabulary between toolpaths and G-code.

Every possible plotter action is an immutable, slotted dataclass.
Operations use **semantic** names (``ToolDown``, not ``G1 Z0``),
**millimetre** units, and **canvas-relative** coordinates in the plotter
frame (origin at the canvas' bottom-left corner, +Y away from the
operator).  The bed offset is added by the G-code generator.

Grouping
--------
A motion program is a flat list of operations.  Channel blocks start
with ``SelectChannel``; an optional ``Pause`` before a block lets the
operator swap pens.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

MotionProgram = list["Operation"]
"""A complete plotter job: ordered operations, header/footer excluded."""

# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Operation(ABC):
    """Base class for all job operations."""

    pass


# ---------------------------------------------------------------------------
# Setup operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SelectChannel(Operation):
    """Start of a channel block.

    Parameters
    ----------
    channel : str
        Ink channel drawn by the following moves (``"C"``, ``"M"``,
        ``"Y"`` or ``"K"``).
    """

    channel: str

    def __post_init__(self) -> None:
        if not self.channel:
            raise ValueError("channel must be a non-empty string")


@dataclass(frozen=True, slots=True)
class Pause(Operation):
    """Operator pause (pen swap).  The tool is raised beforehand."""

    message: str = "Change pen"


# ---------------------------------------------------------------------------
# Motion operations  (all coordinates are canvas-relative mm, +Y up)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RapidXY(Operation):
    """Travel move -- tool **must** be up.

    Parameters
    ----------
    x, y : float
        Target position in canvas mm.
    """

    x: float
    y: float


@dataclass(frozen=True, slots=True)
class LinearMove(Operation):
    """Single line segment at draw speed with the pen down.

    Parameters
    ----------
    x, y : float
        End-point in canvas mm.
    drag : bool
        ``True`` for a connecting move between two segments that is
        drawn because it is shorter than the z-hop threshold.
    """

    x: float
    y: float
    drag: bool = False


# ---------------------------------------------------------------------------
# Tool operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolUp(Operation):
    """Raise the pen to travel height."""

    pass


@dataclass(frozen=True, slots=True)
class ToolDown(Operation):
    """Lower the pen onto the paper."""

    pass
