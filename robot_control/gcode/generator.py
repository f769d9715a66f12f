"""G-code generator -- Job IR operations to G-code strings.

The canvas → bed offset is applied **here**; operations arrive in
canvas-relative plotter mm (+Y up, already flipped from the image
frame).  The generated G-code uses absolute machine coordinates only.

Feed rate convention:
    Python stores feed rates in **mm/s**.  This module converts to the
    G-code ``F`` parameter (mm/min) at the generation boundary::

        F_value = feed_mm_s * 60.0

Program shape::

    ; header comments
    G21 / G90 / G94 / F<draw>
    ... one block per channel ...
    pen up (if down), optional return to start, M30
"""

from __future__ import annotations

import logging
from io import StringIO

from robot_control.configs.loader import MachineConfig
from robot_control.job_ir.operations import (
    LinearMove,
    Operation,
    Pause,
    RapidXY,
    SelectChannel,
    ToolDown,
    ToolUp,
)

logger = logging.getLogger(__name__)


class GCodeError(Exception):
    """Raised when G-code generation fails due to invalid input."""

    pass


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _f(feed_mm_s: float) -> str:
    """Convert mm/s feed rate to G-code ``F`` parameter (mm/min)."""
    return f"F{feed_mm_s * 60.0:.1f}"


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class GCodeGenerator:
    """Convert Job IR operations to G-code.

    Parameters
    ----------
    config : MachineConfig
        Validated machine configuration.

    Notes
    -----
    Every XY word is written with three decimals.  Rapids carry the
    travel feed, draw and drag moves the draw feed (or the op's
    override), Z moves the plunge feed.
    """

    def __init__(self, config: MachineConfig) -> None:
        self._cfg = config
        self._tool_is_up: bool = True
        self._moves: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(self, operations: list[Operation]) -> str:
        """Generate G-code for a flat list of operations.

        Parameters
        ----------
        operations : list[Operation]
            Job IR operations (canvas-relative, mm).

        Returns
        -------
        str
            Complete G-code program including header and footer.

        Raises
        ------
        GCodeError
            If any commanded position violates soft limits.
        """
        buf = StringIO()
        self._reset_state()
        self._write_header(buf)

        for op in operations:
            self._generate_op(op, buf)

        self._write_footer(buf)
        logger.debug("Generated %d XY moves", self._moves)
        return buf.getvalue()

    # ------------------------------------------------------------------
    # Internal: per-operation dispatch
    # ------------------------------------------------------------------

    def _reset_state(self) -> None:
        self._tool_is_up = True
        self._moves = 0

    def _comment(self, text: str) -> str:
        return f" ; {text}" if self._cfg.comments else ""

    def _generate_op(self, op: Operation, buf: StringIO) -> None:
        if isinstance(op, ToolUp):
            self._gen_tool_up(buf)
        elif isinstance(op, ToolDown):
            self._gen_tool_down(buf)
        elif isinstance(op, RapidXY):
            self._gen_rapid(op, buf)
        elif isinstance(op, LinearMove):
            self._gen_linear(op, buf)
        elif isinstance(op, SelectChannel):
            self._gen_select_channel(op, buf)
        elif isinstance(op, Pause):
            self._gen_pause(op, buf)
        else:
            logger.warning("Unsupported operation: %s", type(op).__name__)

    # ------------------------------------------------------------------
    # Individual generators
    # ------------------------------------------------------------------

    def _gen_select_channel(self, op: SelectChannel, buf: StringIO) -> None:
        buf.write(f"; --- Channel {op.channel} ---\n")

    def _gen_pause(self, op: Pause, buf: StringIO) -> None:
        if not self._tool_is_up:
            self._gen_tool_up(buf)
        buf.write(f"M0{self._comment(op.message)}\n")

    def _gen_tool_up(self, buf: StringIO) -> None:
        z = self._cfg.z_states.pen_up_mm
        buf.write(
            f"G0 Z{z:.3f} {_f(self._cfg.feeds.plunge_mm_s)}"
            f"{self._comment('Pen up')}\n"
        )
        self._tool_is_up = True

    def _gen_tool_down(self, buf: StringIO) -> None:
        z = self._cfg.z_states.pen_down_mm
        buf.write(
            f"G1 Z{z:.3f} {_f(self._cfg.feeds.plunge_mm_s)}"
            f"{self._comment('Pen down')}\n"
        )
        self._tool_is_up = False

    def _gen_rapid(self, op: RapidXY, buf: StringIO) -> None:
        if not self._tool_is_up:
            raise GCodeError(
                f"RapidXY to ({op.x:.3f}, {op.y:.3f}) with the pen down"
            )
        mx, my = self._cfg.canvas_to_machine(op.x, op.y)
        self._validate_xy(mx, my)
        buf.write(
            f"G0 X{mx:.3f} Y{my:.3f} {_f(self._cfg.feeds.travel_mm_s)}"
            f"{self._comment('Move')}\n"
        )
        self._moves += 1

    def _gen_linear(self, op: LinearMove, buf: StringIO) -> None:
        mx, my = self._cfg.canvas_to_machine(op.x, op.y)
        self._validate_xy(mx, my)
        label = "Drag" if op.drag else "Draw"
        buf.write(
            f"G1 X{mx:.3f} Y{my:.3f} {_f(self._cfg.feeds.draw_mm_s)}"
            f"{self._comment(label)}\n"
        )
        self._moves += 1

    # ------------------------------------------------------------------
    # Header / footer
    # ------------------------------------------------------------------

    def _write_header(self, buf: StringIO) -> None:
        cfg = self._cfg
        buf.write("; Generated by hatch-plotter G-code generator\n")
        buf.write(f"; Draw feed: {cfg.feeds.draw_mm_s * 60.0:.1f} mm/min\n")
        buf.write(f"; Travel feed: {cfg.feeds.travel_mm_s * 60.0:.1f} mm/min\n")
        buf.write(f"; Pen down Z: {cfg.z_states.pen_down_mm:.3f}\n")
        buf.write(f"; Pen up Z: {cfg.z_states.pen_up_mm:.3f}\n")
        buf.write(f"; Z-hop threshold: {cfg.travel.prevent_zhop_mm:.3f} mm\n")
        buf.write("G21 ; Set units to millimeters\n")
        buf.write("G90 ; Absolute positioning\n")
        buf.write("G94 ; Feed rate per minute\n")
        buf.write(f"{_f(cfg.feeds.draw_mm_s)}\n")
        buf.write("\n")

    def _write_footer(self, buf: StringIO) -> None:
        buf.write("\n")
        buf.write("; --- End of job ---\n")
        if not self._tool_is_up:
            self._gen_tool_up(buf)
        if self._cfg.travel.return_to_origin:
            sx, sy = self._cfg.start_position
            mx, my = self._cfg.canvas_to_machine(sx, sy)
            buf.write(
                f"G0 X{mx:.3f} Y{my:.3f} {_f(self._cfg.feeds.travel_mm_s)}"
                f"{self._comment('Return to origin')}\n"
            )
        buf.write(f"M30{self._comment('Program end')}\n")

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_xy(self, mx: float, my: float) -> None:
        """Reject positions outside the machine work area.

        Parameters
        ----------
        mx, my : float
            Absolute machine coordinates in mm.

        Raises
        ------
        GCodeError
            If either coordinate is out of bounds.
        """
        wa = self._cfg.work_area
        if mx < 0 or mx > wa.x:
            raise GCodeError(
                f"X={mx:.3f} mm outside work area [0, {wa.x:.1f}]"
            )
        if my < 0 or my > wa.y:
            raise GCodeError(
                f"Y={my:.3f} mm outside work area [0, {wa.y:.1f}]"
            )
