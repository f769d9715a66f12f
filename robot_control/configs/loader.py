"""Configuration loader for the pen plotter.

Loads and validates ``machine.yaml`` into typed, frozen dataclasses.
All machine values (bed size, canvas placement, pen heights, feed rates,
z-hop threshold) come from the config -- nothing is hardcoded.

Feed rates are stored in **mm/s** throughout Python.  Conversion to the
G-code ``F`` parameter (mm/min) happens only in the G-code generator.

Usage::

    from robot_control.configs.loader import load_config
    cfg = load_config()                       # default path
    cfg = load_config("/custom/machine.yaml") # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.utils.fs import load_yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkAreaConfig:
    """Plotter bed dimensions in mm (machine frame, origin bottom-left)."""

    x: float
    y: float


@dataclass(frozen=True)
class CanvasPlacementConfig:
    """Where the canvas' bottom-left corner sits on the bed (mm)."""

    offset_x_mm: float
    offset_y_mm: float


@dataclass(frozen=True)
class ZStatesConfig:
    """Pen heights in mm."""

    pen_up_mm: float
    pen_down_mm: float


@dataclass(frozen=True)
class FeedsConfig:
    """Feed rates in mm/s.

    ``draw_mm_s`` is used for drawing and for pen-down drag moves;
    ``travel_mm_s`` for pen-up rapids; ``plunge_mm_s`` for Z moves.
    """

    draw_mm_s: float
    travel_mm_s: float
    plunge_mm_s: float


@dataclass(frozen=True)
class TravelConfig:
    """Travel behaviour between drawn segments.

    Parameters
    ----------
    prevent_zhop_mm : float
        Pen-down gaps up to this length are dragged instead of lifting.
    start_x_mm, start_y_mm : float
        Tool position (canvas-relative machine frame) at program start;
        the optimizer plans from here.
    return_to_origin : bool
        Rapid back to the start point after the final lift.
    """

    prevent_zhop_mm: float
    start_x_mm: float = 0.0
    start_y_mm: float = 0.0
    return_to_origin: bool = True


@dataclass(frozen=True)
class ChannelChangeConfig:
    """Operator pause between channel blocks (pen swap)."""

    pause: bool = False
    message: str = "Change pen"


@dataclass(frozen=True)
class MotionConfig:
    """Motion-planner limits."""

    max_velocity_mm_s: float


@dataclass(frozen=True)
class MachineConfig:
    """Complete machine configuration loaded from ``machine.yaml``.

    All linear dimensions are in **millimeters**.
    All feed rates are in **mm/s**.
    """

    work_area: WorkAreaConfig
    canvas: CanvasPlacementConfig
    z_states: ZStatesConfig
    feeds: FeedsConfig
    travel: TravelConfig
    motion: MotionConfig
    channel_change: ChannelChangeConfig = ChannelChangeConfig()
    comments: bool = True

    # -- Convenience helpers ------------------------------------------------

    def canvas_to_machine(self, x: float, y: float) -> tuple[float, float]:
        """Canvas-relative machine frame (+Y up) → absolute bed coordinates.

        The Y flip from the drawing frame has already happened when
        toolpath segments were built; only the bed offset is added here.
        """
        return x + self.canvas.offset_x_mm, y + self.canvas.offset_y_mm

    @property
    def start_position(self) -> tuple[float, float]:
        return self.travel.start_x_mm, self.travel.start_y_mm


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_config(cfg: MachineConfig) -> None:
    """Validate cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid combination.
    """
    # -- Work area positive -------------------------------------------------
    if cfg.work_area.x <= 0 or cfg.work_area.y <= 0:
        raise ConfigError(
            f"Work area must be positive, got "
            f"{cfg.work_area.x} x {cfg.work_area.y}"
        )

    # -- Canvas origin on the bed ------------------------------------------
    c = cfg.canvas
    if not (0 <= c.offset_x_mm <= cfg.work_area.x):
        raise ConfigError(
            f"Canvas offset_x_mm {c.offset_x_mm:.1f} outside work area "
            f"[0, {cfg.work_area.x:.1f}]"
        )
    if not (0 <= c.offset_y_mm <= cfg.work_area.y):
        raise ConfigError(
            f"Canvas offset_y_mm {c.offset_y_mm:.1f} outside work area "
            f"[0, {cfg.work_area.y:.1f}]"
        )

    # -- Pen heights distinct -----------------------------------------------
    z = cfg.z_states
    if z.pen_up_mm == z.pen_down_mm:
        logger.warning(
            "pen_up_mm == pen_down_mm (%.3f); pen lifts will not move Z",
            z.pen_up_mm,
        )

    # -- Feed rates positive and within motion limits -----------------------
    for name in ("draw_mm_s", "travel_mm_s", "plunge_mm_s"):
        value = getattr(cfg.feeds, name)
        if value <= 0:
            raise ConfigError(f"feeds.{name} must be > 0, got {value}")
        if value > cfg.motion.max_velocity_mm_s:
            raise ConfigError(
                f"feeds.{name} ({value}) exceeds max_velocity_mm_s "
                f"({cfg.motion.max_velocity_mm_s})"
            )

    # -- Travel -------------------------------------------------------------
    if cfg.travel.prevent_zhop_mm < 0:
        raise ConfigError(
            f"travel.prevent_zhop_mm must be >= 0, got "
            f"{cfg.travel.prevent_zhop_mm}"
        )
    sx, sy = cfg.canvas_to_machine(*cfg.start_position)
    if not (0 <= sx <= cfg.work_area.x and 0 <= sy <= cfg.work_area.y):
        raise ConfigError(
            f"Start position ({sx:.1f}, {sy:.1f}) outside work area"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> MachineConfig:
    """Load and validate machine configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``machine.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    MachineConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "machine.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    data: dict[str, Any] = load_yaml(path)
    if not data:
        raise ConfigError(f"Empty configuration file: {path}")

    try:
        # -- work area ------------------------------------------------------
        wa = data["machine"]["work_area_mm"]
        work_area = WorkAreaConfig(x=float(wa["x"]), y=float(wa["y"]))

        # -- canvas placement -----------------------------------------------
        cv = data["canvas"]
        canvas = CanvasPlacementConfig(
            offset_x_mm=float(cv["offset_x_mm"]),
            offset_y_mm=float(cv["offset_y_mm"]),
        )

        # -- z states -------------------------------------------------------
        zd = data["z_states"]
        z_states = ZStatesConfig(
            pen_up_mm=float(zd["pen_up_mm"]),
            pen_down_mm=float(zd["pen_down_mm"]),
        )

        # -- feeds ----------------------------------------------------------
        fd = data["feeds"]
        feeds = FeedsConfig(
            draw_mm_s=float(fd["draw_mm_s"]),
            travel_mm_s=float(fd.get("travel_mm_s", fd["draw_mm_s"])),
            plunge_mm_s=float(fd.get("plunge_mm_s", fd["draw_mm_s"])),
        )

        # -- travel ---------------------------------------------------------
        td = data["travel"]
        travel = TravelConfig(
            prevent_zhop_mm=float(td["prevent_zhop_mm"]),
            start_x_mm=float(td.get("start_x_mm", 0.0)),
            start_y_mm=float(td.get("start_y_mm", 0.0)),
            return_to_origin=bool(td.get("return_to_origin", True)),
        )

        # -- motion ---------------------------------------------------------
        motion = MotionConfig(
            max_velocity_mm_s=float(data["motion"]["max_velocity_mm_s"]),
        )

        # -- channel change (optional) --------------------------------------
        cc = data.get("channel_change") or {}
        channel_change = ChannelChangeConfig(
            pause=bool(cc.get("pause", False)),
            message=str(cc.get("message", "Change pen")),
        )

        config = MachineConfig(
            work_area=work_area,
            canvas=canvas,
            z_states=z_states,
            feeds=feeds,
            travel=travel,
            motion=motion,
            channel_change=channel_change,
            comments=bool(data.get("gcode", {}).get("comments", True)),
        )

        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc
