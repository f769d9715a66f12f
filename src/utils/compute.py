"""Numerics, resolution conversions, and coordinate-frame transforms.

Core utilities:
    - Canvas raster size at a fixed px/mm scale: canvas_size_px()
    - Coordinate frame transforms: image_px_to_machine_mm() and its inverse
    - Rounding that matches raster sampling: round_half_up()
    - Finite guard: clamp_finite()

Invariants:
    - The hatching pipeline works in canvas pixels (image frame, +Y down)
    - Toolpaths and G-code are in machine millimetres (+Y up)
    - Conversions happen at the boundary only (ToolpathSegment construction)
    - Default scale is the CSS reference: 96 px per inch → 96 / 25.4 px/mm
"""

import logging
from typing import Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

# CSS reference resolution, px per millimetre
PX_PER_MM = 96.0 / 25.4

ArrayLike = Union[float, np.ndarray]


def round_half_up(x: ArrayLike) -> ArrayLike:
    """Round to nearest integer with .5 going toward +inf.

    Unlike ``np.round`` (banker's rounding), ``round_half_up(-2.5) == -2`` and
    ``round_half_up(2.5) == 3``. Raster sampling and canvas sizing rely on this.
    """
    out = np.floor(np.asarray(x, dtype=np.float64) + 0.5)
    if np.ndim(out) == 0:
        return int(out)
    return out.astype(np.int64)


def canvas_size_px(
    width_mm: float,
    height_mm: float,
    px_per_mm: float = PX_PER_MM
) -> Tuple[int, int]:
    """Canvas raster size (width_px, height_px) for a physical canvas."""
    return (
        max(1, round_half_up(width_mm * px_per_mm)),
        max(1, round_half_up(height_mm * px_per_mm)),
    )


def image_px_to_machine_mm(
    xy_px: np.ndarray,
    canvas_height_mm: float,
    px_per_mm: float = PX_PER_MM,
    flip_y: bool = True
) -> np.ndarray:
    """Transform image-frame pixel coordinates to machine-frame mm.

    Parameters
    ----------
    xy_px : np.ndarray
        Coordinates in image frame, shape (..., 2) with (x, y).
        Image frame: origin top-left, +Y down
    canvas_height_mm : float
        Canvas height, used for the Y flip
    px_per_mm : float
        Raster scale
    flip_y : bool
        True if machine uses bottom-left origin (+Y up), default True

    Returns
    -------
    np.ndarray
        Coordinates in machine frame, shape (..., 2), canvas-relative
        (the bed offset is added by the G-code generator)
    """
    xy = np.asarray(xy_px, dtype=np.float64) / px_per_mm
    if flip_y:
        xy = xy.copy()
        xy[..., 1] = canvas_height_mm - xy[..., 1]
    return xy


def machine_mm_to_image_px(
    xy_mm: np.ndarray,
    canvas_height_mm: float,
    px_per_mm: float = PX_PER_MM,
    flip_y: bool = True
) -> np.ndarray:
    """Inverse of :func:`image_px_to_machine_mm`."""
    xy = np.array(xy_mm, dtype=np.float64)
    if flip_y:
        xy[..., 1] = canvas_height_mm - xy[..., 1]
    return xy * px_per_mm


def clamp_finite(
    x: np.ndarray,
    min_val: float = -1e30,
    max_val: float = 1e30
) -> np.ndarray:
    """Replace NaN and ±Inf with 0.0, then clamp to range.

    Notes
    -----
    Use sparingly; prefer explicit error handling.
    Logs warning if non-finite values detected.
    """
    x = np.asarray(x, dtype=np.float64)
    if not np.isfinite(x).all():
        logger.warning(
            f"Non-finite values detected: {int(np.isnan(x).sum())} NaNs, "
            f"{int(np.isinf(x).sum())} Infs"
        )
        x = np.where(np.isfinite(x), x, 0.0)
    return np.clip(x, min_val, max_val)


