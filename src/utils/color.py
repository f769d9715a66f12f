"""Channel separation and tone mapping for ink channels.

Provides:
    - rgb_to_cmyk(): naive CMYK separation (k = 1 − max(r, g, b))
    - gray_darkness(): single-channel darkness from Rec. 601 luma
    - apply_white_point(): clip highlights and rescale the remainder
    - apply_contrast(): exponent tone curve with clamping

Used by:
    - Preprocessing: per-channel intensity map extraction

All functions operate on numpy float arrays (H, W, 3) or (H, W) in [0, 1].
Channels never interact here; each output map is independent.

The separation is an approximation for pen plotting, not colorimetric:
there is no ICC profile, no dot gain and no under-color removal tuning.
"""

from typing import Dict

import numpy as np


def to_unit_rgb(rgb: np.ndarray) -> np.ndarray:
    """Convert uint8 RGB (H, W, 3) to float64 [0, 1]; float input is clipped."""
    rgb = np.asarray(rgb)
    if rgb.dtype == np.uint8:
        return rgb.astype(np.float64) / 255.0
    return np.clip(rgb.astype(np.float64), 0.0, 1.0)


def rgb_to_cmyk(rgb: np.ndarray) -> Dict[str, np.ndarray]:
    """Separate RGB into C, M, Y, K intensity planes.

    Parameters
    ----------
    rgb : np.ndarray
        Image, shape (H, W, 3), float [0, 1] (uint8 is converted)

    Returns
    -------
    Dict[str, np.ndarray]
        {"C": (H, W), "M": ..., "Y": ..., "K": ...}, each in [0, 1]

    Notes
    -----
    k = 1 − max(r, g, b)
    c = (1 − r − k) / (1 − k), likewise m, y; all three are 0 where k ≥ 1
    (pure black has no chromatic component).
    """
    rgb = to_unit_rgb(rgb)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    k = 1.0 - np.max(rgb, axis=-1)
    denom = 1.0 - k
    black = denom <= 0.0
    safe = np.where(black, 1.0, denom)

    def _chroma(v: np.ndarray) -> np.ndarray:
        out = (1.0 - v - k) / safe
        return np.where(black, 0.0, out)

    return {
        "C": np.clip(_chroma(r), 0.0, 1.0),
        "M": np.clip(_chroma(g), 0.0, 1.0),
        "Y": np.clip(_chroma(b), 0.0, 1.0),
        "K": np.clip(k, 0.0, 1.0),
    }


def gray_darkness(rgb: np.ndarray) -> np.ndarray:
    """Darkness for single-channel mode: 1 − (0.299 r + 0.587 g + 0.114 b)."""
    rgb = to_unit_rgb(rgb)
    luma = 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]
    return np.clip(1.0 - luma, 0.0, 1.0)


def apply_white_point(v: np.ndarray, white_point: float) -> np.ndarray:
    """Map values ≤ white_point to 0, rescale the rest to (v − w) / (1 − w).

    The mapping is continuous at ``w`` (exactly ``w`` maps to 0).

    Raises
    ------
    ValueError
        If white_point is outside [0, 1)
    """
    if not 0.0 <= white_point < 1.0:
        raise ValueError(f"white_point must be in [0, 1), got {white_point}")
    v = np.asarray(v, dtype=np.float64)
    if white_point == 0.0:
        return v
    return np.where(v <= white_point, 0.0, (v - white_point) / (1.0 - white_point))


def apply_contrast(v: np.ndarray, contrast: float) -> np.ndarray:
    """Tone curve v ← v**contrast, clamped to [0, 1]."""
    if contrast <= 0.0:
        raise ValueError(f"contrast must be positive, got {contrast}")
    v = np.clip(np.asarray(v, dtype=np.float64), 0.0, 1.0)
    return np.clip(np.power(v, contrast), 0.0, 1.0)
