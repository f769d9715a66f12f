"""Raster loading, canvas fitting and channel intensity extraction.

Converts a user image into per-channel intensity maps:
    1. Decode with Pillow to RGBA (load_raster)
    2. Fit inside the physical canvas, aspect preserved, centred on white
       (fit_to_canvas); the raster is round(mm × px_per_mm) on each axis
    3. Composite alpha onto white
    4. Separate channels (CMYK or mono darkness) and tone-map each one with
       its own white point and contrast (extract_channel_intensity)

Public API:
    load_raster(path) → RasterImage
    RasterImage.from_array(pixels) → RasterImage
    fit_to_canvas(raster, canvas) → RasterImage
    extract_channel_intensity(raster, channel, contrast, white_point, mode) → (H, W) float64
    extract_intensity_maps(raster, job) → {channel: (H, W) float64}

Every map value lies in [0, 1]. Maps depend only on the raster and that
channel's tone parameters; channels never read each other's maps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

import numpy as np
from PIL import Image

from ..utils import color, compute
from ..utils.validators import CMYK_CHANNELS, CanvasParams, HatchJobV1

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterImage:
    """Immutable RGBA pixel grid, shape (height, width, 4) uint8."""

    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4 or self.pixels.dtype != np.uint8:
            raise ValueError(
                f"RasterImage expects (H, W, 4) uint8, got {self.pixels.shape} {self.pixels.dtype}"
            )
        self.pixels.setflags(write=False)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> RasterImage:
        """Build from (H, W), (H, W, 3) or (H, W, 4) uint8 data (copied)."""
        arr = np.asarray(pixels)
        if arr.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {arr.dtype}")
        if arr.ndim == 2:
            arr = np.stack([arr, arr, arr], axis=-1)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W[, 3|4]) pixels, got shape {arr.shape}")
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=-1)
        return cls(np.ascontiguousarray(arr).copy())

    def to_rgb_on_white(self) -> np.ndarray:
        """Alpha-composite onto white → (H, W, 3) float64 in [0, 1]."""
        px = self.pixels.astype(np.float64) / 255.0
        alpha = px[..., 3:4]
        return px[..., :3] * alpha + (1.0 - alpha)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))


def load_raster(path: Union[str, Path]) -> RasterImage:
    """Decode an image file into an RGBA RasterImage.

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    ValueError
        If Pillow cannot decode it
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    try:
        with Image.open(path) as img:
            rgba = img.convert("RGBA")
    except OSError as e:
        raise ValueError(f"Failed to decode image {path}: {e}") from e

    raster = RasterImage(np.array(rgba, dtype=np.uint8))
    logger.info(f"Loaded {path.name}: {raster.width}×{raster.height} px")
    return raster


def fit_to_canvas(raster: RasterImage, canvas: CanvasParams) -> RasterImage:
    """Fit ``raster`` inside the canvas raster, centred on an opaque white background.

    Parameters
    ----------
    raster : RasterImage
        Source image (any size)
    canvas : CanvasParams
        Physical canvas; output size is round(mm × px_per_mm) per axis

    Returns
    -------
    RasterImage
        Canvas-sized raster. The wider relative dimension fills the canvas;
        the other is letterboxed with white.
    """
    canvas_w, canvas_h = compute.canvas_size_px(canvas.width_mm, canvas.height_mm, canvas.px_per_mm)

    img_aspect = raster.width / raster.height
    canvas_aspect = canvas_w / canvas_h

    if img_aspect > canvas_aspect:
        draw_w = canvas_w
        draw_h = canvas_w / img_aspect
    else:
        draw_h = canvas_h
        draw_w = canvas_h * img_aspect

    draw_w_px = max(1, compute.round_half_up(draw_w))
    draw_h_px = max(1, compute.round_half_up(draw_h))
    offset_x = compute.round_half_up((canvas_w - draw_w_px) / 2.0)
    offset_y = compute.round_half_up((canvas_h - draw_h_px) / 2.0)

    background = Image.new("RGBA", (canvas_w, canvas_h), (255, 255, 255, 255))
    resized = raster.to_pil().resize((draw_w_px, draw_h_px), Image.Resampling.BILINEAR)
    background.alpha_composite(resized, dest=(offset_x, offset_y))

    logger.debug(
        f"Fitted {raster.width}×{raster.height} → {draw_w_px}×{draw_h_px} "
        f"at ({offset_x}, {offset_y}) on {canvas_w}×{canvas_h} canvas"
    )
    return RasterImage(np.array(background, dtype=np.uint8))


def extract_channel_intensity(
    raster: RasterImage,
    channel: str,
    contrast: float = 1.0,
    white_point: float = 0.0,
    mode: str = "cmyk"
) -> np.ndarray:
    """Per-pixel intensity map for one channel.

    Parameters
    ----------
    raster : RasterImage
        Source pixels (alpha composited onto white)
    channel : str
        One of "C", "M", "Y", "K"
    contrast : float
        Exponent γ applied after the white point
    white_point : float
        Values ≤ white_point map to 0, in [0, 1)
    mode : str
        "cmyk" separation or "mono" (grayscale darkness, channel must be "K")

    Returns
    -------
    np.ndarray
        (H, W) float64 in [0, 1]

    Raises
    ------
    ValueError
        On unknown channel/mode or out-of-range tone parameters
    """
    if channel not in CMYK_CHANNELS:
        raise ValueError(f"Unknown channel '{channel}', expected one of {list(CMYK_CHANNELS)}")

    rgb = raster.to_rgb_on_white()
    if mode == "mono":
        if channel != "K":
            raise ValueError(f"mono mode only provides channel 'K', got '{channel}'")
        base = color.gray_darkness(rgb)
    elif mode == "cmyk":
        base = color.rgb_to_cmyk(rgb)[channel]
    else:
        raise ValueError(f"Unknown mode '{mode}', use 'cmyk' or 'mono'")

    v = color.apply_white_point(base, white_point)
    v = color.apply_contrast(v, contrast)
    return np.clip(v, 0.0, 1.0)


def extract_intensity_maps(raster: RasterImage, job: HatchJobV1) -> Dict[str, np.ndarray]:
    """Intensity maps for every enabled channel, keyed by channel name."""
    maps = {}
    for ch in job.ordered_channels():
        params = job.channel_params(ch)
        maps[ch] = extract_channel_intensity(
            raster, ch, contrast=params.contrast, white_point=params.white_point, mode=job.mode
        )
        logger.debug(f"Channel {ch}: mean intensity {float(maps[ch].mean()):.3f}")
    return maps
