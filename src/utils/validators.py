"""YAML schema validation and config loading for hatch jobs.

Provides centralized validation using pydantic:
    - Hatch job schema (hatch_job.v1.yaml): canvas, hatch geometry, channel
      tone mapping and scheduler timing

A validated ``HatchJobV1`` is the single immutable parameter set threaded
through every pipeline stage. Edits produce a new instance via
``with_overrides``; nothing downstream mutates it.

Units:
    - Geometry: millimeters (mm), converted to pixels with ``canvas.px_per_mm``
    - Angles: degrees
    - Tone: [0.0, 1.0] for white point, contrast is an exponent

Usage:
    from src.utils import validators

    job = validators.load_hatch_job_config("configs/hatch_job_v1.yaml")
    job = job.with_overrides(channels={"K": {"contrast": 1.4}})
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.utils.compute import PX_PER_MM

CMYK_CHANNELS: Tuple[str, ...] = ("C", "M", "Y", "K")

# Optimizer is O(n²) in segments; keep per-channel density bounded
MAX_LINES_PER_CHANNEL_CAP = 20


# ============================================================================
# HATCH JOB SCHEMA V1
# ============================================================================

class CanvasParams(BaseModel):
    """Physical canvas and raster resolution."""
    model_config = ConfigDict(frozen=True)

    width_mm: float = Field(..., gt=0.0, le=2000.0, description="Canvas width (mm)")
    height_mm: float = Field(..., gt=0.0, le=2000.0, description="Canvas height (mm)")
    px_per_mm: float = Field(PX_PER_MM, gt=0.0, le=100.0, description="Raster pixels per mm")

    @property
    def width_px(self) -> float:
        return self.width_mm * self.px_per_mm

    @property
    def height_px(self) -> float:
        return self.height_mm * self.px_per_mm


class HatchParams(BaseModel):
    """Scan geometry and line synthesis parameters shared by all channels."""
    model_config = ConfigDict(frozen=True)

    pen_diameter_mm: float = Field(0.5, gt=0.0, le=10.0, description="Pen tip diameter (stroke width)")
    line_angle_deg: float = Field(45.0, ge=-360.0, le=360.0, description="Hatch angle")
    section_width_mm: float = Field(5.0, gt=0.0, le=500.0, description="Spacing between scan centerlines")
    line_spacing_mm: float = Field(0.4, gt=0.0, le=50.0, description="Spacing between sublines in a section")
    min_line_length_mm: float = Field(2.0, ge=0.0, le=500.0, description="Shorter segments are dropped")
    max_merge_distance_mm: float = Field(0.0, ge=0.0, le=500.0, description="Gaps up to this are closed")
    max_lines_per_channel: int = Field(
        5, ge=1, le=MAX_LINES_PER_CHANNEL_CAP, description="Sublines per section at full intensity"
    )
    sample_radius_px: int = Field(3, ge=0, le=25, description="Box-filter radius for intensity sampling")
    sample_step_px: float = Field(2.0, gt=0.0, le=50.0, description="Distance between profile samples")


class ChannelParams(BaseModel):
    """Per-channel tone mapping and optional spacing override."""
    model_config = ConfigDict(frozen=True)

    contrast: float = Field(1.0, gt=0.0, le=10.0, description="Exponent γ applied after white point")
    white_point: float = Field(0.0, ge=0.0, lt=1.0, description="Intensities ≤ this map to 0")
    line_spacing_mm: Optional[float] = Field(None, gt=0.0, le=50.0, description="Overrides hatch.line_spacing_mm")


class SchedulerParams(BaseModel):
    """Chunked execution timing."""
    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(50, ge=1, le=10_000, description="Scan sections per batch")
    time_budget_ms: float = Field(16.0, gt=0.0, le=60_000.0, description="Soft budget before yielding")
    debounce_ms: float = Field(500.0, ge=0.0, le=60_000.0, description="Coalescing delay for edits")


class HatchJobV1(BaseModel):
    """Hatch job schema v1 (complete parameter set for one run)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_version: str = Field("hatch_job.v1", alias="schema", description="Schema version")
    canvas: CanvasParams
    hatch: HatchParams = Field(default_factory=HatchParams)
    mode: str = Field("cmyk", description="'cmyk' (C/M/Y/K separations) or 'mono' (grayscale as K)")
    enabled_channels: List[str] = Field(default_factory=lambda: ["K"])
    channel_order: List[str] = Field(default_factory=lambda: list(CMYK_CHANNELS))
    channels: Dict[str, ChannelParams] = Field(default_factory=dict)
    scheduler: SchedulerParams = Field(default_factory=SchedulerParams)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "hatch_job.v1":
            raise ValueError(f"Expected schema 'hatch_job.v1', got '{v}'")
        return v

    @field_validator('mode')
    @classmethod
    def validate_mode(cls, v: str) -> str:
        allowed = {"cmyk", "mono"}
        if v not in allowed:
            raise ValueError(f"mode must be one of {sorted(allowed)}, got '{v}'")
        return v

    @field_validator('enabled_channels', 'channel_order')
    @classmethod
    def validate_channel_names(cls, v: List[str]) -> List[str]:
        for ch in v:
            if ch not in CMYK_CHANNELS:
                raise ValueError(f"Unknown channel '{ch}', expected one of {list(CMYK_CHANNELS)}")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate channel in {v}")
        return v

    @model_validator(mode='after')
    def validate_channels(self) -> 'HatchJobV1':
        """Cross-field checks: mono mode, ordering coverage, known overrides."""
        if self.mode == "mono" and any(ch != "K" for ch in self.enabled_channels):
            raise ValueError(
                f"mono mode draws a single grayscale channel 'K', got enabled_channels={self.enabled_channels}"
            )
        missing = [ch for ch in self.enabled_channels if ch not in self.channel_order]
        if missing:
            raise ValueError(f"Enabled channels {missing} missing from channel_order {self.channel_order}")
        for ch in self.channels:
            if ch not in CMYK_CHANNELS:
                raise ValueError(f"channels: unknown channel '{ch}'")
        return self

    # ------------------------------------------------------------------
    # Derived accessors
    # ------------------------------------------------------------------

    def channel_params(self, channel: str) -> ChannelParams:
        """Tone parameters for ``channel`` (defaults if not configured)."""
        return self.channels.get(channel, ChannelParams())

    def line_spacing_mm_for(self, channel: str) -> float:
        override = self.channel_params(channel).line_spacing_mm
        return override if override is not None else self.hatch.line_spacing_mm

    def ordered_channels(self) -> List[str]:
        """Enabled channels in ``channel_order`` (drawing) order."""
        return [ch for ch in self.channel_order if ch in self.enabled_channels]

    def with_overrides(self, **updates: Any) -> 'HatchJobV1':
        """Return a new validated job with nested fields replaced.

        Nested dicts are merged one level deep per section, so
        ``with_overrides(hatch={"line_angle_deg": 30})`` keeps every other
        hatch field. ``channels={"K": {...}}`` merges into that channel only.

        Raises
        ------
        ValueError
            If the resulting parameter set fails validation
        """
        data = self.model_dump(by_alias=True)
        for key, value in updates.items():
            if key == "channels" and isinstance(value, dict):
                merged = dict(data.get("channels", {}))
                for ch, ch_updates in value.items():
                    merged[ch] = {**merged.get(ch, {}), **dict(ch_updates)}
                data["channels"] = merged
            elif isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        try:
            return HatchJobV1(**data)
        except Exception as e:
            raise ValueError(f"Hatch job override validation failed: {e}") from e


# ============================================================================
# PUBLIC API
# ============================================================================

def load_hatch_job_config(path: Union[str, Path]) -> HatchJobV1:
    """Load and validate a hatch job config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to hatch_job.v1.yaml file

    Returns
    -------
    HatchJobV1
        Validated, frozen job configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Hatch job config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return HatchJobV1(**data)
    except Exception as e:
        raise ValueError(f"Hatch job config validation failed at {path}: {e}") from e
