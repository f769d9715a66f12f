"""Test hatch job schema validation.

Tests for src.utils.validators:
    - The shipped configs/hatch_job_v1.yaml loads
    - Field ranges and cross-field rules reject bad parameter sets
    - with_overrides merges nested sections and revalidates
    - Derived accessors (ordered channels, per-channel spacing)

Run:
    pytest tests/test_schemas.py -v
"""
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from src.utils import validators
from src.utils.validators import CanvasParams, HatchJobV1

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def job():
    return HatchJobV1(canvas=CanvasParams(width_mm=100.0, height_mm=80.0))


def test_shipped_config_loads():
    cfg = validators.load_hatch_job_config(ROOT / "configs" / "hatch_job_v1.yaml")
    assert cfg.schema_version == "hatch_job.v1"
    assert cfg.ordered_channels() == ["C", "M", "Y", "K"]
    assert cfg.channel_params("K").contrast > 0


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        validators.load_hatch_job_config(tmp_path / "missing.yaml")


def test_invalid_config_file(tmp_path):
    path = tmp_path / "job.yaml"
    path.write_text(yaml.safe_dump({
        "schema": "hatch_job.v1",
        "canvas": {"width_mm": -5, "height_mm": 10},
    }))
    with pytest.raises(ValueError, match="validation failed"):
        validators.load_hatch_job_config(path)


def test_wrong_schema_version():
    with pytest.raises(ValidationError):
        HatchJobV1(schema="hatch_job.v2", canvas={"width_mm": 10, "height_mm": 10})


def test_defaults(job):
    assert job.mode == "cmyk"
    assert job.enabled_channels == ["K"]
    assert job.hatch.max_lines_per_channel == 5
    assert job.scheduler.debounce_ms == 500.0


@pytest.mark.parametrize("field,value", [
    ("section_width_mm", 0.0),
    ("line_spacing_mm", -1.0),
    ("max_lines_per_channel", 0),
    ("max_lines_per_channel", 21),
    ("max_merge_distance_mm", -0.1),
])
def test_hatch_ranges(field, value):
    with pytest.raises(ValidationError):
        HatchJobV1(canvas={"width_mm": 10, "height_mm": 10}, hatch={field: value})


def test_unknown_channel():
    with pytest.raises(ValidationError, match="Unknown channel"):
        HatchJobV1(canvas={"width_mm": 10, "height_mm": 10}, enabled_channels=["R"])


def test_duplicate_channel():
    with pytest.raises(ValidationError, match="Duplicate"):
        HatchJobV1(canvas={"width_mm": 10, "height_mm": 10}, enabled_channels=["K", "K"])


def test_mono_only_k():
    with pytest.raises(ValidationError, match="mono"):
        HatchJobV1(canvas={"width_mm": 10, "height_mm": 10}, mode="mono",
                   enabled_channels=["C"])


def test_enabled_must_be_ordered():
    with pytest.raises(ValidationError, match="missing from channel_order"):
        HatchJobV1(canvas={"width_mm": 10, "height_mm": 10},
                   enabled_channels=["C", "K"], channel_order=["K"])


def test_empty_enabled_allowed():
    job = HatchJobV1(canvas={"width_mm": 10, "height_mm": 10}, enabled_channels=[])
    assert job.ordered_channels() == []


def test_frozen(job):
    with pytest.raises(ValidationError):
        job.mode = "mono"


def test_ordered_channels_follow_order():
    job = HatchJobV1(canvas={"width_mm": 10, "height_mm": 10},
                     enabled_channels=["K", "C"], channel_order=["Y", "K", "M", "C"])
    assert job.ordered_channels() == ["K", "C"]


def test_with_overrides_merges_nested(job):
    new = job.with_overrides(hatch={"line_angle_deg": 30.0})
    assert new.hatch.line_angle_deg == 30.0
    assert new.hatch.section_width_mm == job.hatch.section_width_mm
    assert job.hatch.line_angle_deg == 45.0


def test_with_overrides_channels(job):
    a = job.with_overrides(channels={"K": {"contrast": 2.0}})
    b = a.with_overrides(channels={"K": {"white_point": 0.3}})
    assert b.channel_params("K").contrast == 2.0
    assert b.channel_params("K").white_point == 0.3


def test_with_overrides_invalid(job):
    with pytest.raises(ValueError, match="override validation failed"):
        job.with_overrides(hatch={"section_width_mm": -1.0})


def test_line_spacing_override(job):
    new = job.with_overrides(channels={"K": {"line_spacing_mm": 0.8}})
    assert new.line_spacing_mm_for("K") == 0.8
    assert new.line_spacing_mm_for("C") == job.hatch.line_spacing_mm
