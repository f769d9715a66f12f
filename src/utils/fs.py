"""Atomic filesystem helpers for job configs and plot artifacts.

Provides:
    - Atomic writes: tmp file → fsync → rename, so a plotter watching the
      output folder never picks up a half-written G-code or SVG file
    - YAML load/save (PyYAML safe_load / safe_dump)
    - Intensity-map snapshots as grayscale PNG (debug output)
    - Per-channel artifact naming

Usage:
    from src.utils import fs
    fs.atomic_write_text(out_dir / "plot.gcode", gcode)
    fs.atomic_yaml_dump(job.model_dump(mode="json"), out_dir / "job.yaml")
    fs.channel_artifact_path(out_dir / "plot.svg", "K")  # → plot_K.svg
"""

import os
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    RuntimeError
        If the write or the rename fails; the temporary file is removed.

    Notes
    -----
    The tmp file lives in the target directory so the rename stays on one
    filesystem.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        # Overwrites existing file on POSIX
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = "utf-8"
) -> None:
    """Write text to file atomically (wrapper around atomic_write_bytes)."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_save_intensity_map(intensity: np.ndarray, path: Union[str, Path]) -> None:
    """Save a [0,1] intensity map as an 8-bit grayscale PNG, atomically.

    Ink-heavy pixels are written dark (1.0 → 0), matching how the channel
    will look once plotted.

    Parameters
    ----------
    intensity : np.ndarray
        (H, W) float map in [0, 1]
    path : Union[str, Path]
        Target file path (extension determines format)
    """
    path = Path(path)
    ensure_dir(path.parent)

    img = np.clip(1.0 - np.asarray(intensity, dtype=np.float64), 0.0, 1.0)
    img = np.round(img * 255.0).astype(np.uint8)

    tmp_path = path.with_name(path.stem + ".tmp" + path.suffix)
    try:
        Image.fromarray(img).save(tmp_path)
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to save image {path} atomically: {e}") from e


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save object as YAML atomically (safe_dump, insertion order kept)."""
    yaml_str = yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True
    )
    atomic_write_bytes(Path(path), yaml_str.encode('utf-8'))


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content ({} for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e

    return data if data is not None else {}


def channel_artifact_path(path: Union[str, Path], channel: str) -> Path:
    """Derive the per-channel artifact path: ``out/plot.svg`` → ``out/plot_C.svg``."""
    path = Path(path)
    return path.with_name(f"{path.stem}_{channel}{path.suffix}")
