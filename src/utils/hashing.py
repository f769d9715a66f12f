"""SHA-256 hashing for provenance and cache keys.

Provides:
    - sha256_file(): Hash input image contents (logged with each run)
    - sha256_array(): Hash raster / intensity-map values (scheduler cache keys)
    - hash_dict(): Hash job parameters (sorted-key JSON)
    - hash_segments(): Fingerprint a traced segment list (determinism checks)

Results are hex strings (64 chars). Arrays hash their dtype and shape along
with their bytes, so a reshaped view never collides with the original.

Note: Module is named `hashing.py` to avoid shadowing builtin `hash()`.
"""

import hashlib
import json
from pathlib import Path
from typing import Iterable, Union

import numpy as np


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    chunk_size : int
        Read chunk size in bytes, default 1 MB

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)

    return sha256.hexdigest()


def sha256_array(a: np.ndarray) -> str:
    """Hash array values together with dtype and shape."""
    a = np.ascontiguousarray(a)
    sha256 = hashlib.sha256()
    sha256.update(f"{a.dtype.str}{a.shape}".encode('utf-8'))
    sha256.update(a.tobytes())
    return sha256.hexdigest()


def sha256_string(s: str) -> str:
    """Compute SHA-256 hash of string."""
    sha256 = hashlib.sha256()
    sha256.update(s.encode('utf-8'))
    return sha256.hexdigest()


def hash_dict(d: dict) -> str:
    """Compute SHA-256 hash of a JSON-serializable dictionary (sorted keys).

    Examples
    --------
    >>> job_hash = hash_dict(job.model_dump(mode="json"))
    """
    json_str = json.dumps(d, sort_keys=True)
    return sha256_string(json_str)


def hash_segments(segments: Iterable, decimals: int = 6) -> str:
    """Fingerprint an ordered sequence of segments.

    Parameters
    ----------
    segments : Iterable
        Objects exposing ``x1, y1, x2, y2``
    decimals : int
        Coordinates are rounded to this many decimals before hashing

    Returns
    -------
    str
        SHA-256 hex digest; equal inputs in equal order give equal digests
    """
    sha256 = hashlib.sha256()
    for seg in segments:
        coords = (seg.x1, seg.y1, seg.x2, seg.y2)
        sha256.update(
            ",".join(f"{c:.{decimals}f}" for c in coords).encode('utf-8')
        )
        sha256.update(b";")
    return sha256.hexdigest()
