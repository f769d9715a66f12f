"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Coordinate conversions & finite guards (compute)
    - Channel separation & tone mapping (color)
    - Line clipping & lengths (geometry)
    - Atomic I/O (fs)
    - Profiling (profiler)
    - Hashing for provenance and cache keys (hashing)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (data_pipeline, robot_control).

Convenience imports:
    from src.utils import fs, compute, color, validators
    from src.utils.logging_config import setup_logging, push_context
"""

# Re-export commonly used modules for convenience
from . import color
from . import compute
from . import fs
from . import geometry
from . import hashing
from . import logging_config
from . import profiler
from . import validators

# Common functions for direct import
from .logging_config import push_context, setup_logging

__all__ = [
    # Modules
    'color',
    'compute',
    'fs',
    'geometry',
    'hashing',
    'logging_config',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'push_context',
]
