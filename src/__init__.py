"""Hatch Plotter: raster images to pen-plotter hatching.

This package holds the image-side half of the pipeline: tone-mapped
channel separation, rotated scan geometry, variable-density line
synthesis, segment consolidation, SVG export and the chunked scheduler.
Toolpath ordering and G-code live in ``robot_control``.

Architecture layers (strict one-way dependency):
    scripts/ → robot_control/ → src/data_pipeline/ → src/utils/

Key invariants:
    - Pixel coordinates (top-left origin, +Y down) until toolpath
      conversion; plotter millimetres (+Y up) afterwards
    - One immutable parameter set (HatchJobV1) per run
    - Channels are independent until export
    - YAML-only configs
    - Identical inputs give byte-identical outputs
"""

__version__ = "0.1.0"
