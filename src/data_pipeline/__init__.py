"""Image → hatch segments, per channel.

Modules:
    - preprocess: Raster loading, canvas fitting, channel intensity maps
    - scan_geometry: Rotated scan centerlines clipped to the canvas
    - line_synth: Intensity sampling and dashed subline synthesis
    - consolidate: Gap merging, then minimum-length filtering
    - hatch_tracer: Per-channel pipeline (trace_channel)
    - scheduler: Batched, cancellable, debounced runs with atomic publish
    - vector_export: SVG drawing document
    - segments: Shared frozen segment types

Workflow:
    1. Image → fit to canvas raster (round(mm × px_per_mm) per axis)
    2. Raster → one [0, 1] intensity map per enabled channel
    3. Scan lines → sampled profiles → raw sublines
    4. Merge close runs, drop short ones → FilteredSegment
    5. Hand off to robot_control for ordering and G-code

All outputs are deterministic: no randomness anywhere in the pipeline.
"""
