"""
Robot Control Package.

Plotter-side half of the hatching pipeline: orders hatch segments into
toolpaths, builds a Job IR motion program and renders it as G-code.

Subpackages:
    planning: Pixel → plotter frame conversion and greedy path ordering
    job_ir: Intermediate representation for plotter operations
    gcode: G-code generation from Job IR
    configs: Machine configuration loading and validation
"""

__all__ = ["planning", "job_ir", "gcode", "configs"]
