"""
Job Intermediate Representation module.

Defines all plotter operations as immutable dataclasses and builds
motion programs from optimized toolpaths. This vocabulary is the
contract between toolpath planning and G-code generation.

All coordinates are in millimeters, canvas-relative, +Y up.
"""

from robot_control.job_ir.builder import ToolpathStats, build_motion_program
from robot_control.job_ir.operations import (
    LinearMove,
    MotionProgram,
    Operation,
    Pause,
    RapidXY,
    SelectChannel,
    ToolDown,
    ToolUp,
)

__all__ = [
    "Operation",
    "SelectChannel",
    "Pause",
    "RapidXY",
    "LinearMove",
    "ToolUp",
    "ToolDown",
    "MotionProgram",
    "ToolpathStats",
    "build_motion_program",
]
