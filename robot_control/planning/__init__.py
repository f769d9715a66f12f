"""Toolpath planning: pixel → plotter frame conversion and path ordering."""

from robot_control.planning.optimizer import (
    ToolpathSegment,
    optimize_channel_blocks,
    optimize_path,
    path_travel_length,
    to_toolpath_segments,
)

__all__ = [
    "ToolpathSegment",
    "optimize_channel_blocks",
    "optimize_path",
    "path_travel_length",
    "to_toolpath_segments",
]
