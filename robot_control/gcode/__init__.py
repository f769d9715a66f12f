"""
G-code generation module.

Converts Job IR operations to G-code strings with the canvas → bed
offset, feed conversion and soft-limit checks.
"""

from robot_control.gcode.generator import GCodeError, GCodeGenerator

__all__ = ["GCodeError", "GCodeGenerator"]
