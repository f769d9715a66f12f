"""Test scan-line generation.

Tests for src.data_pipeline.scan_geometry:
    - Section count N = ceil(diagonal / section_width) × 2
    - Centerlines are centred on the canvas, spaced by the section width
    - Sections that miss the canvas are skipped but keep their index
    - Channel interleave shift

Run:
    pytest tests/test_scan_geometry.py -v
"""
import math

import pytest

from src.data_pipeline import scan_geometry


class TestSectionCount:
    def test_square(self):
        # diagonal 141.42 / 10 → 15 → 30
        assert scan_geometry.num_sections(100, 100, 10) == 30

    def test_scenario_canvas(self):
        diag = math.hypot(189, 189)
        expected = math.ceil(diag / 18.9) * 2
        assert scan_geometry.num_sections(189, 189, 18.9) == expected

    @pytest.mark.parametrize("sw", [0.0, -1.0, math.inf, math.nan])
    def test_invalid_width(self, sw):
        with pytest.raises(ValueError):
            scan_geometry.num_sections(100, 100, sw)

    def test_section_offset_centred(self):
        assert scan_geometry.section_offset(15, 30, 10.0) == 0.0
        assert scan_geometry.section_offset(0, 30, 10.0) == -150.0


class TestScanLines:
    def test_horizontal_sections(self):
        lines = scan_geometry.generate_scan_lines(100, 100, 0.0, 10.0)
        assert [l.section for l in lines] == list(range(10, 21))
        for l in lines:
            assert l.y1 == pytest.approx(50.0 + (l.section - 15) * 10.0)
            assert l.y1 == pytest.approx(l.y2)
            assert l.x1 == pytest.approx(0.0)
            assert l.x2 == pytest.approx(100.0)

    def test_vertical_sections(self):
        lines = scan_geometry.generate_scan_lines(100, 50, 90.0, 10.0)
        assert lines
        for l in lines:
            assert l.x1 == pytest.approx(l.x2, abs=1e-9)
            assert min(l.y1, l.y2) == pytest.approx(0.0)
            assert max(l.y1, l.y2) == pytest.approx(50.0)

    def test_diagonal_sections_inside_canvas(self):
        lines = scan_geometry.generate_scan_lines(80, 60, 45.0, 7.0)
        assert lines
        for l in lines:
            for x, y in ((l.x1, l.y1), (l.x2, l.y2)):
                assert -1e-9 <= x <= 80 + 1e-9
                assert -1e-9 <= y <= 60 + 1e-9
            assert l.length > 0

    def test_ascending_section_index(self):
        lines = scan_geometry.generate_scan_lines(120, 40, 30.0, 5.0)
        sections = [l.section for l in lines]
        assert sections == sorted(sections)
        assert len(set(sections)) == len(sections)


class TestInterleave:
    def test_single_channel_no_shift(self):
        assert scan_geometry.channel_offset_px(0, 1, 1.5) == 0.0
        assert scan_geometry.channel_offset_px(3, 1, 1.5) == 0.0

    def test_multi_channel_shift(self):
        assert scan_geometry.channel_offset_px(2, 4, 1.5) == pytest.approx(3.0)

    def test_shifted_lines(self):
        base = scan_geometry.generate_scan_lines(100, 100, 0.0, 10.0)
        shifted = scan_geometry.generate_scan_lines(
            100, 100, 0.0, 10.0, channel_index=1, num_enabled=2, line_spacing_px=2.0
        )
        by_section = {l.section: l for l in shifted}
        for l in base:
            if l.section in by_section:
                assert by_section[l.section].y1 == pytest.approx(l.y1 + 2.0)
