"""Test channel separation and tone mapping.

Tests for src.utils.color:
    - CMYK separation of primaries, black and white
    - Grayscale darkness (Rec. 601 luma)
    - White point clipping is continuous and rescales to [0, 1]
    - Contrast exponent and parameter validation

Run:
    pytest tests/test_color.py -v
"""
import numpy as np
import pytest

from src.utils import color


def _px(r, g, b):
    return np.array([[[r, g, b]]], dtype=np.float64)


class TestCmyk:
    def test_black_is_pure_k(self):
        out = color.rgb_to_cmyk(_px(0, 0, 0))
        assert out["K"][0, 0] == pytest.approx(1.0)
        for ch in "CMY":
            assert out[ch][0, 0] == 0.0

    def test_white_is_empty(self):
        out = color.rgb_to_cmyk(_px(1, 1, 1))
        for ch in "CMYK":
            assert out[ch][0, 0] == pytest.approx(0.0)

    def test_cyan(self):
        out = color.rgb_to_cmyk(_px(0, 1, 1))
        assert out["C"][0, 0] == pytest.approx(1.0)
        assert out["M"][0, 0] == pytest.approx(0.0)
        assert out["K"][0, 0] == pytest.approx(0.0)

    def test_red_is_magenta_plus_yellow(self):
        out = color.rgb_to_cmyk(_px(1, 0, 0))
        assert out["C"][0, 0] == pytest.approx(0.0)
        assert out["M"][0, 0] == pytest.approx(1.0)
        assert out["Y"][0, 0] == pytest.approx(1.0)

    def test_uint8_input(self):
        rgb = np.full((2, 3, 3), 255, dtype=np.uint8)
        out = color.rgb_to_cmyk(rgb)
        assert out["K"].shape == (2, 3)
        assert np.allclose(out["K"], 0.0)

    def test_bounds(self):
        rng = np.random.default_rng(0)
        out = color.rgb_to_cmyk(rng.random((8, 8, 3)))
        for plane in out.values():
            assert plane.min() >= 0.0
            assert plane.max() <= 1.0


class TestGray:
    def test_gray_darkness(self):
        assert color.gray_darkness(_px(0, 0, 0))[0, 0] == pytest.approx(1.0)
        assert color.gray_darkness(_px(1, 1, 1))[0, 0] == pytest.approx(0.0)
        assert color.gray_darkness(_px(0, 1, 0))[0, 0] == pytest.approx(1.0 - 0.587)


class TestTone:
    def test_white_point_clips_and_rescales(self):
        v = np.array([0.0, 0.2, 0.6, 1.0])
        out = color.apply_white_point(v, 0.2)
        np.testing.assert_allclose(out, [0.0, 0.0, 0.5, 1.0])

    def test_white_point_zero_is_identity(self):
        v = np.array([0.1, 0.9])
        np.testing.assert_array_equal(color.apply_white_point(v, 0.0), v)

    def test_white_point_range(self):
        with pytest.raises(ValueError, match="white_point"):
            color.apply_white_point(np.zeros(1), 1.0)

    def test_contrast(self):
        out = color.apply_contrast(np.array([0.0, 0.5, 1.0]), 2.0)
        np.testing.assert_allclose(out, [0.0, 0.25, 1.0])

    def test_contrast_must_be_positive(self):
        with pytest.raises(ValueError, match="contrast"):
            color.apply_contrast(np.zeros(1), 0.0)
