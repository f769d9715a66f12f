"""Test gap merging and minimum-length filtering.

Tests for src.data_pipeline.consolidate:
    - merging disabled at max distance 0 (input returned unchanged)
    - runs are ordered by start parameter before merging
    - merging happens before the length filter, so short dashes can
      combine into a surviving segment

Run:
    pytest tests/test_consolidate.py -v
"""
import pytest

from src.data_pipeline.consolidate import (
    consolidate_sublines,
    consolidate_with_counts,
    filter_short_segments,
    merge_close_segments,
)
from src.data_pipeline.segments import FilteredSegment, RawSegment


def _run(x1, x2, subline=0, y=0.0, length=20.0):
    return RawSegment(
        channel="K", section=1, subline=subline,
        x1=x1, y1=y, x2=x2, y2=y,
        t_start=x1 / length, t_end=x2 / length,
    )


class TestMerge:
    def test_disabled_returns_input(self):
        runs = [_run(10, 12), _run(0, 4)]
        assert merge_close_segments(runs, 0.0) == runs

    def test_gap_within_threshold(self):
        merged = merge_close_segments([_run(0, 4), _run(6, 10)], 2.0)
        assert len(merged) == 1
        assert (merged[0].x1, merged[0].x2) == (0, 10)
        assert merged[0].t_end == pytest.approx(0.5)

    def test_gap_beyond_threshold(self):
        merged = merge_close_segments([_run(0, 4), _run(7, 10)], 2.0)
        assert len(merged) == 2

    def test_unordered_input_sorted_by_t(self):
        merged = merge_close_segments([_run(12, 14), _run(0, 4), _run(5, 10)], 2.0)
        assert [(m.x1, m.x2) for m in merged] == [(0, 14)]

    def test_chain_merges_transitively(self):
        runs = [_run(0, 2), _run(3, 5), _run(6, 8)]
        merged = merge_close_segments(runs, 1.0)
        assert [(m.x1, m.x2) for m in merged] == [(0, 8)]


class TestFilter:
    def test_length_in_mm(self):
        # px_per_mm = 2 → 4 px is 2 mm
        kept = filter_short_segments([_run(0, 4), _run(10, 13)], 2.0, 2.0)
        assert len(kept) == 1
        assert isinstance(kept[0], FilteredSegment)
        assert kept[0].x2 == 4

    def test_zero_min_keeps_all(self):
        assert len(filter_short_segments([_run(0, 0.1)], 0.0, 1.0)) == 1


class TestConsolidate:
    def test_merge_before_filter(self):
        sublines = {0: [_run(0, 4), _run(8, 12)]}
        # Each dash is 4 mm; min length 5 mm drops both unless merged
        assert consolidate_sublines(sublines, 0.0, 5.0, 1.0) == []
        kept = consolidate_sublines(sublines, 4.0, 5.0, 1.0)
        assert len(kept) == 1
        assert (kept[0].x1, kept[0].x2) == (0, 12)

    def test_ordered_by_subline(self):
        sublines = {1: [_run(0, 10, subline=1)], 0: [_run(0, 10, subline=0)]}
        kept = consolidate_sublines(sublines, 0.0, 1.0, 1.0)
        assert [k.subline for k in kept] == [0, 1]

    def test_counts(self):
        sublines = {0: [_run(0, 4), _run(5, 9), _run(15, 16)]}
        kept, n_merged = consolidate_with_counts(sublines, 1.0, 2.0, 1.0)
        assert n_merged == 2
        assert len(kept) == 1
