"""
Tests for the panel layout engine - frame geometry per layout family.
"""

import pytest

from dreamcatcher.services.comic.panel_layout import LayoutKind, Rect, compute_frames


AREA = Rect(20, 80, 984, 1436)
GUTTER = 12


# ============================================================================
# Geometry invariants
# ============================================================================

@pytest.mark.parametrize("kind", list(LayoutKind) + ["unknown_layout"])
@pytest.mark.parametrize("count", range(1, 9))
def test_frames_stay_inside_area_and_never_overlap(kind, count):
    frames = compute_frames(kind, count, AREA, GUTTER)

    for frame in frames:
        assert AREA.contains(frame)
        assert frame.width > 0 and frame.height > 0

    for i, first in enumerate(frames):
        for second in frames[i + 1:]:
            assert first.intersection_area(second) == pytest.approx(0.0)


@pytest.mark.parametrize("kind", list(LayoutKind))
def test_non_positive_count_returns_no_frames(kind):
    assert compute_frames(kind, 0, AREA, GUTTER) == []
    assert compute_frames(kind, -1, AREA, GUTTER) == []


# ============================================================================
# Families
# ============================================================================

class TestVerticalStrip:
    def test_equal_heights_separated_by_gutter(self):
        frames = compute_frames(LayoutKind.VERTICAL_STRIP, 3, Rect(0, 0, 600, 636), 12)

        assert [f.height for f in frames] == pytest.approx([204, 204, 204])
        assert [f.y for f in frames] == pytest.approx([0, 216, 432])
        assert all(f.width == 600 for f in frames)


class TestGrid:
    def test_two_columns(self):
        frames = compute_frames(LayoutKind.GRID_2XN, 4, Rect(0, 0, 412, 412), 12)

        assert len(frames) == 4
        assert [(f.x, f.y) for f in frames] == pytest.approx([(0, 0), (212, 0), (0, 212), (212, 212)])
        assert all(f.width == pytest.approx(200) for f in frames)

    def test_odd_count_leaves_last_cell_empty(self):
        frames = compute_frames("2x2_grid", 3, Rect(0, 0, 412, 412), 12)
        assert len(frames) == 3
        assert frames[2].x == 0 and frames[2].y == pytest.approx(212)


class TestSingle:
    def test_always_one_frame(self):
        frames = compute_frames(LayoutKind.SINGLE, 5, AREA, GUTTER)
        assert frames == [AREA]


class TestDynamic:
    def test_one_panel_fills_area(self):
        assert compute_frames(LayoutKind.DYNAMIC, 1, AREA, GUTTER) == [AREA]

    def test_two_panels_large_over_small(self):
        area = Rect(0, 0, 1000, 1000)
        top, bottom = compute_frames(LayoutKind.DYNAMIC, 2, area, 10)
        assert top.height == pytest.approx(580)
        assert bottom.y == pytest.approx(590)
        assert bottom.max_y == pytest.approx(1000)

    def test_three_panels_full_width_over_halves(self):
        area = Rect(0, 0, 1000, 1000)
        frames = compute_frames(LayoutKind.DYNAMIC, 3, area, 10)
        assert frames[0].width == 1000
        assert frames[1].width == pytest.approx(495)
        assert frames[2].max_x == pytest.approx(1000)

    def test_four_panels_fill_width(self):
        area = Rect(0, 0, 1000, 1000)
        frames = compute_frames(LayoutKind.DYNAMIC, 4, area, 10)
        assert frames[1].max_x == pytest.approx(1000)
        assert frames[0].width < frames[1].width
        assert frames[2].width > frames[3].width

    def test_more_than_five_falls_back_to_vertical_strip(self):
        assert compute_frames(LayoutKind.DYNAMIC, 6, AREA, GUTTER) == compute_frames(
            LayoutKind.VERTICAL_STRIP, 6, AREA, GUTTER
        )


class TestUnknownKind:
    def test_one_column_for_two_panels(self):
        frames = compute_frames("mystery", 2, Rect(0, 0, 400, 412), 12)
        assert all(f.width == 400 for f in frames)

    def test_two_columns_for_three_panels(self):
        frames = compute_frames(None, 3, Rect(0, 0, 412, 412), 12)
        assert frames[1].x == pytest.approx(212)


class TestLayoutKindParse:
    @pytest.mark.parametrize("value,expected", [
        ("dynamic", LayoutKind.DYNAMIC),
        ("VERTICAL_STRIP", LayoutKind.VERTICAL_STRIP),
        ("2x2_grid", LayoutKind.GRID_2XN),
        ("single", LayoutKind.SINGLE),
        (LayoutKind.SINGLE, LayoutKind.SINGLE),
    ])
    def test_resolves_known_values(self, value, expected):
        assert LayoutKind.parse(value) is expected

    def test_unknown_is_none(self):
        assert LayoutKind.parse("mosaic") is None
