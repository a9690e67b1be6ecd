"""
Panel Layout Engine

Computes panel rectangles inside a page content area for a layout family.

Uniform families (vertical strip, 2-column grid) are derived from a formula;
the "dynamic" family uses hand-tuned asymmetric compositions for 1-5 panels
and falls back to vertical stacking beyond that.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union


class LayoutKind(str, Enum):
    """Layout families. Values match the layout_type strings used by page plans."""
    SINGLE = "single_splash"
    VERTICAL_STRIP = "vertical_strip"
    GRID_2XN = "2x2_grid"
    DYNAMIC = "dynamic"

    @classmethod
    def parse(cls, value: Union["LayoutKind", str, None]) -> Optional["LayoutKind"]:
        """Resolve a layout kind from an enum, value, or member name. None if unrecognized."""
        if isinstance(value, LayoutKind):
            return value
        if not value:
            return None
        normalized = value.strip().lower()
        for kind in cls:
            if normalized in (kind.value, kind.name.lower()):
                return kind
        return _LAYOUT_ALIASES.get(normalized.replace("_", "").replace("-", ""))


_LAYOUT_ALIASES = {
    "single": LayoutKind.SINGLE,
    "singlesplash": LayoutKind.SINGLE,
    "verticalstrip": LayoutKind.VERTICAL_STRIP,
    "vertical": LayoutKind.VERTICAL_STRIP,
    "grid2xn": LayoutKind.GRID_2XN,
    "2x2grid": LayoutKind.GRID_2XN,
    "grid": LayoutKind.GRID_2XN,
}


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in page coordinates (origin top-left)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2

    def inset(self, dx: float, dy: Optional[float] = None) -> "Rect":
        """Shrink by dx horizontally and dy vertically on every side."""
        dy = dx if dy is None else dy
        return Rect(self.x + dx, self.y + dy, self.width - dx * 2, self.height - dy * 2)

    def intersection_area(self, other: "Rect") -> float:
        overlap_w = min(self.max_x, other.max_x) - max(self.min_x, other.min_x)
        overlap_h = min(self.max_y, other.max_y) - max(self.min_y, other.min_y)
        if overlap_w <= 0 or overlap_h <= 0:
            return 0.0
        return overlap_w * overlap_h

    def contains(self, other: "Rect", tolerance: float = 1e-6) -> bool:
        return (
            other.min_x >= self.min_x - tolerance
            and other.min_y >= self.min_y - tolerance
            and other.max_x <= self.max_x + tolerance
            and other.max_y <= self.max_y + tolerance
        )

    def to_box(self) -> Tuple[int, int, int, int]:
        """Integer (left, top, right, bottom) box for raster drawing."""
        return (
            int(round(self.min_x)),
            int(round(self.min_y)),
            int(round(self.max_x)),
            int(round(self.max_y)),
        )


def compute_frames(
    layout_kind: Union[LayoutKind, str, None],
    panel_count: int,
    content_area: Rect,
    gutter: float,
) -> List[Rect]:
    """
    Compute panel rectangles for a layout family.

    Args:
        layout_kind: Layout family; unrecognized values fall back to a grid
            with one column for up to two panels and two columns otherwise
        panel_count: Number of panels to place
        content_area: Rectangle the panels must fit inside
        gutter: Spacing between adjacent panels

    Returns:
        Rectangles in draw order. "single_splash" always returns one
        rectangle; callers drop panels beyond the returned count.
    """
    if panel_count <= 0:
        return []

    kind = LayoutKind.parse(layout_kind)

    if kind is LayoutKind.SINGLE:
        return [content_area]
    if kind is LayoutKind.VERTICAL_STRIP:
        return _vertical_strip(panel_count, content_area, gutter)
    if kind is LayoutKind.GRID_2XN:
        return _grid(panel_count, 2, content_area, gutter)
    if kind is LayoutKind.DYNAMIC:
        return _dynamic(panel_count, content_area, gutter)

    cols = 1 if panel_count <= 2 else 2
    return _grid(panel_count, cols, content_area, gutter)


def _vertical_strip(count: int, area: Rect, gutter: float) -> List[Rect]:
    panel_h = (area.height - gutter * (count - 1)) / count
    return [
        Rect(area.x, area.y + (panel_h + gutter) * i, area.width, panel_h)
        for i in range(count)
    ]


def _grid(count: int, cols: int, area: Rect, gutter: float) -> List[Rect]:
    rows = math.ceil(count / cols)
    panel_w = (area.width - gutter * (cols - 1)) / cols
    panel_h = (area.height - gutter * (rows - 1)) / rows
    return [
        Rect(
            area.x + (panel_w + gutter) * (i % cols),
            area.y + (panel_h + gutter) * (i // cols),
            panel_w,
            panel_h,
        )
        for i in range(count)
    ]


def _dynamic(count: int, area: Rect, gutter: float) -> List[Rect]:
    x, y, w, h = area.x, area.y, area.width, area.height

    if count == 1:
        return [Rect(x, y, w, h)]

    if count == 2:
        # Large top panel, smaller bottom panel
        return [
            Rect(x, y, w, h * 0.58),
            Rect(x, y + h * 0.58 + gutter, w, h * 0.42 - gutter),
        ]

    if count == 3:
        # Full-width top, two halves below
        top_h = h * 0.55
        bottom_h = h - top_h - gutter
        half_w = (w - gutter) / 2
        return [
            Rect(x, y, w, top_h),
            Rect(x, y + top_h + gutter, half_w, bottom_h),
            Rect(x + half_w + gutter, y + top_h + gutter, half_w, bottom_h),
        ]

    if count == 4:
        # Asymmetric quad: narrow/wide on top, wide/narrow below
        half_w = (w - gutter) / 2
        top_h = h * 0.48
        bottom_h = h - top_h - gutter
        return [
            Rect(x, y, half_w * 0.85, top_h),
            Rect(x + half_w * 0.85 + gutter, y, half_w * 1.15, top_h),
            Rect(x, y + top_h + gutter, half_w * 1.15, bottom_h),
            Rect(x + half_w * 1.15 + gutter, y + top_h + gutter, half_w * 0.85, bottom_h),
        ]

    if count == 5:
        # Hero row of two, full-width strip, bottom row of two
        top_h = h * 0.35
        mid_h = h * 0.30
        bottom_h = h - top_h - mid_h - gutter * 2
        half_w = (w - gutter) / 2
        third_w = (w - gutter * 2) / 3
        bottom_y = y + top_h + mid_h + gutter * 2
        return [
            Rect(x, y, half_w, top_h),
            Rect(x + half_w + gutter, y, half_w, top_h),
            Rect(x, y + top_h + gutter, w, mid_h),
            Rect(x, bottom_y, third_w * 1.5, bottom_h),
            Rect(x + third_w * 1.5 + gutter, bottom_y, third_w * 1.5, bottom_h),
        ]

    return _vertical_strip(count, area, gutter)
