"""
Tests for the page compositor - raster output, overlays, and determinism.
"""

import io

import pytest
from PIL import Image

from dreamcatcher.core.errors import EmptyInput
from dreamcatcher.core.models import ComicPagePlan, PanelPlan
from dreamcatcher.services.comic.page_compositor import (
    BUBBLE_BOTTOM_OFFSET,
    BUBBLE_TAIL_HEIGHT,
    BUBBLE_WIDTH_RATIO,
    BURST_FILL_COLOR,
    BURST_OUTER_RADIUS,
    BURST_POINTS,
    TITLE_BANNER_COLOR,
    burst_points,
    compose_page,
    compose_page_png,
    load_font,
    measure_bubble,
    wrap_text,
)
from dreamcatcher.services.comic.panel_layout import LayoutKind, Rect


PAGE_SIZE = (400, 600)
RED = (255, 0, 0)
BLUE = (0, 0, 255)


def solid(color, size=(120, 90)) -> Image.Image:
    return Image.new("RGB", size, color)


# ============================================================================
# Composition
# ============================================================================

class TestComposePage:
    def test_returns_rgb_page_of_requested_size(self):
        page = compose_page([solid(RED)], page_size=PAGE_SIZE)
        assert page.mode == "RGB"
        assert page.size == PAGE_SIZE

    def test_rejects_empty_input(self):
        with pytest.raises(EmptyInput):
            compose_page([], page_size=PAGE_SIZE)

    def test_panel_interior_shows_image(self):
        page = compose_page([solid(RED)], layout_kind=LayoutKind.SINGLE, page_size=PAGE_SIZE)
        assert page.getpixel((200, 300)) == RED

    def test_aspect_fill_covers_frame_without_letterbox(self):
        wide = solid(BLUE, size=(200, 20))
        page = compose_page([wide], layout_kind=LayoutKind.SINGLE, page_size=PAGE_SIZE)
        # Just inside the top border of the only panel
        assert page.getpixel((200, 30)) == BLUE
        assert page.getpixel((200, 570)) == BLUE

    def test_panels_follow_layout_order(self):
        page = compose_page(
            [solid(RED), solid(BLUE)],
            layout_kind=LayoutKind.VERTICAL_STRIP,
            page_size=PAGE_SIZE,
        )
        assert page.getpixel((200, 150)) == RED
        assert page.getpixel((200, 450)) == BLUE

    def test_single_layout_drops_extra_panels(self):
        page = compose_page(
            [solid(RED), solid(BLUE), solid(BLUE)],
            layout_kind=LayoutKind.SINGLE,
            page_size=PAGE_SIZE,
        )
        assert page.getpixel((200, 450)) == RED

    def test_title_banner_is_drawn(self):
        page = compose_page([solid(RED)], title="Night Flight", page_size=PAGE_SIZE)
        assert page.getpixel((12, 30)) == TITLE_BANNER_COLOR

    def test_sound_effect_burst_is_drawn(self):
        plan = ComicPagePlan(panels=[PanelPlan(panel_number=1, sound_effect="POW!")])
        page = compose_page([solid(RED)], plan=plan, layout_kind=LayoutKind.SINGLE, page_size=PAGE_SIZE)
        # Content area is (20, 20, 360, 560); burst centered at 75% / 20%
        center_x, center_y = 20 + 360 * 0.75, 20 + 560 * 0.2
        assert page.getpixel((int(center_x), int(center_y - 30))) == BURST_FILL_COLOR

    def test_speech_bubble_is_white(self):
        plan = [PanelPlan(panel_number=1, speech_bubble="Where am I?")]
        page = compose_page([solid(RED)], plan=plan, layout_kind=LayoutKind.SINGLE, page_size=PAGE_SIZE)
        bubble, _ = measure_bubble("Where am I?", Rect(20, 20, 360, 560))
        assert page.getpixel((int(bubble.mid_x), int(bubble.min_y) + 5)) == (255, 255, 255)

    def test_identical_inputs_produce_identical_pixels(self):
        plan = [PanelPlan(panel_number=1, speech_bubble="Hello", sound_effect="ZAP")]
        first = compose_page([solid(RED), solid(BLUE)], plan=plan, title="Same", page_size=PAGE_SIZE)
        second = compose_page([solid(RED), solid(BLUE)], plan=plan, title="Same", page_size=PAGE_SIZE)
        assert first.tobytes() == second.tobytes()

    def test_png_output_decodes(self):
        data = compose_page_png([solid(RED)], page_size=PAGE_SIZE)
        with Image.open(io.BytesIO(data)) as image:
            assert image.format == "PNG"
            assert image.size == PAGE_SIZE


# ============================================================================
# Overlay geometry
# ============================================================================

class TestSpeechBubble:
    def test_bubble_is_centered_above_bottom_edge(self):
        frame = Rect(20, 20, 360, 560)
        bubble, _ = measure_bubble("The stars are singing tonight", frame)

        assert bubble.mid_x == pytest.approx(frame.mid_x)
        assert bubble.max_y + BUBBLE_TAIL_HEIGHT + BUBBLE_BOTTOM_OFFSET == pytest.approx(frame.max_y)
        assert bubble.width <= frame.width * BUBBLE_WIDTH_RATIO + 2

    def test_long_text_wraps(self):
        frame = Rect(0, 0, 200, 300)
        _, wrapped = measure_bubble("one two three four five six seven eight nine ten eleven twelve", frame)
        assert "\n" in wrapped

    def test_wrap_keeps_lines_within_width(self):
        font = load_font(16)
        lines = wrap_text("a quiet lake under a silver moon with drifting fog", font, 120)
        assert len(lines) > 1
        for line in lines:
            assert font.getlength(line) <= 120 or " " not in line


class TestBurstPoints:
    def test_alternates_radii_starting_straight_up(self):
        points = burst_points(100, 100)
        assert len(points) == BURST_POINTS * 2
        assert points[0] == pytest.approx((100, 100 - BURST_OUTER_RADIUS))
