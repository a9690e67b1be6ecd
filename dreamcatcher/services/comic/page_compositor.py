"""
Page Compositor

Rasterizes panel images into a single comic page with Pillow.

Draw order: background, halftone texture, optional title banner, then for
each panel a drop shadow, white backing, aspect-filled image, border, and
optional speech bubble and sound-effect burst; finally a page border.
Nothing in the draw path is random, so identical inputs produce identical
pixels.
"""

import io
import logging
import math
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageDraw, ImageFilter, ImageFont, ImageOps

from ...core.config import Config
from ...core.errors import EmptyInput
from ...core.models import ComicPagePlan, PanelPlan
from .panel_layout import LayoutKind, Rect, compute_frames

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]

DEFAULT_PAGE_SIZE = (1024, 1536)

# Page geometry
PAGE_MARGIN = 20
PANEL_GUTTER = 12
PANEL_BORDER_WIDTH = 4
TITLE_BANNER_HEIGHT = 60
PAGE_BORDER_INSET = 4
PAGE_BORDER_WIDTH = 2

# Halftone texture
HALFTONE_SPACING = 14
HALFTONE_DOT_SIZE = 2.5
HALFTONE_ALPHA = 10  # ~4% black

# Panel shadow
SHADOW_OFFSET = (3, 3)
SHADOW_BLUR = 5
SHADOW_ALPHA = 77  # ~30% black

# Speech bubble
BUBBLE_FONT_SIZE = 16
BUBBLE_WIDTH_RATIO = 0.7
BUBBLE_PADDING = 10
BUBBLE_TAIL_HEIGHT = 14
BUBBLE_TAIL_HALF_WIDTH = 8
BUBBLE_BOTTOM_OFFSET = 20
BUBBLE_CORNER_RADIUS = 10
BUBBLE_LINE_SPACING = 4

# Sound effect burst
BURST_POINTS = 14
BURST_OUTER_RADIUS = 60
BURST_INNER_RADIUS = 38
BURST_CENTER = (0.75, 0.2)  # fraction of panel width/height
EFFECT_FONT_SIZE = 28
EFFECT_STROKE_WIDTH = 3

# Title
TITLE_FONT_SIZE = 32
TITLE_TRACKING = 3

WHITE: Color = (255, 255, 255)
BLACK: Color = (0, 0, 0)
TITLE_BANNER_COLOR: Color = (0x1A, 0x56, 0xDB)
BURST_FILL_COLOR: Color = (0xF5, 0x9E, 0x0B)
EFFECT_TEXT_COLOR: Color = (255, 0, 0)


@lru_cache(maxsize=16)
def load_font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont:
    """Load the configured TrueType font, or Pillow's bundled font at ``size``."""
    path = (Config.BOLD_FONT_PATH or Config.FONT_PATH) if bold else Config.FONT_PATH
    if path:
        return ImageFont.truetype(path, size)
    return ImageFont.load_default(size=size)


def compose_page(
    images: Sequence[Image.Image],
    plan: Optional[Union[ComicPagePlan, Sequence[PanelPlan]]] = None,
    layout_kind: Union[LayoutKind, str, None] = LayoutKind.DYNAMIC,
    title: Optional[str] = None,
    page_size: Tuple[int, int] = DEFAULT_PAGE_SIZE,
) -> Image.Image:
    """
    Compose panel images into a comic page.

    Args:
        images: Panel images in display order
        plan: Page plan or panel plans, matched to images by index
        layout_kind: Layout family for the panel frames
        title: Optional title drawn in a banner across the top
        page_size: (width, height) of the page in pixels

    Returns:
        RGB page image

    Raises:
        EmptyInput: If no images are given
    """
    if not images:
        raise EmptyInput()

    panels = _panel_plans(plan)
    width, height = page_size

    page = Image.new("RGBA", (width, height), WHITE + (255,))
    _draw_halftone(page)

    title_height = TITLE_BANNER_HEIGHT if title else 0
    if title:
        _draw_title_banner(page, title, title_height)

    content = Rect(
        PAGE_MARGIN,
        PAGE_MARGIN + title_height,
        width - PAGE_MARGIN * 2,
        height - PAGE_MARGIN * 2 - title_height,
    )
    frames = compute_frames(layout_kind, len(images), content, PANEL_GUTTER)
    if len(frames) < len(images):
        logger.warning(f"Layout {layout_kind} holds {len(frames)} panels; dropping {len(images) - len(frames)}")

    for index, image in enumerate(images):
        if index >= len(frames):
            break
        frame = frames[index]
        _draw_panel(page, image, frame)

        panel = panels[index] if index < len(panels) else None
        if panel is None:
            continue
        if panel.speech_bubble:
            _draw_speech_bubble(page, panel.speech_bubble, frame)
        if panel.sound_effect:
            _draw_sound_effect(page, panel.sound_effect, frame)

    draw = ImageDraw.Draw(page)
    draw.rectangle(
        [PAGE_BORDER_INSET, PAGE_BORDER_INSET, width - 1 - PAGE_BORDER_INSET, height - 1 - PAGE_BORDER_INSET],
        outline=BLACK,
        width=PAGE_BORDER_WIDTH,
    )

    return page.convert("RGB")


def compose_page_png(
    images: Sequence[Image.Image],
    plan: Optional[Union[ComicPagePlan, Sequence[PanelPlan]]] = None,
    layout_kind: Union[LayoutKind, str, None] = LayoutKind.DYNAMIC,
    title: Optional[str] = None,
    page_size: Tuple[int, int] = DEFAULT_PAGE_SIZE,
) -> bytes:
    """Compose a page and encode it as PNG bytes."""
    page = compose_page(images, plan=plan, layout_kind=layout_kind, title=title, page_size=page_size)
    buffer = io.BytesIO()
    page.save(buffer, format="PNG")
    return buffer.getvalue()


def _panel_plans(plan: Optional[Union[ComicPagePlan, Sequence[PanelPlan]]]) -> List[PanelPlan]:
    if plan is None:
        return []
    if isinstance(plan, ComicPagePlan):
        return list(plan.panels)
    return list(plan)


# =========================================================================
# Background layers
# =========================================================================

def _draw_halftone(page: Image.Image) -> None:
    """Ben-day dot texture; every other row shifted by half the spacing."""
    overlay = Image.new("RGBA", page.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    width, height = page.size

    for row, y in enumerate(range(0, height, HALFTONE_SPACING)):
        offset = HALFTONE_SPACING / 2 if row % 2 == 0 else 0
        for x in range(0, width, HALFTONE_SPACING):
            left = x + offset
            draw.ellipse(
                [left, y, left + HALFTONE_DOT_SIZE, y + HALFTONE_DOT_SIZE],
                fill=(0, 0, 0, HALFTONE_ALPHA),
            )

    page.alpha_composite(overlay)


def _draw_title_banner(page: Image.Image, title: str, banner_height: int) -> None:
    draw = ImageDraw.Draw(page)
    draw.rectangle([0, 0, page.width - 1, banner_height - 1], fill=TITLE_BANNER_COLOR)

    font = load_font(TITLE_FONT_SIZE, bold=True)
    text_width = _tracked_width(title, font, TITLE_TRACKING)
    top, bottom = font.getbbox(title)[1::2]
    x = (page.width - text_width) / 2
    y = (banner_height - (bottom - top)) / 2 - top

    for char in title:
        draw.text((x, y), char, font=font, fill=WHITE)
        x += font.getlength(char) + TITLE_TRACKING


def _tracked_width(text: str, font: ImageFont.FreeTypeFont, tracking: float) -> float:
    if not text:
        return 0.0
    return sum(font.getlength(char) for char in text) + tracking * (len(text) - 1)


# =========================================================================
# Panels
# =========================================================================

def _draw_panel(page: Image.Image, image: Image.Image, frame: Rect) -> None:
    _draw_shadow(page, frame)

    draw = ImageDraw.Draw(page)
    left, top, right, bottom = frame.to_box()
    draw.rectangle([left, top, right - 1, bottom - 1], fill=WHITE)

    _paste_aspect_fill(page, image, frame.inset(PANEL_BORDER_WIDTH))

    draw.rectangle([left, top, right - 1, bottom - 1], outline=BLACK, width=PANEL_BORDER_WIDTH)


def _draw_shadow(page: Image.Image, frame: Rect) -> None:
    left, top, right, bottom = frame.to_box()
    pad = SHADOW_BLUR * 2
    shadow = Image.new("RGBA", (right - left + pad * 2, bottom - top + pad * 2), (0, 0, 0, 0))
    ImageDraw.Draw(shadow).rectangle(
        [pad, pad, pad + right - left - 1, pad + bottom - top - 1],
        fill=(0, 0, 0, SHADOW_ALPHA),
    )
    shadow = shadow.filter(ImageFilter.GaussianBlur(SHADOW_BLUR / 2))

    dest_x = left + SHADOW_OFFSET[0] - pad
    dest_y = top + SHADOW_OFFSET[1] - pad
    source_x = max(0, -dest_x)
    source_y = max(0, -dest_y)
    page.alpha_composite(shadow, dest=(max(0, dest_x), max(0, dest_y)), source=(source_x, source_y))


def _paste_aspect_fill(page: Image.Image, image: Image.Image, rect: Rect) -> None:
    """Scale to cover ``rect`` and center-crop the overflow; never letterbox."""
    left, top, right, bottom = rect.to_box()
    target = (right - left, bottom - top)
    if target[0] <= 0 or target[1] <= 0:
        return

    fitted = ImageOps.fit(
        image.convert("RGBA"),
        target,
        method=Image.Resampling.LANCZOS,
        centering=(0.5, 0.5),
    )
    page.alpha_composite(fitted, dest=(left, top))


# =========================================================================
# Overlays
# =========================================================================

def wrap_text(text: str, font: ImageFont.FreeTypeFont, max_width: float) -> List[str]:
    """Greedy word wrap; a single word wider than ``max_width`` keeps its own line."""
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if current and font.getlength(candidate) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


def measure_bubble(text: str, panel_frame: Rect) -> Tuple[Rect, str]:
    """
    Measure a speech bubble for ``text`` inside ``panel_frame``.

    Returns:
        (bubble rectangle, wrapped text)
    """
    font = load_font(BUBBLE_FONT_SIZE)
    max_text_width = panel_frame.width * BUBBLE_WIDTH_RATIO - BUBBLE_PADDING * 2
    wrapped = "\n".join(wrap_text(text, font, max_text_width))

    probe = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    left, top, right, bottom = probe.multiline_textbbox((0, 0), wrapped, font=font, spacing=BUBBLE_LINE_SPACING)
    bubble_w = (right - left) + BUBBLE_PADDING * 2
    bubble_h = (bottom - top) + BUBBLE_PADDING * 2

    bubble = Rect(
        panel_frame.mid_x - bubble_w / 2,
        panel_frame.max_y - bubble_h - BUBBLE_TAIL_HEIGHT - BUBBLE_BOTTOM_OFFSET,
        bubble_w,
        bubble_h,
    )
    return bubble, wrapped


def _draw_speech_bubble(page: Image.Image, text: str, panel_frame: Rect) -> None:
    bubble, wrapped = measure_bubble(text, panel_frame)
    font = load_font(BUBBLE_FONT_SIZE)
    draw = ImageDraw.Draw(page)

    draw.rounded_rectangle(
        [bubble.min_x, bubble.min_y, bubble.max_x, bubble.max_y],
        radius=BUBBLE_CORNER_RADIUS,
        fill=WHITE,
        outline=BLACK,
        width=2,
    )

    # Tail: filled triangle over the bubble edge, outlined on its two open sides
    tail_x = bubble.mid_x
    base_y = bubble.max_y
    tip = (tail_x, base_y + BUBBLE_TAIL_HEIGHT)
    left_base = (tail_x - BUBBLE_TAIL_HALF_WIDTH, base_y)
    right_base = (tail_x + BUBBLE_TAIL_HALF_WIDTH, base_y)
    draw.polygon([left_base, tip, right_base], fill=WHITE)
    draw.line([left_base, tip, right_base], fill=BLACK, width=2)

    text_left, text_top = draw.multiline_textbbox((0, 0), wrapped, font=font, spacing=BUBBLE_LINE_SPACING)[:2]
    draw.multiline_text(
        (bubble.min_x + BUBBLE_PADDING - text_left, bubble.min_y + BUBBLE_PADDING - text_top),
        wrapped,
        font=font,
        fill=BLACK,
        spacing=BUBBLE_LINE_SPACING,
    )


def burst_points(center_x: float, center_y: float) -> List[Tuple[float, float]]:
    """Star polygon vertices alternating outer and inner radius, starting straight up."""
    points = []
    for i in range(BURST_POINTS * 2):
        angle = i * math.pi / BURST_POINTS - math.pi / 2
        radius = BURST_OUTER_RADIUS if i % 2 == 0 else BURST_INNER_RADIUS
        points.append((center_x + math.cos(angle) * radius, center_y + math.sin(angle) * radius))
    return points


def _draw_sound_effect(page: Image.Image, text: str, panel_frame: Rect) -> None:
    center_x = panel_frame.min_x + panel_frame.width * BURST_CENTER[0]
    center_y = panel_frame.min_y + panel_frame.height * BURST_CENTER[1]

    draw = ImageDraw.Draw(page)
    draw.polygon(burst_points(center_x, center_y), fill=BURST_FILL_COLOR, outline=BLACK, width=3)

    font = load_font(EFFECT_FONT_SIZE, bold=True)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font, stroke_width=EFFECT_STROKE_WIDTH)
    draw.text(
        (center_x - (left + right) / 2, center_y - (top + bottom) / 2),
        text,
        font=font,
        fill=EFFECT_TEXT_COLOR,
        stroke_width=EFFECT_STROKE_WIDTH,
        stroke_fill=BLACK,
    )
