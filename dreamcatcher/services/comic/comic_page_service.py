"""
Comic Page Service

Turns a dream's generated panels into one or more composed comic pages.
"""

import io
import logging
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image, UnidentifiedImageError

from ...core.errors import EmptyInput
from ...core.models import ComicPage, ComicPagePlan, GeneratedImage, PanelPlan
from .page_compositor import DEFAULT_PAGE_SIZE, compose_page_png
from .panel_layout import LayoutKind
from .scene_segmenter import Scene

logger = logging.getLogger(__name__)

DEFAULT_PANELS_PER_PAGE = 4


def decode_image(data: bytes) -> Image.Image:
    """Decode encoded image bytes into a loaded Pillow image."""
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def build_local_page_plan(
    scenes: Sequence[Scene],
    prompts: Sequence[str],
    layout: Union[LayoutKind, str] = LayoutKind.DYNAMIC,
    page_number: int = 1,
) -> ComicPagePlan:
    """Build a page plan from locally segmented scenes and their prompts."""
    layout_type = layout.value if isinstance(layout, LayoutKind) else layout
    panels = [
        PanelPlan(
            panel_number=i + 1,
            position="dynamic",
            image_prompt=prompt,
            caption=scenes[i].text if i < len(scenes) else None,
        )
        for i, prompt in enumerate(prompts)
    ]
    return ComicPagePlan(page_number=page_number, layout_type=layout_type, panels=panels)


class ComicPageService:
    """
    Service for assembling generated panels into comic pages.

    Example usage:
        service = ComicPageService()
        pages = service.build_pages(dream.sorted_images, title="Night Flight")
    """

    def __init__(
        self,
        page_size: Tuple[int, int] = DEFAULT_PAGE_SIZE,
        panels_per_page: int = DEFAULT_PANELS_PER_PAGE,
    ):
        """
        Initialize ComicPageService.

        Args:
            page_size: (width, height) of composed pages
            panels_per_page: Maximum panels on a single page
        """
        if panels_per_page <= 0:
            raise ValueError("panels_per_page must be positive")
        self.page_size = page_size
        self.panels_per_page = panels_per_page

    def build_pages(
        self,
        images: Sequence[GeneratedImage],
        plans: Optional[Sequence[PanelPlan]] = None,
        layout: Union[LayoutKind, str] = LayoutKind.DYNAMIC,
        title: Optional[str] = None,
    ) -> List[ComicPage]:
        """
        Compose generated panels into numbered pages.

        Panels are ordered by sequence index, undecodable panels are skipped,
        and the title banner appears on the first page only.

        Args:
            images: Generated panels in any order
            plans: Panel plans, matched to panels by sequence index
            layout: Layout family for every page
            title: Optional title for page 1

        Returns:
            ComicPage list numbered from 1

        Raises:
            EmptyInput: If no panel can be decoded
        """
        plan_by_index = {i: plan for i, plan in enumerate(plans or [])}

        decoded: List[Tuple[Image.Image, Optional[PanelPlan]]] = []
        for generated in sorted(images, key=lambda image: image.sequence_index):
            try:
                decoded.append((decode_image(generated.image_data), plan_by_index.get(generated.sequence_index)))
            except (UnidentifiedImageError, OSError) as e:
                logger.warning(f"Skipping undecodable panel {generated.sequence_index}: {e}")

        if not decoded:
            raise EmptyInput()

        pages = []
        for start in range(0, len(decoded), self.panels_per_page):
            chunk = decoded[start:start + self.panels_per_page]
            page_number = len(pages) + 1
            panel_plans = [
                plan or PanelPlan(panel_number=start + i + 1)
                for i, (_, plan) in enumerate(chunk)
            ]
            data = compose_page_png(
                [image for image, _ in chunk],
                plan=panel_plans,
                layout_kind=layout,
                title=title if page_number == 1 else None,
                page_size=self.page_size,
            )
            pages.append(ComicPage(page_number=page_number, image_data=data))
            logger.info(f"Composed comic page {page_number} with {len(chunk)} panels")

        return pages
