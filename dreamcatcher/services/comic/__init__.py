"""
Comic Services

Scene segmentation, prompt synthesis, panel layout, and page composition.
"""

from .scene_segmenter import Scene, segment, split_sentences, build_scenes
from .prompt_synthesizer import synthesize, fallback_prompts, FALLBACK_PROMPT
from .panel_layout import LayoutKind, Rect, compute_frames
from .page_compositor import compose_page, compose_page_png
from .comic_page_service import ComicPageService, build_local_page_plan

__all__ = [
    # Scene segmentation
    "Scene",
    "segment",
    "split_sentences",
    "build_scenes",
    # Prompt synthesis
    "synthesize",
    "fallback_prompts",
    "FALLBACK_PROMPT",
    # Layout
    "LayoutKind",
    "Rect",
    "compute_frames",
    # Composition
    "compose_page",
    "compose_page_png",
    "ComicPageService",
    "build_local_page_plan",
]
