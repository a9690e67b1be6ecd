"""
Pydantic models for dreams, generated panels, and comic pages
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class DreamImageStyle(str, Enum):
    """Illustration style requested for a generation run."""
    COMIC_BOOK = "comic_book"
    POP_ART = "pop_art"
    GRAPHIC_NOVEL = "graphic_novel"
    LINE_ART = "line_art"

    @property
    def label(self) -> str:
        """Human-readable label."""
        return {
            "comic_book": "Comic Book",
            "pop_art": "Pop Art",
            "graphic_novel": "Graphic Novel",
            "line_art": "Line Art",
        }[self.value]

    @property
    def description(self) -> str:
        return {
            "comic_book": "Bold lines, halftone dots, action effects",
            "pop_art": "Vibrant colors, high contrast, stylized",
            "graphic_novel": "Dramatic shadows, strong composition",
            "line_art": "Clean outlines, minimal shading",
        }[self.value]

    @property
    def prompt_suffix(self) -> str:
        """Style keywords appended to prompts by image renderers."""
        return {
            "comic_book": "comic book illustration, bold outlines, halftone shading, vibrant colors",
            "pop_art": "pop art style, vibrant flat colors, high contrast, stylized shapes",
            "graphic_novel": "graphic novel art, dramatic shadows, strong composition, muted palette",
            "line_art": "clean line art, crisp outlines, minimal shading, white background",
        }[self.value]

    @classmethod
    def from_string(cls, value: str) -> "DreamImageStyle":
        """Get a style from its value, member name, or label."""
        normalized = value.strip().lower().replace(" ", "_").replace("-", "_")
        for style in cls:
            if normalized in (style.value, style.name.lower()):
                return style
        compact = normalized.replace("_", "")
        for style in cls:
            if compact == style.value.replace("_", ""):
                return style
        return cls.COMIC_BOOK  # Default


class ReminderCategory(str, Enum):
    """Kind of follow-up reminder attached to a dream."""
    DREAM_REFLECTION = "dream_reflection"
    NIGHTMARE_FOLLOW_UP = "nightmare_follow_up"


# ============================================================================
# Generated artifacts
# ============================================================================

class GeneratedImage(BaseModel):
    """One rendered panel. Immutable once created."""
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    id: UUID = Field(default_factory=uuid4)
    image_data: bytes = Field(..., description="Encoded image bytes (PNG/JPEG)")
    prompt: str = Field(..., description="Prompt the panel was rendered from")
    style: str = Field(..., description="Style tag used for rendering")
    sequence_index: int = Field(..., ge=0, description="Display order within the page")
    created_at: datetime = Field(default_factory=_utcnow)


class ComicPage(BaseModel):
    """A composed comic page. Cached once produced."""
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    id: UUID = Field(default_factory=uuid4)
    page_number: int = Field(..., ge=1, description="Page number (1-indexed)")
    image_data: bytes = Field(..., description="Composed PNG bytes")
    created_at: datetime = Field(default_factory=_utcnow)


# ============================================================================
# Panel planning
# ============================================================================

class PanelPlan(BaseModel):
    """Layout and narrative metadata for one panel before rendering."""
    panel_number: int = Field(..., ge=1, description="Panel number (1-indexed)")
    position: Optional[str] = Field(None, description="'row:col' or 'dynamic'")
    size: Optional[str] = Field(None, description="Relative size hint (large/medium/small)")
    image_prompt: str = Field(default="", description="Prompt used to render the panel image")
    speech_bubble: Optional[str] = None
    sound_effect: Optional[str] = None
    caption: Optional[str] = Field(None, description="Narrative caption for the panel")


class ComicPagePlan(BaseModel):
    """Plan for a single page: layout family plus ordered panels."""
    page_number: int = Field(default=1, ge=1)
    layout_type: str = Field(default="dynamic")
    panels: List[PanelPlan] = Field(default_factory=list)


# ============================================================================
# Dream journal
# ============================================================================

class Dream(BaseModel):
    """A journal entry."""
    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    id: UUID = Field(default_factory=uuid4)
    original_text: str
    rewritten_text: Optional[str] = None
    tone: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    generated_images: Optional[List[GeneratedImage]] = None
    image_style: Optional[str] = None
    comic_pages: Optional[List[ComicPage]] = None

    @property
    def has_images(self) -> bool:
        return bool(self.generated_images)

    @property
    def has_pages(self) -> bool:
        return bool(self.comic_pages)

    @property
    def sorted_images(self) -> List[GeneratedImage]:
        """Images ordered by sequence index, never by insertion order."""
        return sorted(self.generated_images or [], key=lambda image: image.sequence_index)

    @property
    def sorted_pages(self) -> List[ComicPage]:
        return sorted(self.comic_pages or [], key=lambda page: page.page_number)


class DreamReminder(BaseModel):
    """A pending local reminder keyed by dream identifier."""
    dream_id: UUID
    scheduled_at: datetime
    category: ReminderCategory = ReminderCategory.DREAM_REFLECTION
    title: str = ""
    body: str = ""
    is_enabled: bool = True

    @property
    def identifier(self) -> str:
        return f"dream_{self.dream_id}"
