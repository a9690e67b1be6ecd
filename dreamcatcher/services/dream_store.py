"""
Dream Store

Durable dream journal kept as a JSON file, newest entry first. Mutations are
written through immediately with an atomic replace.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence, Union
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from ..core.config import Config
from ..core.errors import DreamNotFound, InvalidArgument
from ..core.models import ComicPage, Dream, GeneratedImage
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

_DREAM_LIST = TypeAdapter(List[Dream])

DreamId = Union[UUID, str]


class DreamStore:
    """
    JSON-file persistence for dreams.

    Example usage:
        store = DreamStore()
        dream = store.add(Dream(original_text="I was flying over a city"))
        store.save_rewrite(dream.id, "I floated gently over a quiet city", tone="calm")
    """

    def __init__(
        self,
        path: Optional[Union[Path, str]] = None,
        notifications: Optional[NotificationService] = None,
    ):
        """
        Initialize DreamStore and load existing dreams.

        Args:
            path: JSON file (if None, uses Config.dreams_file())
            notifications: Reminder scheduler; deleting a dream cancels its reminders
        """
        self.path = Path(path) if path else Config.dreams_file()
        self.notifications = notifications
        self.dreams: List[Dream] = []
        self.load()

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> List[Dream]:
        """Read dreams from disk. A missing or unreadable file yields an empty journal."""
        if not self.path.exists():
            logger.info(f"No dream file at {self.path}, starting empty")
            self.dreams = []
            return self.dreams
        try:
            self.dreams = _DREAM_LIST.validate_json(self.path.read_bytes())
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Dream file {self.path} is unreadable, starting empty: {e}")
            self.dreams = []
        logger.info(f"Loaded {len(self.dreams)} dreams from {self.path}")
        return self.dreams

    def save(self, dreams: Optional[Sequence[Dream]] = None) -> bool:
        """
        Write dreams to disk atomically.

        Args:
            dreams: Replacement list (if None, saves the current list)

        Returns:
            True on success, False if the write failed
        """
        if dreams is not None:
            self.dreams = list(dreams)

        temp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            data = _DREAM_LIST.dump_json(self.dreams, indent=2)
            with tempfile.NamedTemporaryFile("wb", dir=self.path.parent, suffix=".tmp", delete=False) as handle:
                temp_path = handle.name
                handle.write(data)
            os.replace(temp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save dreams to {self.path}: {e}")
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)
            return False
        return True

    # =========================================================================
    # CRUD
    # =========================================================================

    def add(self, dream: Dream) -> Dream:
        if not dream.original_text.strip():
            raise InvalidArgument("Dream text is empty")
        self.dreams.insert(0, dream)
        self.save()
        logger.info(f"Added dream {dream.id}")
        return dream

    def get(self, dream_id: DreamId) -> Optional[Dream]:
        key = str(dream_id)
        return next((dream for dream in self.dreams if str(dream.id) == key), None)

    def require(self, dream_id: DreamId) -> Dream:
        dream = self.get(dream_id)
        if dream is None:
            raise DreamNotFound(dream_id)
        return dream

    def update(self, dream: Dream) -> bool:
        """Replace the stored dream with the same id. Returns False if absent."""
        for index, existing in enumerate(self.dreams):
            if existing.id == dream.id:
                self.dreams[index] = dream
                self.save()
                return True
        return False

    def delete(self, dream_id: DreamId) -> bool:
        """Delete a dream and cancel any reminder tied to it."""
        key = str(dream_id)
        remaining = [dream for dream in self.dreams if str(dream.id) != key]
        if len(remaining) == len(self.dreams):
            return False

        self.dreams = remaining
        self.save()
        if self.notifications is not None:
            self.notifications.cancel_dream_reminder(dream_id)
        logger.info(f"Deleted dream {dream_id}")
        return True

    # =========================================================================
    # Mutations
    # =========================================================================

    def _apply(self, dream_id: DreamId, **changes) -> Dream:
        updated = self.require(dream_id).model_copy(update=changes)
        self.update(updated)
        return updated

    def save_rewrite(self, dream_id: DreamId, rewritten_text: str, tone: Optional[str] = None) -> Dream:
        if not rewritten_text.strip():
            raise InvalidArgument("Rewritten text is empty")
        return self._apply(dream_id, rewritten_text=rewritten_text.strip(), tone=tone)

    def edit_rewritten_text(self, dream_id: DreamId, text: str) -> Dream:
        return self._apply(dream_id, rewritten_text=text.strip() or None)

    def edit_original_text(self, dream_id: DreamId, text: str) -> Dream:
        """Explicit user edit of the original narrative."""
        if not text.strip():
            raise InvalidArgument("Dream text is empty")
        return self._apply(dream_id, original_text=text.strip())

    def attach_images(
        self,
        dream_id: DreamId,
        images: Sequence[GeneratedImage],
        style: Optional[str] = None,
    ) -> Dream:
        """Store generated panels; pages composed from older panels are dropped."""
        ordered = sorted(images, key=lambda image: image.sequence_index)
        return self._apply(dream_id, generated_images=ordered, image_style=style, comic_pages=None)

    def attach_pages(self, dream_id: DreamId, pages: Sequence[ComicPage]) -> Dream:
        ordered = sorted(pages, key=lambda page: page.page_number)
        return self._apply(dream_id, comic_pages=ordered)
