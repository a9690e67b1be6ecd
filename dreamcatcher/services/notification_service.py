"""
Notification Service

Persisted dream reminders. Each reminder is keyed by its dream's identifier
(``dream_<uuid>``); deleting a dream cancels every reminder for it.
"""

import logging
import os
import random
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Union
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from ..core.config import Config
from ..core.errors import InvalidArgument
from ..core.models import Dream, DreamReminder, ReminderCategory

logger = logging.getLogger(__name__)

# Reminder presets offered to the user, in hours
REMINDER_PRESETS = {
    "1 hour": 1,
    "6 hours": 6,
    "1 day": 24,
    "2 days": 48,
    "1 week": 168,
}
DEFAULT_REMINDER_HOURS = 24

REWRITE_FOLLOW_UP_BODY = (
    "How are you feeling about the dream you rewrote? Take a moment to read your peaceful version."
)

TEMPLATES = {
    ReminderCategory.DREAM_REFLECTION: {
        "titles": ["Remember your dream?", "A moment to reflect", "Your dream journal"],
        "bodies": [
            "Take a minute to revisit the dream you recorded.",
            "Dreams fade quickly. Read yours again while it is fresh.",
            "What did your dream mean to you? Add a reflection.",
        ],
    },
    ReminderCategory.NIGHTMARE_FOLLOW_UP: {
        "titles": ["Checking in", "How are you feeling?", "Your peaceful version"],
        "bodies": [
            "Revisit the calmer version of your dream.",
            "A gentle reminder that your dream has a peaceful ending now.",
        ],
    },
}

_REMINDER_LIST = TypeAdapter(List[DreamReminder])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value is None:
        return _utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def reminder_identifier(dream_id: Union[UUID, str]) -> str:
    return f"dream_{dream_id}"


class NotificationService:
    """
    Schedules and cancels per-dream reminders.

    Example usage:
        notifications = NotificationService()
        reminder = notifications.schedule_dream_reminder(dream, after_hours=6)
        notifications.cancel_dream_reminder(dream.id)
    """

    def __init__(self, path: Optional[Union[Path, str]] = None, rng: Optional[random.Random] = None):
        """
        Initialize NotificationService.

        Args:
            path: JSON file holding reminders (if None, uses Config.reminders_file())
            rng: Random source for template selection
        """
        self.path = Path(path) if path else Config.reminders_file()
        self._rng = rng or random.Random()
        self.reminders: List[DreamReminder] = []
        self.load()

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> List[DreamReminder]:
        if not self.path.exists():
            self.reminders = []
            return self.reminders
        try:
            self.reminders = _REMINDER_LIST.validate_json(self.path.read_bytes())
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Could not read reminders from {self.path}, starting empty: {e}")
            self.reminders = []
        return self.reminders

    def save(self) -> bool:
        temp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            data = _REMINDER_LIST.dump_json(self.reminders, indent=2)
            with tempfile.NamedTemporaryFile("wb", dir=self.path.parent, suffix=".tmp", delete=False) as handle:
                temp_path = handle.name
                handle.write(data)
            os.replace(temp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save reminders to {self.path}: {e}")
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)
            return False
        return True

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule_dream_reminder(
        self,
        dream: Dream,
        after_hours: int = DEFAULT_REMINDER_HOURS,
        now: Optional[datetime] = None,
    ) -> DreamReminder:
        """
        Schedule a reminder for a dream.

        A dream has at most one reminder; scheduling again replaces it.

        Args:
            dream: Dream to remind about
            after_hours: Delay from ``now`` in hours
            now: Reference time (defaults to the current UTC time)

        Returns:
            The stored DreamReminder

        Raises:
            InvalidArgument: If after_hours is not positive
        """
        if after_hours <= 0:
            raise InvalidArgument(f"after_hours must be positive, got {after_hours}")

        category = (
            ReminderCategory.NIGHTMARE_FOLLOW_UP if dream.rewritten_text else ReminderCategory.DREAM_REFLECTION
        )
        template = TEMPLATES[category]
        body = REWRITE_FOLLOW_UP_BODY if dream.rewritten_text else self._rng.choice(template["bodies"])

        reminder = DreamReminder(
            dream_id=dream.id,
            scheduled_at=_as_utc(now) + timedelta(hours=after_hours),
            category=category,
            title=self._rng.choice(template["titles"]),
            body=body,
        )

        self.reminders = [r for r in self.reminders if r.dream_id != dream.id]
        self.reminders.append(reminder)
        self.save()
        logger.info(f"Scheduled {category.value} reminder {reminder.identifier} at {reminder.scheduled_at.isoformat()}")
        return reminder

    def cancel_dream_reminder(self, dream_id: Union[UUID, str]) -> int:
        """Remove every reminder for a dream. Returns the number removed."""
        key = str(dream_id)
        remaining = [r for r in self.reminders if str(r.dream_id) != key]
        removed = len(self.reminders) - len(remaining)
        self.reminders = remaining
        self.save()
        if removed:
            logger.info(f"Cancelled reminder {reminder_identifier(dream_id)}")
        return removed

    def reminder_for(self, dream_id: Union[UUID, str]) -> Optional[DreamReminder]:
        key = str(dream_id)
        return next((r for r in self.reminders if str(r.dream_id) == key), None)

    def pending(self, now: Optional[datetime] = None) -> List[DreamReminder]:
        """Enabled reminders scheduled after ``now``, soonest first."""
        reference = _as_utc(now)
        upcoming = [r for r in self.reminders if r.is_enabled and r.scheduled_at > reference]
        return sorted(upcoming, key=lambda r: r.scheduled_at)
