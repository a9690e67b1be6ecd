"""
Generation Session State

Observable holder for one owner's generation progress. At most one run is
active per session; each run gets its own cancellation token so a stale run
can never publish into the state of a newer one.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from ...core.errors import GenerationCancelled
from ...core.models import GeneratedImage

logger = logging.getLogger(__name__)


class GenerationState(str, Enum):
    """Pipeline states for a single run."""
    IDLE = "idle"
    PREPARING = "preparing"
    REQUESTING_PROMPTS = "requesting_prompts"
    RENDERING_PANELS = "rendering_panels"
    ASSEMBLING = "assembling"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationState.COMPLETED, GenerationState.CANCELLED, GenerationState.FAILED)


class CancellationToken:
    """Cooperative cancellation flag for one run."""

    def __init__(self):
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise GenerationCancelled()


Observer = Callable[["GenerationSession"], None]


class GenerationSession:
    """
    Observable generation progress.

    Attributes:
        state: Current GenerationState
        is_running: True while a run is active and not cancelled
        progress: Fraction of panels processed, 0.0 - 1.0
        status_text: Human-readable status
        results: Panels published so far, in sequence order
        last_error: Terminal error of the last run, if any
    """

    def __init__(self):
        self.state = GenerationState.IDLE
        self.is_running = False
        self.progress = 0.0
        self.status_text = ""
        self.results: List[GeneratedImage] = []
        self.last_error: Optional[Exception] = None
        self._token: Optional[CancellationToken] = None
        self._observers: List[Observer] = []

    # =========================================================================
    # Observation
    # =========================================================================

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self)

    @property
    def is_cancelled(self) -> bool:
        return self._token is not None and self._token.is_cancelled

    # =========================================================================
    # Caller-facing control
    # =========================================================================

    def cancel(self) -> None:
        """Signal the active run to stop. Takes effect at its next checkpoint."""
        if self._token is None or self._token.is_cancelled:
            return
        self._token.cancel()
        self.is_running = False
        if not self.state.is_terminal:
            self.state = GenerationState.CANCELLED
            self.status_text = "Cancelled"
        logger.info("Generation cancelled by caller")
        self._notify()

    def update_status(self, status_text: str) -> None:
        """Set status text for work outside a run, such as uploading finished panels."""
        self.status_text = status_text
        self._notify()

    # =========================================================================
    # Pipeline-facing updates (ignored when the token is stale)
    # =========================================================================

    def begin_run(self) -> CancellationToken:
        """Reset state for a new run and return its cancellation token."""
        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token
        self.state = GenerationState.PREPARING
        self.is_running = True
        self.progress = 0.0
        self.status_text = "Preparing..."
        self.results = []
        self.last_error = None
        self._notify()
        return token

    def _is_live(self, token: CancellationToken) -> bool:
        return token is self._token and not token.is_cancelled

    def transition(self, token: CancellationToken, state: GenerationState, status_text: Optional[str] = None) -> None:
        if not self._is_live(token):
            return
        self.state = state
        if status_text is not None:
            self.status_text = status_text
        self._notify()

    def set_status(self, token: CancellationToken, status_text: str) -> None:
        if not self._is_live(token):
            return
        self.status_text = status_text
        self._notify()

    def report_progress(self, token: CancellationToken, processed: int, total: int) -> None:
        if not self._is_live(token) or total <= 0:
            return
        self.progress = min(1.0, processed / total)
        self._notify()

    def publish_result(self, token: CancellationToken, image: GeneratedImage) -> None:
        """Record a completed panel, keeping results ordered by sequence index."""
        if not self._is_live(token):
            return
        self.results = sorted(self.results + [image], key=lambda result: result.sequence_index)
        self._notify()

    def complete(self, token: CancellationToken, images: List[GeneratedImage]) -> None:
        if not self._is_live(token):
            return
        self.results = list(images)
        self.state = GenerationState.COMPLETED
        self.progress = 1.0
        self.is_running = False
        self.status_text = ""
        self._notify()

    def mark_cancelled(self, token: CancellationToken) -> None:
        if token is not self._token:
            return
        token.cancel()
        self.is_running = False
        self.state = GenerationState.CANCELLED
        self.status_text = "Cancelled"
        self._notify()

    def fail(self, token: CancellationToken, error: Exception) -> None:
        if not self._is_live(token):
            return
        self.state = GenerationState.FAILED
        self.is_running = False
        self.last_error = error
        self.status_text = str(error)
        self._notify()
