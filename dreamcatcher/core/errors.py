"""
Error taxonomy for comic generation.

Panel-level failures (RenderFailed, DecodeFailed) are absorbed by the
generation pipeline; pre-flight failures (InvalidArgument,
ProviderUnavailable) and total failure (NoImagesGenerated) propagate to
the caller. GenerationCancelled is a silent stop, not a user-facing error.
"""

from typing import Optional


class DreamcatcherError(Exception):
    """Base class for all Dreamcatcher domain errors."""


class InvalidArgument(DreamcatcherError, ValueError):
    """Raised for malformed input, e.g. a non-positive scene count."""


class EmptyInput(DreamcatcherError, ValueError):
    """Raised when the page compositor is given no images."""

    def __init__(self, message: str = "Cannot compose a comic page without images"):
        super().__init__(message)


class GenerationCancelled(DreamcatcherError):
    """Raised when a generation run is cancelled mid-pipeline."""

    def __init__(self, message: str = "Image generation was cancelled."):
        super().__init__(message)


class RenderFailed(DreamcatcherError):
    """Raised when a single panel exhausts its retry budget."""

    def __init__(self, panel_index: int, attempts: int, reason: Optional[str] = None):
        self.panel_index = panel_index
        self.attempts = attempts
        self.reason = reason
        message = f"Panel {panel_index} failed after {attempts} attempts"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NoImagesGenerated(DreamcatcherError):
    """Raised when every panel of a run failed."""

    def __init__(self, message: str = "No images were generated. Please try again."):
        super().__init__(message)


class DecodeFailed(DreamcatcherError):
    """Raised when a returned image payload cannot be parsed."""

    def __init__(self, message: str = "Image payload could not be decoded", panel_index: Optional[int] = None):
        self.panel_index = panel_index
        super().__init__(message)


class ProviderUnavailable(DreamcatcherError):
    """Raised when neither the remote backend nor the local renderer can be used."""

    def __init__(self, message: str = "Image generation is unavailable: sign in or install a local model."):
        super().__init__(message)


class DreamNotFound(DreamcatcherError, LookupError):
    """Raised when a dream identifier is not in the store."""

    def __init__(self, dream_id):
        self.dream_id = dream_id
        super().__init__(f"Dream not found: {dream_id}")
