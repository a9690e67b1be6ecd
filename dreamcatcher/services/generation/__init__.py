"""
Generation Services

Provider selection, observable session state, and the panel generation pipeline.
"""

from .session import CancellationToken, GenerationSession, GenerationState
from .providers import (
    LocalPanelProvider,
    PanelProvider,
    RemotePanelProvider,
    select_provider,
)
from .pipeline import ImageGenerationPipeline, ensure_image_bytes

__all__ = [
    # Session
    "CancellationToken",
    "GenerationSession",
    "GenerationState",
    # Providers
    "PanelProvider",
    "RemotePanelProvider",
    "LocalPanelProvider",
    "select_provider",
    # Pipeline
    "ImageGenerationPipeline",
    "ensure_image_bytes",
]
