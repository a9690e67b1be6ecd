"""
Panel providers.

A provider plans panel prompts for a narrative and renders each prompt to
image bytes. The pipeline is written against PanelProvider only; the
remote (backend) or local (on-device) variant is chosen once per run.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from ...core.errors import InvalidArgument, ProviderUnavailable
from ...core.models import DreamImageStyle
from ..backend_service import BackendService, decode_image_payload
from ..comic.prompt_synthesizer import fallback_prompts, synthesize
from ..comic.scene_segmenter import Scene, build_scenes
from ..local_renderer import LocalImageRenderer

logger = logging.getLogger(__name__)

FALLBACK_SCENE_COUNT = 3


class PanelProvider(ABC):
    """Capability: plan prompts and render one prompt at a time."""

    name: str = "provider"

    async def prepare(self) -> None:
        """Acquire resources before any panel work. Raises ProviderUnavailable."""

    @abstractmethod
    async def plan_prompts(self, narrative_text: str, style: DreamImageStyle, panel_count: int) -> List[str]:
        ...

    @abstractmethod
    async def render(self, prompt: str, style: DreamImageStyle) -> bytes:
        ...

    def cancel(self) -> None:
        """Stop any in-flight work at its next opportunity."""

    def planned_scenes(self) -> List[Scene]:
        """Scenes behind the last planned prompts; empty when planning happened remotely."""
        return []


class RemotePanelProvider(PanelProvider):
    """Backend plans and renders; payloads arrive base64-encoded."""

    name = "remote"

    def __init__(self, backend: BackendService):
        self.backend = backend

    async def plan_prompts(self, narrative_text: str, style: DreamImageStyle, panel_count: int) -> List[str]:
        prompts = await self.backend.request_panel_prompts(narrative_text, style.label, panel_count)
        return [prompt for prompt in prompts if prompt and prompt.strip()]

    async def render(self, prompt: str, style: DreamImageStyle) -> bytes:
        payload = await self.backend.render_image(prompt)
        return decode_image_payload(payload)


class LocalPanelProvider(PanelProvider):
    """Scene segmentation + keyword prompts, rendered by the on-device model."""

    name = "local"

    def __init__(self, renderer: LocalImageRenderer):
        self.renderer = renderer
        self.scenes: List[Scene] = []

    async def prepare(self) -> None:
        if self.renderer.is_model_loaded:
            return
        try:
            await self.renderer.load_model()
        except Exception as e:
            logger.error(f"Local image model failed to load: {e}")
            raise ProviderUnavailable(f"Local image model failed to load: {e}") from e

    async def plan_prompts(self, narrative_text: str, style: DreamImageStyle, panel_count: int) -> List[str]:
        try:
            self.scenes = build_scenes(narrative_text, panel_count)
        except InvalidArgument as e:
            logger.warning(f"Scene planning failed ({e}), using fallback prompts")
            self.scenes = []
            return fallback_prompts(min(FALLBACK_SCENE_COUNT, panel_count))

        prompts = [synthesize(scene.text) for scene in self.scenes]
        for scene, prompt in zip(self.scenes, prompts):
            logger.debug(f"Scene {scene.index}: {scene.text!r} -> {prompt!r}")
        return prompts

    async def render(self, prompt: str, style: DreamImageStyle) -> bytes:
        return await self.renderer.render_image(prompt, style)

    def cancel(self) -> None:
        self.renderer.cancel()

    def planned_scenes(self) -> List[Scene]:
        return list(self.scenes)


async def select_provider(
    backend: Optional[BackendService] = None,
    local_renderer: Optional[LocalImageRenderer] = None,
) -> PanelProvider:
    """
    Choose the provider for one run.

    Authenticated backend wins; otherwise the local renderer is prepared.

    Raises:
        ProviderUnavailable: If neither path can be used
    """
    if backend is not None and backend.is_authenticated:
        logger.info("Using remote backend for image generation")
        return RemotePanelProvider(backend)

    if local_renderer is not None:
        provider = LocalPanelProvider(local_renderer)
        await provider.prepare()
        logger.info("Using local renderer for image generation")
        return provider

    raise ProviderUnavailable()
