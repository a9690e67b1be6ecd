"""
Image Generation Pipeline

Turns narrative text into an ordered set of rendered panels:

    Idle -> Preparing -> RequestingPrompts -> RenderingPanels -> Assembling
         -> Completed | Cancelled | Failed

Panels render sequentially because both providers are exclusive, stateful
resources. Each panel gets a fixed retry budget with exponential backoff;
panel-level failures shrink the result instead of aborting the run.
Cancellation is cooperative and checked at every iteration and attempt.
"""

import asyncio
import io
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import Config
from ...core.errors import (
    DecodeFailed,
    GenerationCancelled,
    InvalidArgument,
    NoImagesGenerated,
    ProviderUnavailable,
    RenderFailed,
)
from ...core.models import DreamImageStyle, GeneratedImage, PanelPlan
from ..backend_service import BackendService
from ..backend_models import APIVisualization
from ..comic.comic_page_service import build_local_page_plan
from ..comic.scene_segmenter import Scene
from ..local_renderer import LocalImageRenderer
from .providers import PanelProvider, select_provider
from .session import CancellationToken, GenerationSession, GenerationState

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def ensure_image_bytes(data: bytes, panel_index: int) -> bytes:
    """Verify that ``data`` parses as an image. Raises DecodeFailed otherwise."""
    if not data:
        raise DecodeFailed("Empty image data", panel_index=panel_index)
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise DecodeFailed(f"Panel {panel_index} returned undecodable image data: {e}", panel_index=panel_index) from e
    return data


class ImageGenerationPipeline:
    """
    Orchestrates panel planning, rendering with retry, and result assembly.

    Example usage:
        pipeline = ImageGenerationPipeline(session, local_renderer=renderer)
        images = await pipeline.generate(dream.rewritten_text, DreamImageStyle.COMIC_BOOK)
    """

    def __init__(
        self,
        session: Optional[GenerationSession] = None,
        backend: Optional[BackendService] = None,
        local_renderer: Optional[LocalImageRenderer] = None,
        panel_count: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        panel_delay_seconds: Optional[float] = None,
        run_start_delay_seconds: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the pipeline.

        Args:
            session: Observable session state (a fresh one if None)
            backend: Remote backend, used when authenticated
            local_renderer: Exclusively owned on-device renderer
            panel_count: Panels requested per run (Config.DEFAULT_PANEL_COUNT)
            max_attempts: Render attempts per panel (Config.RENDER_MAX_ATTEMPTS)
            backoff_seconds: First backoff delay, doubled per retry
            panel_delay_seconds: Pacing delay between panel renders
            run_start_delay_seconds: Delay before a run starts
            sleep: Awaitable sleep, injectable for tests
        """
        self.session = session or GenerationSession()
        self.backend = backend
        self.local_renderer = local_renderer
        self.panel_count = panel_count if panel_count is not None else Config.DEFAULT_PANEL_COUNT
        self.max_attempts = max_attempts if max_attempts is not None else Config.RENDER_MAX_ATTEMPTS
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else Config.RENDER_BACKOFF_SECONDS
        self.panel_delay_seconds = (
            panel_delay_seconds if panel_delay_seconds is not None else Config.PANEL_DELAY_SECONDS
        )
        self.run_start_delay_seconds = (
            run_start_delay_seconds if run_start_delay_seconds is not None else Config.RUN_START_DELAY_SECONDS
        )
        self._sleep = sleep
        self._run_lock = asyncio.Lock()
        self._active_provider: Optional[PanelProvider] = None
        self._latest_request = 0
        self.last_prompts: List[str] = []
        self.last_scenes: List[Scene] = []

    @property
    def is_available(self) -> bool:
        """True when either the backend is authenticated or a local renderer exists."""
        return bool(self.backend and self.backend.is_authenticated) or self.local_renderer is not None

    def cancel(self) -> None:
        """Cancel the active run and ask its provider to stop."""
        self.session.cancel()
        if self._active_provider is not None:
            self._active_provider.cancel()

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate(
        self,
        narrative_text: str,
        style: DreamImageStyle = DreamImageStyle.COMIC_BOOK,
        panel_count: Optional[int] = None,
    ) -> List[GeneratedImage]:
        """
        Generate panels for a narrative.

        Args:
            narrative_text: Dream narrative (usually the rewritten text)
            style: Illustration style
            panel_count: Panels to request (defaults to self.panel_count)

        Returns:
            Panels ordered by sequence index; may be shorter than requested

        Raises:
            InvalidArgument: Blank text or non-positive panel count
            ProviderUnavailable: No usable provider
            GenerationCancelled: The run was cancelled
            NoImagesGenerated: Every panel failed
        """
        count = panel_count if panel_count is not None else self.panel_count
        if count <= 0:
            raise InvalidArgument(f"panel_count must be positive, got {count}")
        if not narrative_text or not narrative_text.strip():
            raise InvalidArgument("Narrative text is empty")

        # At most one run per session: stop the previous one and wait for it to unwind
        self._latest_request += 1
        request = self._latest_request
        if self._run_lock.locked():
            logger.info("Cancelling previous generation run")
            self.cancel()

        async with self._run_lock:
            if request != self._latest_request:
                logger.info("Generation request superseded before it started")
                raise GenerationCancelled()
            token = self.session.begin_run()
            try:
                return await self._run(token, narrative_text, style, count)
            except GenerationCancelled:
                logger.info("Generation run cancelled")
                self.session.mark_cancelled(token)
                if self._active_provider is not None:
                    self._active_provider.cancel()
                raise
            except Exception as e:
                logger.error(f"Generation run failed: {e}")
                self.session.fail(token, e)
                raise
            finally:
                self._active_provider = None

    async def _run(
        self,
        token: CancellationToken,
        narrative_text: str,
        style: DreamImageStyle,
        count: int,
    ) -> List[GeneratedImage]:
        self.last_prompts = []
        self.last_scenes = []

        # Give the previous run's renderer time to release resources
        await self._sleep(self.run_start_delay_seconds)
        token.raise_if_cancelled()

        provider = await select_provider(self.backend, self.local_renderer)
        self._active_provider = provider
        token.raise_if_cancelled()

        self.session.transition(token, GenerationState.REQUESTING_PROMPTS, "Creating comic panels...")
        prompts = await provider.plan_prompts(narrative_text, style, count)
        token.raise_if_cancelled()
        self.last_prompts = list(prompts)
        self.last_scenes = provider.planned_scenes()

        if not prompts:
            raise NoImagesGenerated()

        total = len(prompts)
        slots: List[Optional[GeneratedImage]] = [None] * total
        self.session.transition(token, GenerationState.RENDERING_PANELS, f"Generating {total} images...")
        logger.info(f"Rendering {total} panels with {provider.name} provider")

        for index, prompt in enumerate(prompts):
            token.raise_if_cancelled()
            if index > 0:
                await self._sleep(self.panel_delay_seconds)
                token.raise_if_cancelled()

            self.session.set_status(token, f"Generating image {index + 1}/{total}...")
            try:
                data = await self._render_with_retry(provider, prompt, style, token, index)
                ensure_image_bytes(data, index)
            except DecodeFailed as e:
                logger.warning(f"Skipping panel {index}: {e}")
            except RenderFailed as e:
                logger.warning(f"Skipping panel {index}: {e}")
            else:
                image = GeneratedImage(
                    image_data=data,
                    prompt=prompt,
                    style=style.value,
                    sequence_index=index,
                )
                slots[index] = image
                self.session.publish_result(token, image)

            self.session.report_progress(token, index + 1, total)

        token.raise_if_cancelled()
        self.session.transition(token, GenerationState.ASSEMBLING, "Assembling panels...")
        images = [image for image in slots if image is not None]

        if not images:
            raise NoImagesGenerated()

        self.session.complete(token, images)
        logger.info(f"Generated {len(images)}/{total} panels")
        return images

    async def _render_with_retry(
        self,
        provider: PanelProvider,
        prompt: str,
        style: DreamImageStyle,
        token: CancellationToken,
        index: int,
    ) -> bytes:
        """Render one panel, retrying with exponential backoff (1s, 2s, ...)."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds),
            retry=retry_if_not_exception_type((GenerationCancelled, DecodeFailed)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

        data = b""
        try:
            async for attempt in retrying:
                with attempt:
                    token.raise_if_cancelled()
                    data = await provider.render(prompt, style)
        except (GenerationCancelled, DecodeFailed):
            raise
        except Exception as e:
            raise RenderFailed(index, self.max_attempts, str(e)) from e

        token.raise_if_cancelled()
        return data

    def panel_plans(self) -> Optional[List[PanelPlan]]:
        """
        Panel plans for the last locally planned run, matched to panels by index.

        Returns:
            One PanelPlan per prompt, or None when prompts came from the backend
        """
        if not self.last_scenes:
            return None
        return build_local_page_plan(self.last_scenes, self.last_prompts).panels

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload_results(
        self,
        images: Sequence[GeneratedImage],
        rewritten_dream_id: str,
        visualization_type: str = "comic_panels",
    ) -> APIVisualization:
        """
        Upload panels to the backend and record a visualization.

        Raises:
            ProviderUnavailable: If the backend is not authenticated
        """
        if self.backend is None or not self.backend.is_authenticated:
            raise ProviderUnavailable("Sign in to upload images")

        self.session.update_status("Uploading to cloud...")
        urls = []
        for image in sorted(images, key=lambda item: item.sequence_index):
            url = await self.backend.upload_image(image.image_data, f"panel_{image.sequence_index}.png")
            urls.append(url)

        visualization = await self.backend.create_visualization(
            rewritten_dream_id=rewritten_dream_id,
            visualization_type=visualization_type,
            image_assets=urls,
            status="completed",
        )
        self.session.update_status("")
        logger.info(f"Uploaded {len(urls)} panels for rewritten dream {rewritten_dream_id}")
        return visualization
