"""
Tests for ImageGenerationPipeline - ordering, retry, partial failure,
cancellation, and provider selection.

Renderers are in-memory stubs returning real PNG bytes; the pipeline's sleep
is replaced with a recorder so backoff and pacing are observable instantly.
"""

import asyncio
import base64
import io
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from dreamcatcher.core.errors import (
    GenerationCancelled,
    InvalidArgument,
    NoImagesGenerated,
    ProviderUnavailable,
)
from dreamcatcher.core.models import DreamImageStyle
from dreamcatcher.services.generation.pipeline import ImageGenerationPipeline
from dreamcatcher.services.generation.providers import (
    LocalPanelProvider,
    RemotePanelProvider,
    select_provider,
)
from dreamcatcher.services.generation.session import GenerationSession, GenerationState
from dreamcatcher.services.local_renderer import LocalImageRenderer


THREE_SCENES = "I walked into a forest. The ocean appeared. A castle glowed at sunrise."


def png_bytes(color=(0, 128, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 32), color).save(buffer, format="PNG")
    return buffer.getvalue()


class StubRenderer(LocalImageRenderer):
    """Local renderer whose per-call outcome is scripted."""

    def __init__(self, outcomes=None, loaded=True):
        self.outcomes = list(outcomes or [])
        self.prompts: List[str] = []
        self.loaded = loaded
        self.cancelled = False

    @property
    def is_model_loaded(self) -> bool:
        return self.loaded

    async def load_model(self) -> None:
        self.loaded = True

    async def render_image(self, prompt, style):
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0) if self.outcomes else png_bytes()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def cancel(self) -> None:
        self.cancelled = True


class GatedRenderer(StubRenderer):
    """Renderer that holds every call until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def render_image(self, prompt, style):
        self.prompts.append(prompt)
        await self.release.wait()
        return png_bytes()


async def wait_for_first_render(renderer):
    while not renderer.prompts:
        await asyncio.sleep(0)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def session():
    return GenerationSession()


def make_pipeline(session, sleep, renderer=None, backend=None, **kwargs):
    return ImageGenerationPipeline(
        session,
        backend=backend,
        local_renderer=renderer,
        panel_count=kwargs.pop("panel_count", 4),
        max_attempts=kwargs.pop("max_attempts", 3),
        backoff_seconds=1.0,
        panel_delay_seconds=0.3,
        run_start_delay_seconds=0.5,
        sleep=sleep,
        **kwargs,
    )


# ============================================================================
# Happy path
# ============================================================================

class TestGenerate:
    @pytest.mark.asyncio
    async def test_three_sentences_produce_three_ordered_images(self, session, sleep):
        renderer = StubRenderer()
        pipeline = make_pipeline(session, sleep, renderer)

        images = await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)

        assert [image.sequence_index for image in images] == [0, 1, 2]
        assert all(image.style == "comic_book" for image in images)
        assert session.state is GenerationState.COMPLETED
        assert session.progress == 1.0
        assert not session.is_running
        assert [r.sequence_index for r in session.results] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_prompts_come_from_synthesizer(self, session, sleep):
        renderer = StubRenderer()
        pipeline = make_pipeline(session, sleep, renderer)

        await pipeline.generate(THREE_SCENES, DreamImageStyle.POP_ART)

        assert renderer.prompts[0] == "A dreamy landscape featuring a mystical forest, soft ethereal light"
        assert renderer.prompts == pipeline.last_prompts

    @pytest.mark.asyncio
    async def test_paces_between_panels(self, session, sleep):
        pipeline = make_pipeline(session, sleep, StubRenderer())

        await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)

        assert sleep.calls == [0.5, 0.3, 0.3]

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, session, sleep):
        seen = []
        session.add_observer(lambda s: seen.append(s.progress))
        pipeline = make_pipeline(session, sleep, StubRenderer())

        await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)

        assert seen == sorted(seen)
        assert seen[-1] == 1.0


# ============================================================================
# Pre-flight
# ============================================================================

class TestPreflight:
    @pytest.mark.asyncio
    async def test_rejects_non_positive_panel_count(self, session, sleep):
        pipeline = make_pipeline(session, sleep, StubRenderer())
        with pytest.raises(InvalidArgument):
            await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK, panel_count=0)
        assert session.state is GenerationState.IDLE

    @pytest.mark.asyncio
    async def test_rejects_blank_text(self, session, sleep):
        pipeline = make_pipeline(session, sleep, StubRenderer())
        with pytest.raises(InvalidArgument):
            await pipeline.generate("   ", DreamImageStyle.COMIC_BOOK)

    @pytest.mark.asyncio
    async def test_no_provider_fails_session(self, session, sleep):
        pipeline = make_pipeline(session, sleep)
        with pytest.raises(ProviderUnavailable):
            await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)
        assert session.state is GenerationState.FAILED
        assert isinstance(session.last_error, ProviderUnavailable)

    @pytest.mark.asyncio
    async def test_text_without_terminals_uses_single_scene(self, session, sleep):
        renderer = StubRenderer()
        pipeline = make_pipeline(session, sleep, renderer)

        images = await pipeline.generate("drifting over a calm lake", DreamImageStyle.COMIC_BOOK)

        assert len(images) == 1

    @pytest.mark.asyncio
    async def test_text_of_only_terminals_uses_fallback_prompts(self, session, sleep):
        renderer = StubRenderer()
        pipeline = make_pipeline(session, sleep, renderer)

        images = await pipeline.generate("?!...", DreamImageStyle.COMIC_BOOK)

        assert len(images) == 3
        assert all("flat vector comic panel" in prompt for prompt in renderer.prompts)


# ============================================================================
# Retry and partial failure
# ============================================================================

class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_with_exponential_backoff(self, session, sleep):
        renderer = StubRenderer(outcomes=[RuntimeError("busy"), RuntimeError("busy"), png_bytes()])
        pipeline = make_pipeline(session, sleep, renderer)

        images = await pipeline.generate("A single calm scene.", DreamImageStyle.COMIC_BOOK)

        assert len(images) == 1
        assert len(renderer.prompts) == 3
        assert len(set(renderer.prompts)) == 1
        assert sleep.calls == [0.5, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_middle_panel_recovers_after_two_failures(self, session, sleep):
        text = "A calm forest. A bright sunrise over the ocean. A gentle rain."
        renderer = StubRenderer(outcomes=[png_bytes(), RuntimeError("a"), RuntimeError("b"), png_bytes(), png_bytes()])
        pipeline = make_pipeline(session, sleep, renderer)

        images = await pipeline.generate(text, DreamImageStyle.COMIC_BOOK)

        assert [image.sequence_index for image in images] == [0, 1, 2]
        assert renderer.prompts[1] == renderer.prompts[2] == renderer.prompts[3]
        assert sleep.calls == [0.5, 0.3, 1.0, 2.0, 0.3]
        assert session.state is GenerationState.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_panel_is_skipped(self, session, sleep):
        failures = [RuntimeError("down")] * 3
        renderer = StubRenderer(outcomes=[png_bytes()] + failures + [png_bytes()])
        pipeline = make_pipeline(session, sleep, renderer)

        images = await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)

        assert [image.sequence_index for image in images] == [0, 2]
        assert session.state is GenerationState.COMPLETED
        assert session.progress == 1.0

    @pytest.mark.asyncio
    async def test_undecodable_payload_is_skipped_without_retry(self, session, sleep):
        renderer = StubRenderer(outcomes=[b"not a png", png_bytes(), png_bytes()])
        pipeline = make_pipeline(session, sleep, renderer)

        images = await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)

        assert [image.sequence_index for image in images] == [1, 2]
        assert len(renderer.prompts) == 3

    @pytest.mark.asyncio
    async def test_all_panels_failing_raises_no_images(self, session, sleep):
        renderer = StubRenderer(outcomes=[RuntimeError("down")] * 9)
        pipeline = make_pipeline(session, sleep, renderer)

        with pytest.raises(NoImagesGenerated):
            await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)

        assert session.state is GenerationState.FAILED
        assert isinstance(session.last_error, NoImagesGenerated)
        assert session.results == []
        assert len(renderer.prompts) == 9


# ============================================================================
# Cancellation
# ============================================================================

class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_after_first_panel_keeps_partial_results(self, session, sleep):
        renderer = StubRenderer()
        pipeline = make_pipeline(session, sleep, renderer)

        def cancel_after_first(current):
            if len(current.results) == 1 and current.is_running:
                pipeline.cancel()

        session.add_observer(cancel_after_first)

        with pytest.raises(GenerationCancelled):
            await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)

        assert session.state is GenerationState.CANCELLED
        assert not session.is_running
        assert len(session.results) == 1
        assert len(renderer.prompts) == 1
        assert renderer.cancelled

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retrying(self, session, sleep):
        renderer = StubRenderer(outcomes=[RuntimeError("busy")] * 3)
        pipeline = make_pipeline(session, sleep, renderer)

        async def cancelling_sleep(seconds):
            sleep.calls.append(seconds)
            if seconds == 1.0:
                pipeline.cancel()

        pipeline._sleep = cancelling_sleep

        with pytest.raises(GenerationCancelled):
            await pipeline.generate("One scene only.", DreamImageStyle.COMIC_BOOK)

        assert len(renderer.prompts) == 1
        assert session.state is GenerationState.CANCELLED


# ============================================================================
# Providers
# ============================================================================

class TestSelectProvider:
    @pytest.mark.asyncio
    async def test_authenticated_backend_wins(self):
        backend = MagicMock(is_authenticated=True)
        provider = await select_provider(backend, StubRenderer())
        assert isinstance(provider, RemotePanelProvider)

    @pytest.mark.asyncio
    async def test_falls_back_to_local_and_loads_model(self):
        renderer = StubRenderer(loaded=False)
        provider = await select_provider(MagicMock(is_authenticated=False), renderer)
        assert isinstance(provider, LocalPanelProvider)
        assert renderer.loaded

    @pytest.mark.asyncio
    async def test_model_load_failure_is_unavailable(self):
        renderer = StubRenderer(loaded=False)
        renderer.load_model = AsyncMock(side_effect=OSError("weights missing"))
        with pytest.raises(ProviderUnavailable):
            await select_provider(None, renderer)

    @pytest.mark.asyncio
    async def test_nothing_configured_is_unavailable(self):
        with pytest.raises(ProviderUnavailable):
            await select_provider(None, None)


class TestRemoteProvider:
    @pytest.mark.asyncio
    async def test_remote_run_decodes_payloads(self, session, sleep):
        payload = "data:image/png;base64," + base64.b64encode(png_bytes()).decode()
        backend = MagicMock(is_authenticated=True)
        backend.request_panel_prompts = AsyncMock(return_value=["first", "  ", "second"])
        backend.render_image = AsyncMock(return_value=payload)
        pipeline = make_pipeline(session, sleep, backend=backend)

        images = await pipeline.generate("Any narrative.", DreamImageStyle.LINE_ART, panel_count=3)

        backend.request_panel_prompts.assert_awaited_once_with("Any narrative.", "Line Art", 3)
        assert [image.prompt for image in images] == ["first", "second"]
        assert images[0].image_data == png_bytes()

    @pytest.mark.asyncio
    async def test_upload_results_creates_visualization(self, session, sleep):
        backend = MagicMock(is_authenticated=True)
        backend.upload_image = AsyncMock(side_effect=["https://cdn/0.png", "https://cdn/1.png"])
        backend.create_visualization = AsyncMock(return_value="viz")
        pipeline = make_pipeline(session, sleep, backend=backend)

        renderer_pipeline = make_pipeline(GenerationSession(), SleepRecorder(), StubRenderer())
        images = await renderer_pipeline.generate("One. Two.", DreamImageStyle.COMIC_BOOK)

        result = await pipeline.upload_results(list(reversed(images)), "rw-1")

        assert result == "viz"
        assert [c.args[1] for c in backend.upload_image.await_args_list] == ["panel_0.png", "panel_1.png"]
        backend.create_visualization.assert_awaited_once_with(
            rewritten_dream_id="rw-1",
            visualization_type="comic_panels",
            image_assets=["https://cdn/0.png", "https://cdn/1.png"],
            status="completed",
        )

    @pytest.mark.asyncio
    async def test_upload_status_reaches_observers(self, session, sleep):
        backend = MagicMock(is_authenticated=True)
        backend.upload_image = AsyncMock(return_value="https://cdn/0.png")
        backend.create_visualization = AsyncMock(return_value="viz")
        pipeline = make_pipeline(session, sleep, backend=backend)
        statuses = []
        session.add_observer(lambda current: statuses.append(current.status_text))

        images = await make_pipeline(GenerationSession(), SleepRecorder(), StubRenderer()).generate(
            "One.", DreamImageStyle.COMIC_BOOK
        )
        await pipeline.upload_results(images, "rw-1")

        assert statuses == ["Uploading to cloud...", ""]

    @pytest.mark.asyncio
    async def test_upload_requires_authentication(self, session, sleep):
        pipeline = make_pipeline(session, sleep, StubRenderer())
        with pytest.raises(ProviderUnavailable):
            await pipeline.upload_results([], "rw-1")


# ============================================================================
# Overlapping runs
# ============================================================================

class TestOverlappingRuns:
    @pytest.mark.asyncio
    async def test_new_run_cancels_the_running_one(self, session, sleep):
        renderer = GatedRenderer()
        pipeline = make_pipeline(session, sleep, renderer)
        published = []
        session.add_observer(lambda current: published.extend(image.prompt for image in current.results))

        first = asyncio.create_task(pipeline.generate("A forest. A river.", DreamImageStyle.COMIC_BOOK))
        await wait_for_first_render(renderer)
        first_prompt = renderer.prompts[0]

        second = asyncio.create_task(pipeline.generate("A castle. A storm.", DreamImageStyle.COMIC_BOOK))
        await settle()
        renderer.release.set()

        outcomes = await asyncio.gather(first, second, return_exceptions=True)

        assert isinstance(outcomes[0], GenerationCancelled)
        assert len(outcomes[1]) == 2
        assert renderer.prompts == [first_prompt] + pipeline.last_prompts
        assert first_prompt not in published
        assert session.state is GenerationState.COMPLETED
        assert session.results == outcomes[1]

    @pytest.mark.asyncio
    async def test_queued_run_is_superseded_by_a_newer_request(self, session, sleep):
        renderer = GatedRenderer()
        pipeline = make_pipeline(session, sleep, renderer)

        first = asyncio.create_task(pipeline.generate("A forest. A river.", DreamImageStyle.COMIC_BOOK))
        await wait_for_first_render(renderer)
        second = asyncio.create_task(pipeline.generate("A castle. A storm.", DreamImageStyle.COMIC_BOOK))
        await settle()
        third = asyncio.create_task(pipeline.generate("A desert. The moon.", DreamImageStyle.COMIC_BOOK))
        await settle()
        renderer.release.set()

        outcomes = await asyncio.gather(first, second, third, return_exceptions=True)

        assert isinstance(outcomes[0], GenerationCancelled)
        assert isinstance(outcomes[1], GenerationCancelled)
        assert len(outcomes[2]) == 2
        assert not any("castle" in prompt or "storm" in prompt for prompt in renderer.prompts)
        assert renderer.prompts[1:] == [image.prompt for image in outcomes[2]]
        assert "desert" in renderer.prompts[1]
        assert "moon" in renderer.prompts[2]


# ============================================================================
# Panel plans
# ============================================================================

class TestPanelPlans:
    @pytest.mark.asyncio
    async def test_local_run_exposes_scene_captions(self, session, sleep):
        pipeline = make_pipeline(session, sleep, StubRenderer())

        await pipeline.generate(THREE_SCENES, DreamImageStyle.COMIC_BOOK)
        plans = pipeline.panel_plans()

        assert [plan.panel_number for plan in plans] == [1, 2, 3]
        assert [plan.caption for plan in plans] == [
            "I walked into a forest",
            "The ocean appeared",
            "A castle glowed at sunrise",
        ]
        assert [plan.image_prompt for plan in plans] == pipeline.last_prompts

    @pytest.mark.asyncio
    async def test_remote_run_has_no_local_plans(self, session, sleep):
        backend = MagicMock(is_authenticated=True)
        backend.request_panel_prompts = AsyncMock(return_value=["first"])
        backend.render_image = AsyncMock(return_value=base64.b64encode(png_bytes()).decode())
        pipeline = make_pipeline(session, sleep, backend=backend)

        await pipeline.generate("Any narrative.", DreamImageStyle.COMIC_BOOK)

        assert pipeline.panel_plans() is None
