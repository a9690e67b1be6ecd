"""
Local Image Renderer

On-device image rendering used when the user is not signed in. The model is
an exclusively owned resource: it renders one prompt at a time and is
handed to a single generation pipeline.
"""

import asyncio
import io
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from ..core.config import Config
from ..core.models import DreamImageStyle

logger = logging.getLogger(__name__)


class LocalImageRenderer(ABC):
    """Capability expected from an on-device renderer."""

    @property
    @abstractmethod
    def is_model_loaded(self) -> bool:
        ...

    @abstractmethod
    async def load_model(self) -> None:
        """Load model weights. Raises on failure."""

    @abstractmethod
    async def render_image(self, prompt: str, style: DreamImageStyle) -> bytes:
        """Render one prompt to encoded image bytes."""

    @abstractmethod
    def cancel(self) -> None:
        """Ask an in-flight render to stop at its next step."""


class DiffusersImageRenderer(LocalImageRenderer):
    """
    Stable Diffusion renderer backed by Hugging Face diffusers.

    Requires the ``local`` extra (torch + diffusers). Inference runs in a
    worker thread so the event loop stays responsive.
    """

    def __init__(
        self,
        model_id: Optional[str] = None,
        image_size: Optional[int] = None,
        num_inference_steps: int = 6,
        guidance_scale: float = 0.0,
    ):
        self.model_id = model_id or Config.LOCAL_IMAGE_MODEL
        self.image_size = image_size or Config.LOCAL_IMAGE_SIZE
        self.num_inference_steps = num_inference_steps
        self.guidance_scale = guidance_scale
        self._pipe = None
        self._device = None
        self._cancel_event = threading.Event()

    @property
    def is_model_loaded(self) -> bool:
        return self._pipe is not None

    async def load_model(self) -> None:
        if self._pipe is not None:
            return
        logger.info(f"Loading local image model: {self.model_id}")
        self._pipe = await asyncio.to_thread(self._load_pipeline)
        logger.info(f"Local image model ready on {self._device}")

    def _load_pipeline(self):
        import torch
        from diffusers import AutoPipelineForText2Image

        self._device = "cuda" if torch.cuda.is_available() else "cpu"
        dtype = torch.float16 if self._device == "cuda" else torch.float32
        pipe = AutoPipelineForText2Image.from_pretrained(self.model_id, torch_dtype=dtype)
        pipe.to(self._device)
        pipe.enable_attention_slicing()
        pipe.set_progress_bar_config(disable=True)
        return pipe

    async def render_image(self, prompt: str, style: DreamImageStyle) -> bytes:
        if self._pipe is None:
            raise RuntimeError("Local image model not loaded")
        self._cancel_event.clear()
        full_prompt = f"{prompt}, {style.prompt_suffix}"
        logger.debug(f"Rendering locally: {full_prompt}")
        return await asyncio.to_thread(self._render_sync, full_prompt)

    def _render_sync(self, prompt: str) -> bytes:
        def stop_when_cancelled(pipe, step, timestep, callback_kwargs):
            if self._cancel_event.is_set():
                pipe._interrupt = True
            return callback_kwargs

        result = self._pipe(
            prompt,
            height=self.image_size,
            width=self.image_size,
            num_inference_steps=self.num_inference_steps,
            guidance_scale=self.guidance_scale,
            callback_on_step_end=stop_when_cancelled,
        )
        if self._cancel_event.is_set():
            raise RuntimeError("Local render interrupted")

        buffer = io.BytesIO()
        result.images[0].save(buffer, format="PNG")
        return buffer.getvalue()

    def cancel(self) -> None:
        self._cancel_event.set()
