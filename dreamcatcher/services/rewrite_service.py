"""
Dream Rewrite Service

Rewrites a dream narrative into a gentler version through an
OpenAI-compatible chat completions endpoint (OpenRouter).
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.config import Config
from ..core.errors import DreamcatcherError, InvalidArgument

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = "You are a creative writing assistant that transforms stories into peaceful, positive versions."

USER_PROMPT_TEMPLATE = """Transform this dream story into a {tone}, peaceful, and uplifting version.
Keep it in first-person perspective. Make the ending safe and comforting.
Focus on feelings of safety, warmth, and joy.

Original story:
{original}"""

DEFAULT_TONE = "calm"
TEMPERATURE = 0.7


class RewriteError(DreamcatcherError):
    """Raised when the rewrite request fails. The message is user-readable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DreamRewriteService:
    """
    Service for rewriting dreams with a hosted language model.

    Example usage:
        service = DreamRewriteService()
        peaceful = await service.rewrite("I was falling from a tower...", tone="hopeful")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize DreamRewriteService.

        Args:
            api_key: OpenRouter API key (if None, uses Config.OPENROUTER_API_KEY)
            model: Model identifier (if None, uses Config.OPENROUTER_MODEL)
            url: Chat completions URL (if None, uses Config.OPENROUTER_URL)
            client: Preconfigured httpx client
            timeout: Request timeout in seconds
        """
        self.api_key = api_key if api_key is not None else Config.OPENROUTER_API_KEY
        self.model = model or Config.OPENROUTER_MODEL
        self.url = url or Config.OPENROUTER_URL
        self._client = client or httpx.AsyncClient(timeout=timeout or Config.HTTP_TIMEOUT)

        if self.api_key:
            logger.info(f"DreamRewriteService initialized with key: {self.api_key[:8]}... (model: {self.model})")
        else:
            logger.warning("DreamRewriteService initialized without an OpenRouter API key")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_payload(self, original: str, tone: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT_TEMPLATE.format(tone=tone, original=original)},
            ],
            "temperature": TEMPERATURE,
        }

    async def rewrite(self, original: str, tone: str = DEFAULT_TONE) -> str:
        """
        Rewrite a dream narrative.

        Args:
            original: The dream as the user wrote it
            tone: Desired tone (e.g. "calm", "hopeful", "funny")

        Returns:
            Rewritten text, stripped of surrounding whitespace

        Raises:
            InvalidArgument: If the original text is blank
            RewriteError: On HTTP, API, or response-shape failures
        """
        if not original or not original.strip():
            raise InvalidArgument("Dream text is empty")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": "Dreamcatcher",
        }

        logger.info(f"Rewriting dream ({len(original)} chars) with tone '{tone}'")
        try:
            response = await self._client.post(self.url, json=self.build_payload(original, tone), headers=headers)
        except httpx.RequestError as e:
            raise RewriteError(f"Network error: {e}") from e

        body = _json_or_none(response)
        self._raise_for_status(response.status_code, body)

        if not isinstance(body, dict):
            raise RewriteError("Invalid response from AI service.")

        api_message = _api_error_message(body)
        if api_message:
            raise RewriteError(f"API error: {api_message}")

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise RewriteError("Invalid response from AI service.") from e
        if not isinstance(content, str):
            raise RewriteError("Invalid response from AI service.")

        content = content.strip()
        if not content:
            raise RewriteError("AI returned an empty response. Please try again.")

        logger.info(f"Rewrite complete ({len(content)} chars)")
        return content

    @staticmethod
    def _raise_for_status(status: int, body: Any) -> None:
        if status == 200:
            return
        if status == 401:
            raise RewriteError("Invalid API key. Please check your OpenRouter API key.", status)
        if status == 429:
            raise RewriteError("Rate limited. Please wait a moment and try again.", status)
        if 500 <= status <= 599:
            raise RewriteError(f"Server error (HTTP {status}). Please try again later.", status)

        api_message = _api_error_message(body) if isinstance(body, dict) else None
        if api_message:
            raise RewriteError(f"API error: {api_message}", status)
        raise RewriteError(f"Server error (HTTP {status}). Please try again later.", status)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _api_error_message(body: Dict[str, Any]) -> Optional[str]:
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return None
