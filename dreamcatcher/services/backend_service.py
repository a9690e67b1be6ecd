"""
BackendService - Async HTTP client for the Dreamcatcher backend.

Used only when the user is authenticated. Provides panel prompt planning,
server-side image rendering, image upload, and visualization records.

Part of the Service Layer - contains transport logic, no UI code.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..core.config import Config
from ..core.errors import DecodeFailed
from .backend_models import (
    APIVisualization,
    AuthResponse,
    ImageRenderResponse,
    PanelPromptsResponse,
    UploadResponse,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class BackendError(Exception):
    """Base class for backend failures."""


class BackendUnauthorized(BackendError):
    def __init__(self, message: str = "Unauthorized request"):
        super().__init__(message)


class BackendRateLimited(BackendError):
    def __init__(self, message: str = "Rate limited. Please wait a moment and try again."):
        super().__init__(message)


class BackendNotFound(BackendError):
    pass


class BackendConflict(BackendError):
    pass


class BackendServerError(BackendError):
    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Server error (HTTP {status_code})")


class BackendNetworkError(BackendError):
    pass


class BackendDecodeError(BackendError):
    def __init__(self, message: str = "Failed to decode server response"):
        super().__init__(message)


# ============================================================================
# Payload helpers
# ============================================================================

def decode_image_payload(payload: str) -> bytes:
    """
    Decode a base64 image payload, stripping any data-URL prefix.

    Args:
        payload: Base64 string, optionally "data:image/png;base64,..."

    Returns:
        Raw image bytes

    Raises:
        DecodeFailed: If the payload is empty or not valid base64
    """
    if not payload:
        raise DecodeFailed("Empty image payload")

    encoded = payload.rsplit(",", 1)[-1] if "," in payload else payload
    # Non-alphabet characters (whitespace, line breaks) are discarded
    try:
        data = base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailed(f"Invalid base64 image payload: {e}") from e

    if not data:
        raise DecodeFailed("Image payload decoded to zero bytes")
    return data


# ============================================================================
# Service
# ============================================================================

class BackendService:
    """
    Async client for the Dreamcatcher backend.

    Example usage:
        backend = BackendService(token="...")
        prompts = await backend.request_panel_prompts(text, "comic_book", 4)
        payload = await backend.render_image(prompts[0])
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize BackendService.

        Args:
            base_url: Backend base URL (if None, uses Config.BACKEND_URL)
            token: Bearer token (if None, uses Config.BACKEND_TOKEN)
            client: Preconfigured httpx client (tests inject a MockTransport client)
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or Config.BACKEND_URL).rstrip("/")
        self.token = token if token is not None else Config.BACKEND_TOKEN
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or Config.HTTP_TIMEOUT,
        )

        if self.token:
            logger.info(f"BackendService initialized with token: {self.token[:8]}...")
        else:
            logger.info("BackendService initialized without credentials")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # =========================================================================
    # Auth
    # =========================================================================

    async def login(self, email: str, password: str) -> AuthResponse:
        data = await self._request("POST", "/api/auth/login", json={"email": email, "password": password}, auth=False)
        auth = self._parse(AuthResponse, data)
        self.token = auth.token
        logger.info(f"Signed in as {auth.user.email}")
        return auth

    def logout(self) -> None:
        self.token = ""

    # =========================================================================
    # Image generation
    # =========================================================================

    async def request_panel_prompts(self, narrative_text: str, style: str, panel_count: int) -> List[str]:
        """Ask the backend to plan ``panel_count`` panel prompts for the narrative."""
        data = await self._request(
            "POST",
            "/api/images/generate",
            json={"prompt": narrative_text, "style": style, "numberOfPanels": panel_count},
        )
        prompts = self._parse(PanelPromptsResponse, data).panel_prompts
        logger.info(f"Backend planned {len(prompts)} panel prompts")
        return prompts

    async def render_image(self, prompt: str) -> str:
        """Render one prompt server-side; returns the base64 (data URL) payload."""
        data = await self._request("POST", "/api/images/render", json={"prompt": prompt})
        return self._parse(ImageRenderResponse, data).image_url

    async def upload_image(self, data: bytes, filename: str) -> str:
        """Upload image bytes; returns the hosted URL."""
        files = {"file": (filename, data, "image/png")}
        response = await self._request("POST", "/api/uploads", files=files)
        return self._parse(UploadResponse, response).url

    async def create_visualization(
        self,
        rewritten_dream_id: str,
        visualization_type: str,
        image_assets: List[str],
        status: str,
    ) -> APIVisualization:
        data = await self._request(
            "POST",
            "/api/visualizations",
            json={
                "rewritten_dream_id": rewritten_dream_id,
                "visualization_type": visualization_type,
                "image_assets": image_assets,
                "status": status,
            },
        )
        return self._parse(APIVisualization, data)

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(self, method: str, path: str, auth: bool = True, **kwargs) -> Dict[str, Any]:
        headers = kwargs.pop("headers", {})
        if auth:
            if not self.token:
                raise BackendUnauthorized("Not signed in")
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise BackendNetworkError(f"Network error: {e}") from e

        self._raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise BackendDecodeError() from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return

        message = _error_message(response)
        if status == 401:
            raise BackendUnauthorized(message or "Unauthorized request")
        if status == 404:
            raise BackendNotFound(message or "Not found")
        if status == 409:
            raise BackendConflict(message or "Conflict")
        if status == 429:
            raise BackendRateLimited()
        raise BackendServerError(status, message)

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise BackendDecodeError(f"Unexpected response shape for {model.__name__}") from e


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        return body.get("message") or (error if isinstance(error, str) else None)
    return None
