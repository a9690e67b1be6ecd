"""
Services layer for Dreamcatcher.

Separates transport (BackendService, DreamRewriteService), on-device
rendering (LocalImageRenderer), persistence (DreamStore,
NotificationService), and the comic and generation pipelines.
"""

from .backend_service import BackendService, BackendError, decode_image_payload
from .local_renderer import LocalImageRenderer, DiffusersImageRenderer
from .rewrite_service import DreamRewriteService, RewriteError
from .notification_service import NotificationService
from .dream_store import DreamStore

__all__ = [
    "BackendService",
    "BackendError",
    "decode_image_payload",
    "LocalImageRenderer",
    "DiffusersImageRenderer",
    "DreamRewriteService",
    "RewriteError",
    "NotificationService",
    "DreamStore",
]
