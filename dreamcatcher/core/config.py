"""
Configuration management for Dreamcatcher
"""

import os
from pathlib import Path
from typing import Optional, Tuple
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration"""

    # Remote backend (authenticated path)
    BACKEND_URL: str = os.getenv('DREAMCATCHER_BACKEND_URL', 'http://localhost:3000')
    BACKEND_TOKEN: str = os.getenv('DREAMCATCHER_BACKEND_TOKEN', '')
    HTTP_TIMEOUT: float = float(os.getenv('DREAMCATCHER_HTTP_TIMEOUT', '60'))

    # OpenRouter (dream rewriting)
    OPENROUTER_API_KEY: str = os.getenv('OPENROUTER_API_KEY', '')
    OPENROUTER_URL: str = 'https://openrouter.ai/api/v1/chat/completions'
    OPENROUTER_MODEL: str = os.getenv('OPENROUTER_MODEL', 'x-ai/grok-4-fast')

    # Local renderer
    LOCAL_IMAGE_MODEL: str = os.getenv('LOCAL_IMAGE_MODEL', 'stabilityai/sd-turbo')
    LOCAL_IMAGE_SIZE: int = int(os.getenv('LOCAL_IMAGE_SIZE', '512'))

    # Generation pipeline
    DEFAULT_PANEL_COUNT: int = int(os.getenv('DREAMCATCHER_PANEL_COUNT', '4'))
    RENDER_MAX_ATTEMPTS: int = int(os.getenv('DREAMCATCHER_RENDER_ATTEMPTS', '3'))
    RENDER_BACKOFF_SECONDS: float = float(os.getenv('DREAMCATCHER_BACKOFF_SECONDS', '1.0'))
    PANEL_DELAY_SECONDS: float = float(os.getenv('DREAMCATCHER_PANEL_DELAY_SECONDS', '0.3'))
    RUN_START_DELAY_SECONDS: float = float(os.getenv('DREAMCATCHER_RUN_START_DELAY_SECONDS', '0.5'))

    # Page composition
    PAGE_WIDTH: int = int(os.getenv('DREAMCATCHER_PAGE_WIDTH', '1024'))
    PAGE_HEIGHT: int = int(os.getenv('DREAMCATCHER_PAGE_HEIGHT', '1536'))
    FONT_PATH: str = os.getenv('DREAMCATCHER_FONT_PATH', '')
    BOLD_FONT_PATH: str = os.getenv('DREAMCATCHER_BOLD_FONT_PATH', '')

    # Local storage
    DATA_DIR: Path = Path(os.getenv('DREAMCATCHER_DATA_DIR', '~/.dreamcatcher')).expanduser()

    @classmethod
    def validate_backend(cls) -> bool:
        """Validate configuration required by the remote backend path"""
        required = {
            'DREAMCATCHER_BACKEND_URL': cls.BACKEND_URL,
            'DREAMCATCHER_BACKEND_TOKEN': cls.BACKEND_TOKEN,
        }

        missing = [k for k, v in required.items() if not v]

        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        return True

    @classmethod
    def get(cls, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get configuration value"""
        return getattr(cls, key, default)

    @classmethod
    def page_size(cls) -> Tuple[int, int]:
        """Default comic page size as (width, height)."""
        return cls.PAGE_WIDTH, cls.PAGE_HEIGHT

    @classmethod
    def dreams_file(cls) -> Path:
        return cls.DATA_DIR / "dreams.json"

    @classmethod
    def reminders_file(cls) -> Path:
        return cls.DATA_DIR / "dream_reminders.json"
