"""
Configuration and application state management.
"""

import os
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .cache import DigestCache
    from .pipeline import DigestPipeline

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    # Reader account (Google Reader compatible API, e.g. FreshRSS greader.php)
    RSS_USER: str = os.getenv("RSS_USER", "")
    RSS_PASS: str = os.getenv("RSS_PASS", "")
    RSS_API_URL: str = os.getenv("RSS_API_URL", "https://rss.dao.js.cn/p/api/greader.php")

    # Favicons are served from our own static path, keyed by upstream filename
    ICON_BASE_URL: str = os.getenv("ICON_BASE_URL", "https://rss.dao.js.cn/p/")

    # Only origin allowed to call the digest endpoint from a browser
    ALLOWED_ORIGIN: str = os.getenv("ALLOWED_ORIGIN", "https://rss2.dao.js.cn")

    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "300"))
    COOLDOWN_SECONDS: int = int(os.getenv("COOLDOWN_SECONDS", "60"))

    # Batching and upstream courtesy
    BATCH_SIZE: int = int(os.getenv("BATCH_SIZE", "10"))
    CONCURRENT_BATCHES: bool = _parse_bool(os.getenv("CONCURRENT_BATCHES"), default=True)
    BATCH_PAUSE_MS: int = int(os.getenv("BATCH_PAUSE_MS", "500"))
    TIME_BUDGET_MS: int = int(os.getenv("TIME_BUDGET_MS", "8000"))
    MAX_ITEMS_PER_FEED: int = int(os.getenv("MAX_ITEMS_PER_FEED", "1000"))

    # HTTP client
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_BASE_DELAY_MS: int = int(os.getenv("RETRY_BASE_DELAY_MS", "1000"))
    REQUEST_TIMEOUT_MS: int = int(os.getenv("REQUEST_TIMEOUT_MS", "10000"))
    PRESERVE_COOKIES: bool = _parse_bool(os.getenv("PRESERVE_COOKIES"), default=False)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def has_credentials(cls) -> bool:
        """Check if reader credentials are configured."""
        return bool(cls.RSS_USER and cls.RSS_PASS)


config = Config()


class AppState:
    """Shared application state."""
    cache: "DigestCache | None" = None
    pipeline: "DigestPipeline | None" = None


state = AppState()


def get_pipeline() -> "DigestPipeline":
    """Dependency to get the digest pipeline."""
    if not state.pipeline:
        raise HTTPException(status_code=500, detail="Digest pipeline not initialized")
    return state.pipeline
