"""
Settings management for image-for-me.

Handles API keys, backend toggles, retry, cache and logging configuration
from environment variables.
"""

import os
from dataclasses import dataclass
from functools import lru_cache

from .constants import (
    DEFAULT_AVAILABILITY_TIMEOUT,
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL,
    DEFAULT_GEMINI_IMAGE_MODEL,
    DEFAULT_HUGGINGFACE_MODEL,
    DEFAULT_OPENAI_IMAGE_MODEL,
    DEFAULT_OPENAI_VISION_MODEL,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_TIMEOUT,
    HUGGINGFACE_INFERENCE_URL,
    MAX_RETRIES,
    OPENAI_API_BASE_URL,
)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # OpenAI
    openai_api_key: str | None = None
    openai_enabled: bool = True
    openai_model: str = DEFAULT_OPENAI_IMAGE_MODEL
    openai_vision_model: str = DEFAULT_OPENAI_VISION_MODEL
    openai_base_url: str = OPENAI_API_BASE_URL
    openai_organization: str | None = None
    openai_timeout: float = DEFAULT_TIMEOUT

    # Gemini
    gemini_api_key: str | None = None  # Also checks GOOGLE_API_KEY
    gemini_enabled: bool = True
    gemini_model: str = DEFAULT_GEMINI_IMAGE_MODEL
    gemini_timeout: float = DEFAULT_TIMEOUT

    # Hugging Face
    huggingface_api_key: str | None = None  # Also checks HF_TOKEN
    huggingface_enabled: bool = True
    huggingface_model: str = DEFAULT_HUGGINGFACE_MODEL
    huggingface_endpoint: str = HUGGINGFACE_INFERENCE_URL
    huggingface_timeout: float = DEFAULT_TIMEOUT

    # Retries
    retry_attempts: int = MAX_RETRIES
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    availability_timeout: float = DEFAULT_AVAILABILITY_TIMEOUT

    # Cache
    cache_enabled: bool = True
    cache_ttl: int = DEFAULT_CACHE_TTL
    cache_max_size: int = DEFAULT_CACHE_MAX_SIZE
    cache_dir: str | None = None
    cache_persist: bool = False

    # Data
    data_dir: str | None = None

    # Logging
    log_dir: str | None = None
    log_level: str = "INFO"
    log_max_bytes: int = 5_242_880  # 5 MiB
    log_backup_count: int = 3
    log_prompts: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        openai_key = os.getenv("OPENAI_API_KEY")
        # Support both GEMINI_API_KEY and GOOGLE_API_KEY for Gemini
        gemini_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        huggingface_key = os.getenv("HUGGINGFACE_API_KEY") or os.getenv("HF_TOKEN")

        return cls(
            openai_api_key=openai_key,
            openai_enabled=_env_flag("OPENAI_ENABLED", True),
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_IMAGE_MODEL),
            openai_vision_model=os.getenv("OPENAI_VISION_MODEL", DEFAULT_OPENAI_VISION_MODEL),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or OPENAI_API_BASE_URL,
            openai_organization=os.getenv("OPENAI_ORGANIZATION"),
            openai_timeout=float(os.getenv("OPENAI_TIMEOUT", str(DEFAULT_TIMEOUT))),
            gemini_api_key=gemini_key,
            gemini_enabled=_env_flag("GEMINI_ENABLED", True),
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_IMAGE_MODEL),
            gemini_timeout=float(os.getenv("GEMINI_TIMEOUT", str(DEFAULT_TIMEOUT))),
            huggingface_api_key=huggingface_key,
            huggingface_enabled=_env_flag("HUGGINGFACE_ENABLED", True),
            huggingface_model=os.getenv("HUGGINGFACE_MODEL", DEFAULT_HUGGINGFACE_MODEL),
            huggingface_endpoint=os.getenv("HUGGINGFACE_ENDPOINT") or HUGGINGFACE_INFERENCE_URL,
            huggingface_timeout=float(os.getenv("HUGGINGFACE_TIMEOUT", str(DEFAULT_TIMEOUT))),
            retry_attempts=int(os.getenv("RETRY_ATTEMPTS", str(MAX_RETRIES))),
            retry_base_delay=float(os.getenv("RETRY_BASE_DELAY", str(DEFAULT_RETRY_BASE_DELAY))),
            availability_timeout=float(
                os.getenv("AVAILABILITY_TIMEOUT", str(DEFAULT_AVAILABILITY_TIMEOUT))
            ),
            cache_enabled=_env_flag("CACHE_ENABLED", True),
            cache_ttl=int(os.getenv("CACHE_TTL", str(DEFAULT_CACHE_TTL))),
            cache_max_size=int(os.getenv("CACHE_MAX_SIZE", str(DEFAULT_CACHE_MAX_SIZE))),
            cache_dir=os.getenv("CACHE_DIR"),
            cache_persist=_env_flag("CACHE_PERSIST", False),
            data_dir=os.getenv("IMAGE_FOR_ME_DATA_DIR"),
            log_dir=os.getenv("IMAGE_FOR_ME_LOG_DIR") or os.getenv("LOG_DIR"),
            log_level=os.getenv("IMAGE_FOR_ME_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO"),
            log_max_bytes=int(
                os.getenv("IMAGE_FOR_ME_LOG_MAX_BYTES") or os.getenv("LOG_MAX_BYTES", "5242880")
            ),
            log_backup_count=int(
                os.getenv("IMAGE_FOR_ME_LOG_BACKUP_COUNT") or os.getenv("LOG_BACKUP_COUNT", "3")
            ),
            log_prompts=_env_flag("IMAGE_FOR_ME_LOG_PROMPTS", False),
        )

    def get_openai_api_key(self, provided_key: str | None = None) -> str:
        """Get OpenAI API key from provided value or settings."""
        api_key = provided_key or self.openai_api_key
        if not api_key:
            raise ValueError(
                "OpenAI API key not found. Set OPENAI_API_KEY environment variable."
            )
        return api_key

    def get_gemini_api_key(self, provided_key: str | None = None) -> str:
        """Get Gemini API key from provided value or settings."""
        api_key = provided_key or self.gemini_api_key
        if not api_key:
            raise ValueError(
                "Gemini API key not found. Set GEMINI_API_KEY environment variable."
            )
        return api_key

    def get_huggingface_api_key(self, provided_key: str | None = None) -> str:
        """Get Hugging Face API key from provided value or settings."""
        api_key = provided_key or self.huggingface_api_key
        if not api_key:
            raise ValueError(
                "Hugging Face API key not found. Set HUGGINGFACE_API_KEY environment variable."
            )
        return api_key

    def is_openai_enabled(self) -> bool:
        return self.openai_enabled and bool(self.openai_api_key)

    def is_gemini_enabled(self) -> bool:
        return self.gemini_enabled and bool(self.gemini_api_key)

    def is_huggingface_enabled(self) -> bool:
        return self.huggingface_enabled and bool(self.huggingface_api_key)

    def enabled_providers(self) -> list[str]:
        """Return list of backends that are enabled and have an API key."""
        providers = []
        if self.is_openai_enabled():
            providers.append("openai")
        if self.is_gemini_enabled():
            providers.append("gemini")
        if self.is_huggingface_enabled():
            providers.append("huggingface")
        return providers


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
