"""Configuration module for image-for-me."""

from .constants import (
    CAPABILITY_PRIORITIES,
    MAX_DIMENSION,
    MAX_IMAGE_COUNT,
    MAX_PROMPT_LENGTH,
    MAX_RETRIES,
    MIN_DIMENSION,
    OPENAI_API_BASE_URL,
    OPENAI_SIZES,
)
from .settings import Settings, get_settings
from .styles import ImageStyle, apply_style_to_prompt, get_style_names

__all__ = [
    "CAPABILITY_PRIORITIES",
    "MAX_DIMENSION",
    "MAX_IMAGE_COUNT",
    "MAX_PROMPT_LENGTH",
    "MAX_RETRIES",
    "MIN_DIMENSION",
    "OPENAI_API_BASE_URL",
    "OPENAI_SIZES",
    "ImageStyle",
    "apply_style_to_prompt",
    "get_style_names",
    "get_settings",
    "Settings",
]
