"""Backend module for image-for-me."""

from .base import ImageAdapter, ImageDescriber, ImageTagger
from .gemini_provider import GeminiProvider
from .huggingface_provider import HuggingFaceProvider
from .openai_provider import OpenAIProvider
from .orchestrator import ProviderOrchestrator, build_adapters, create_orchestrator
from .resilience import RetryExecutor

__all__ = [
    "ImageAdapter",
    "ImageDescriber",
    "ImageTagger",
    "GeminiProvider",
    "HuggingFaceProvider",
    "OpenAIProvider",
    "ProviderOrchestrator",
    "RetryExecutor",
    "build_adapters",
    "create_orchestrator",
]
