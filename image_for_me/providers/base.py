"""
Abstract base class for image backends.

This module defines the interface that all backend adapters must implement,
ensuring consistent behavior across OpenAI, Gemini, Hugging Face and future
backends. Optional capabilities (description, tagging) are exposed as
`None`-able callables rather than methods that raise when unsupported.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

from ..config.styles import apply_style_to_prompt
from ..models.domain import (
    Capability,
    DescriptionResult,
    Dimensions,
    GenerationRequest,
    GenerationResult,
    TaggingResult,
)
from ..services.errors import ErrorCode, ProviderError
from .resilience import RetryExecutor
from .validation import sanitize_prompt, validate_request

ImageDescriber = Callable[[str], Awaitable[DescriptionResult]]
ImageTagger = Callable[[str], Awaitable[TaggingResult]]


class ImageAdapter(ABC):
    """
    Abstract base class for image backends.

    Subclasses declare their capability set, probe their backend cheaply in
    `is_available`, and run every network call through `self.executor` so
    retry and timeout policy stays identical across backends.
    """

    def __init__(self, executor: RetryExecutor | None = None):
        self.executor = executor or RetryExecutor(self.name)

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier (e.g., 'openai', 'huggingface')."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable backend name."""
        pass

    @property
    @abstractmethod
    def capabilities(self) -> frozenset[Capability]:
        """Capabilities this backend supports with its current configuration."""
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        """Cheap liveness probe. Must not raise; failures resolve to False."""
        pass

    @abstractmethod
    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate images for a request.

        Args:
            request: The generation request

        Returns:
            GenerationResult with success=True and at least one image

        Raises:
            ProviderError: If validation fails or the backend call fails
        """
        pass

    @property
    def describer(self) -> ImageDescriber | None:
        """Image description capability, or None when unsupported."""
        return None

    @property
    def tagger(self) -> ImageTagger | None:
        """Image tagging capability, or None when unsupported."""
        return None

    def reconfigure(self, **changes: Any) -> None:  # noqa: B027
        """Apply configuration changes (credentials, model, timeouts)."""
        pass

    async def close(self) -> None:  # noqa: B027
        """Clean up backend resources."""
        pass

    # ----------------------------
    # Shared request handling
    # ----------------------------

    def new_request_id(self) -> str:
        return str(uuid4())

    def validate_request(self, request: GenerationRequest, request_id: str | None = None) -> None:
        validate_request(request, self.name, request_id)

    def prepare_prompt(
        self, request: GenerationRequest, request_id: str | None = None
    ) -> tuple[str, str]:
        """Return (sanitized prompt, sanitized prompt with style applied)."""
        sanitized = sanitize_prompt(request.prompt)
        if not sanitized:
            raise ProviderError(
                ErrorCode.INVALID_REQUEST,
                "Prompt is empty after sanitization",
                self.name,
                retryable=False,
                request_id=request_id,
            )
        return sanitized, apply_style_to_prompt(sanitized, request.style)

    def style_name(self, request: GenerationRequest) -> str:
        if request.style is None:
            return "realistic"
        return request.style.value if hasattr(request.style, "value") else str(request.style)

    # ----------------------------
    # Introspection
    # ----------------------------

    def supports_feature(self, feature: Capability | str) -> bool:
        """Check whether this backend supports a capability."""
        try:
            capability = Capability(feature)
        except ValueError:
            return False
        if capability == Capability.DESCRIPTION and self.describer is None:
            return False
        if capability == Capability.TAGGING and self.tagger is None:
            return False
        return capability in self.capabilities

    def get_supported_formats(self) -> list[str]:
        return ["png", "jpeg"]

    def get_supported_dimensions(self) -> list[Dimensions]:
        return [
            Dimensions(256, 256),
            Dimensions(512, 512),
            Dimensions(1024, 1024),
        ]

    def get_max_image_count(self) -> int:
        return 1

    def get_info(self) -> dict[str, Any]:
        """Aggregate introspection data for this backend."""
        return {
            "name": self.name,
            "display_name": self.display_name,
            "features": [c.value for c in Capability if self.supports_feature(c)],
            "supported_formats": self.get_supported_formats(),
            "supported_dimensions": [d.to_dict() for d in self.get_supported_dimensions()],
            "max_image_count": self.get_max_image_count(),
        }
