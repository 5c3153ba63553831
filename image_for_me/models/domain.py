"""
Core data model shared by backends, the result cache and the orchestrator.

Requests are immutable and created per call; results are plain dataclasses
that serialize to dictionaries for tool responses and cache persistence.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from ..config.styles import ImageStyle

Quality = Literal["standard", "hd"]
ImageFormat = Literal["png", "jpeg", "webp"]


class Capability(str, Enum):
    """Features a backend may support."""

    GENERATION = "generation"
    DESCRIPTION = "description"
    TAGGING = "tagging"
    TRANSPARENCY = "transparency"
    LOGO = "logo"


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dimensions:
        return cls(width=int(data["width"]), height=int(data["height"]))


@dataclass(frozen=True)
class GenerationRequest:
    """A single image generation request."""

    prompt: str
    style: ImageStyle | None = None
    dimensions: Dimensions | None = None
    quality: Quality = "standard"
    count: int = 1
    format: ImageFormat = "png"
    transparent: bool = False
    negative_prompt: str | None = None
    seed: int | None = None

    @property
    def capability(self) -> Capability:
        """Transparent requests are logo requests; everything else is plain generation."""
        return Capability.LOGO if self.transparent else Capability.GENERATION


@dataclass
class ImageMetadata:
    prompt: str
    style: str
    backend_name: str
    model: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    seed: int | None = None
    revised_prompt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "style": self.style,
            "backend_name": self.backend_name,
            "model": self.model,
            "generated_at": self.generated_at.isoformat(),
            "seed": self.seed,
            "revised_prompt": self.revised_prompt,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageMetadata:
        return cls(
            prompt=data["prompt"],
            style=data["style"],
            backend_name=data["backend_name"],
            model=data["model"],
            generated_at=datetime.fromisoformat(data["generated_at"]),
            seed=data.get("seed"),
            revised_prompt=data.get("revised_prompt"),
        )


@dataclass
class GeneratedImage:
    """One generated image. `locator` is a URL or a `data:` URI."""

    locator: str
    format: str
    dimensions: Dimensions
    byte_size: int
    metadata: ImageMetadata
    base64: str | None = None

    def to_dict(self, include_data: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "locator": self.locator if include_data or not self.locator.startswith("data:") else None,
            "format": self.format,
            "dimensions": self.dimensions.to_dict(),
            "byte_size": self.byte_size,
            "metadata": self.metadata.to_dict(),
        }
        if include_data:
            data["base64"] = self.base64
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeneratedImage:
        return cls(
            locator=data["locator"],
            format=data["format"],
            dimensions=Dimensions.from_dict(data["dimensions"]),
            byte_size=int(data["byte_size"]),
            metadata=ImageMetadata.from_dict(data["metadata"]),
            base64=data.get("base64"),
        )


@dataclass
class GenerationResult:
    """Normalized result from any backend."""

    success: bool
    backend_name: str
    request_id: str
    images: list[GeneratedImage] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    retryable: bool | None = None
    cached: bool = False

    def copy(self, **changes: Any) -> GenerationResult:
        """Return a copy whose images can be changed without touching this result."""
        return replace(self, images=deepcopy(self.images), **changes)

    def marked_cached(self) -> GenerationResult:
        """Return a copy flagged as served from the cache."""
        return self.copy(cached=True)

    def to_dict(self, include_data: bool = True) -> dict[str, Any]:
        return {
            "success": self.success,
            "backend_name": self.backend_name,
            "request_id": self.request_id,
            "images": [image.to_dict(include_data=include_data) for image in self.images],
            "error": self.error,
            "error_code": self.error_code,
            "retryable": self.retryable,
            "cached": self.cached,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenerationResult:
        return cls(
            success=bool(data["success"]),
            backend_name=data["backend_name"],
            request_id=data["request_id"],
            images=[GeneratedImage.from_dict(item) for item in data.get("images", [])],
            error=data.get("error"),
            error_code=data.get("error_code"),
            retryable=data.get("retryable"),
            cached=bool(data.get("cached", False)),
        )


@dataclass
class DescriptionResult:
    success: bool
    backend_name: str
    description: str = ""
    confidence: float | None = None
    error: str | None = None
    error_code: str | None = None
    retryable: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "backend_name": self.backend_name,
            "description": self.description,
            "confidence": self.confidence,
            "error": self.error,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }


@dataclass
class ImageTag:
    label: str
    confidence: float
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "confidence": self.confidence, "category": self.category}


@dataclass
class TaggingResult:
    success: bool
    backend_name: str
    tags: list[ImageTag] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    retryable: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "backend_name": self.backend_name,
            "tags": [tag.to_dict() for tag in self.tags],
            "error": self.error,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }
