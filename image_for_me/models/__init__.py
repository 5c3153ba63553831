"""Models module for image-for-me."""

from .domain import (
    Capability,
    DescriptionResult,
    Dimensions,
    GeneratedImage,
    GenerationRequest,
    GenerationResult,
    ImageMetadata,
    ImageTag,
    TaggingResult,
)
from .input_models import (
    Backend,
    ImageDescriptionInput,
    ImageGenerationInput,
    ImageTaggingInput,
    ListProvidersInput,
    LogoGenerationInput,
    OutputFormat,
)

__all__ = [
    "Backend",
    "Capability",
    "DescriptionResult",
    "Dimensions",
    "GeneratedImage",
    "GenerationRequest",
    "GenerationResult",
    "ImageDescriptionInput",
    "ImageGenerationInput",
    "ImageMetadata",
    "ImageTag",
    "ImageTaggingInput",
    "ListProvidersInput",
    "LogoGenerationInput",
    "OutputFormat",
    "TaggingResult",
]
