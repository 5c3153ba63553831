"""
Pydantic input models for image-for-me tools.

These models define the parameters accepted by MCP tools
with rich descriptions for Claude to understand how to use them.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..config.constants import MAX_DIMENSION, MAX_IMAGE_COUNT, MAX_PROMPT_LENGTH, MIN_DIMENSION
from ..config.styles import ImageStyle


class Backend(str, Enum):
    """Available image backends."""

    AUTO = "auto"  # Best available backend per capability priority
    OPENAI = "openai"  # OpenAI DALL-E + GPT-4o vision
    GEMINI = "gemini"  # Google Gemini image models
    HUGGINGFACE = "huggingface"  # Hugging Face Inference (Stable Diffusion, BLIP, ViT)


class OutputFormat(str, Enum):
    """Output format for tool responses."""

    MARKDOWN = "markdown"
    JSON = "json"


class LogoType(str, Enum):
    TEXT = "text"
    ICON = "icon"
    COMBINATION = "combination"


class LogoStyle(str, Enum):
    MINIMALIST = "minimalist"
    MODERN = "modern"
    VINTAGE = "vintage"
    PROFESSIONAL = "professional"
    CREATIVE = "creative"
    ELEGANT = "elegant"


class DetailLevel(str, Enum):
    BRIEF = "brief"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class DescriptionFocus(str, Enum):
    """Aspect of the image a description should concentrate on."""

    GENERAL = "general"
    OBJECTS = "objects"
    PEOPLE = "people"
    SCENE = "scene"
    COLORS = "colors"
    COMPOSITION = "composition"
    STYLE = "style"


class TagCategory(str, Enum):
    """Categories assigned to tags by keyword."""

    ANIMAL = "animal"
    PERSON = "person"
    VEHICLE = "vehicle"
    ARCHITECTURE = "architecture"
    NATURE = "nature"
    FOOD = "food"
    OBJECT = "object"


class _ToolInput(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    def preferred_backend(self) -> str | None:
        backend = getattr(self, "provider", None)
        if backend is None or backend == Backend.AUTO:
            return None
        return backend.value


class ImageGenerationInput(_ToolInput):
    """
    Input model for image generation.

    The backend is picked by capability priority (OpenAI, then Gemini, then
    Hugging Face) unless `provider` names one explicitly.
    """

    prompt: str = Field(
        ...,
        description=(
            "Text description of the desired image. Be specific about subject, "
            "composition, style, lighting, and mood."
        ),
        min_length=1,
        max_length=MAX_PROMPT_LENGTH,
    )

    style: ImageStyle | None = Field(
        default=None,
        description=(
            "Style applied to the prompt: 'realistic', 'cartoon', 'anime', 'oil-painting', "
            "'watercolor', 'sketch', 'digital-art', 'cyberpunk', 'steampunk', 'minimalist', "
            "'vintage', 'pop-art', 'surreal', 'photographic', 'abstract'."
        ),
    )

    width: int | None = Field(
        default=None,
        description=f"Image width in pixels ({MIN_DIMENSION}-{MAX_DIMENSION}). Requires height.",
    )

    height: int | None = Field(
        default=None,
        description=f"Image height in pixels ({MIN_DIMENSION}-{MAX_DIMENSION}). Requires width.",
    )

    quality: str | None = Field(
        default="standard",
        description="'standard' or 'hd' (OpenAI only; other backends ignore it).",
        pattern="^(standard|hd)$",
    )

    count: int | None = Field(
        default=1,
        description=f"Number of images to generate (1-{MAX_IMAGE_COUNT}). Backends may return fewer.",
        ge=1,
        le=MAX_IMAGE_COUNT,
    )

    format: str | None = Field(
        default="png",
        description="Output image format: 'png', 'jpeg' or 'webp'.",
        pattern="^(png|jpeg|webp)$",
    )

    transparent: bool | None = Field(
        default=False,
        description="Remove a light background (PNG only). Routes to logo-capable backends.",
    )

    negative_prompt: str | None = Field(
        default=None,
        description="Things to avoid in the image (Hugging Face and Gemini).",
        max_length=1000,
    )

    seed: int | None = Field(
        default=None,
        description="Seed for reproducible results (Hugging Face only).",
    )

    provider: Backend | None = Field(
        default=Backend.AUTO,
        description=(
            "Backend to use:\n"
            "- 'auto' (default): best available backend\n"
            "- 'openai': DALL-E, best for precise instruction following\n"
            "- 'gemini': Gemini image models, flexible aspect ratios\n"
            "- 'huggingface': Stable Diffusion, supports negative prompts and seeds"
        ),
    )

    output_format: OutputFormat | None = Field(
        default=OutputFormat.MARKDOWN,
        description="Output format for the tool response.",
    )


class LogoGenerationInput(_ToolInput):
    """Input model for logo generation (always a transparent PNG)."""

    prompt: str = Field(
        ...,
        description="Description of the logo to generate.",
        min_length=1,
        max_length=2000,
    )

    logo_type: LogoType = Field(
        ...,
        description="Type of logo: 'text' (typography), 'icon' (symbol only) or 'combination'.",
    )

    size: int | None = Field(
        default=512,
        description="Logo edge length in pixels (128-1024). Logos are square.",
        ge=128,
        le=1024,
    )

    style: LogoStyle | None = Field(
        default=LogoStyle.MINIMALIST,
        description="Logo design style.",
    )

    primary_color: str | None = Field(
        default=None,
        description="Primary color (e.g., 'blue', '#FF0000', 'rgb(255,0,0)').",
    )

    secondary_color: str | None = Field(
        default=None,
        description="Secondary color (optional).",
    )

    industry: str | None = Field(
        default=None,
        description="Industry or business type (e.g., 'technology', 'healthcare').",
    )

    business_name: str | None = Field(
        default=None,
        description="Business or brand name for text and combination logos.",
        max_length=100,
    )

    provider: Backend | None = Field(
        default=Backend.AUTO,
        description="Backend to use ('auto' picks the best logo-capable backend).",
    )

    output_format: OutputFormat | None = Field(
        default=OutputFormat.MARKDOWN,
        description="Output format for the tool response.",
    )


class ImageDescriptionInput(_ToolInput):
    """Input model for image description."""

    image_url: str = Field(
        ...,
        description="HTTP(S) URL of the image to describe.",
        min_length=1,
        pattern=r"^https?://",
    )

    detail_level: DetailLevel | None = Field(
        default=DetailLevel.DETAILED,
        description=(
            "'brief' keeps the first two sentences; 'detailed' returns everything; "
            "'comprehensive' also flags short descriptions for further analysis."
        ),
    )

    focus: DescriptionFocus | None = Field(
        default=DescriptionFocus.GENERAL,
        description=(
            "Aspect to focus on: general, objects, people, scene, colors, composition or style. "
            "Keeps only the sentences about that aspect when any match."
        ),
    )

    language: str | None = Field(
        default="english",
        description="Language requested for the description, echoed in the response.",
        min_length=2,
        max_length=50,
    )

    provider: Backend | None = Field(
        default=Backend.AUTO,
        description="Backend to use ('openai', 'gemini', 'huggingface' or 'auto').",
    )

    output_format: OutputFormat | None = Field(
        default=OutputFormat.MARKDOWN,
        description="Output format for the tool response.",
    )


class ImageTaggingInput(_ToolInput):
    """Input model for image tagging."""

    image_url: str = Field(
        ...,
        description="HTTP(S) URL of the image to tag.",
        min_length=1,
        pattern=r"^https?://",
    )

    max_tags: int | None = Field(
        default=10,
        description="Maximum number of tags to return (1-20).",
        ge=1,
        le=20,
    )

    min_confidence: float | None = Field(
        default=0.1,
        description="Minimum confidence threshold for tags (0-1).",
        ge=0.0,
        le=1.0,
    )

    categories: list[TagCategory] | None = Field(
        default=None,
        description="Only return tags in these categories.",
    )

    provider: Backend | None = Field(
        default=Backend.AUTO,
        description="Backend to use (only 'huggingface' tags images today).",
    )

    output_format: OutputFormat | None = Field(
        default=OutputFormat.MARKDOWN,
        description="Output format for the tool response.",
    )


class ListProvidersInput(_ToolInput):
    """Input model for listing backends."""

    output_format: OutputFormat | None = Field(
        default=OutputFormat.MARKDOWN,
        description="Output format for the tool response.",
    )
