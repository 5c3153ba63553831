#!/usr/bin/env python3
"""
image-for-me: Multi-Backend Image MCP Server

An MCP server that generates, describes and tags images using multiple backends:
- OpenAI DALL-E: precise instruction following, logos, GPT-4o descriptions
- Google Gemini: photorealistic scenes, flexible aspect ratios
- Hugging Face: Stable Diffusion generation, BLIP captions, ViT tagging

The orchestrator picks the best available backend per capability, caches
successful generations and falls back to a second backend on failure.
"""

import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from .config.constants import (
    BRIEF_DESCRIPTION_SENTENCES,
    COMPREHENSIVE_MIN_LENGTH,
    COMPREHENSIVE_NOTE,
    DESCRIPTION_FOCUS_KEYWORDS,
)
from .models.domain import (
    DescriptionResult,
    Dimensions,
    GenerationRequest,
    GenerationResult,
    TaggingResult,
)
from .models.input_models import (
    DescriptionFocus,
    DetailLevel,
    ImageDescriptionInput,
    ImageGenerationInput,
    ImageTaggingInput,
    ListProvidersInput,
    LogoGenerationInput,
    LogoStyle,
    LogoType,
    OutputFormat,
)
from .providers.orchestrator import ProviderOrchestrator, create_orchestrator
from .services.image_processing import format_file_size
from .services.logging_config import configure_logging, log_event

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[ProviderOrchestrator]:
    """Create the orchestrator for the server's lifetime."""
    configure_logging()
    orchestrator = create_orchestrator()
    log_event("server_started", providers=[a.name for a in orchestrator.list_adapters()])
    try:
        yield orchestrator
    finally:
        await orchestrator.close()


# Initialize MCP server
mcp = FastMCP("image_for_me", lifespan=app_lifespan)


def _orchestrator(ctx: Context) -> ProviderOrchestrator:
    return ctx.request_context.lifespan_context


# ============================
# Helper Functions
# ============================


def _dump(data: dict) -> str:
    return json.dumps(data, indent=2, default=str)


def format_generation_markdown(result: GenerationResult, title: str = "Image") -> str:
    """Format a generation result as markdown."""
    if not result.success:
        lines = [
            f"## ❌ {title} Generation Failed",
            "",
            f"**Error:** {result.error}",
        ]
        if result.error_code:
            lines.append(f"**Code:** `{result.error_code}`")
        if result.retryable:
            lines.append("*This error is temporary; retrying may succeed.*")
        return "\n".join(lines)

    lines = [
        f"## ✅ {title} Generated Successfully",
        "",
        f"**Provider:** {result.backend_name}",
        f"**Request ID:** `{result.request_id}`",
    ]
    if result.cached:
        lines.append("**Cached:** yes (served from result cache)")

    for index, image in enumerate(result.images, start=1):
        lines.extend(
            [
                "",
                f"### Image {index}",
                f"**Model:** {image.metadata.model}",
                f"**Size:** {image.dimensions.width}x{image.dimensions.height}",
                f"**Format:** {image.format.upper()} ({format_file_size(image.byte_size)})",
                f"**Style:** {image.metadata.style}",
            ]
        )
        if image.metadata.revised_prompt:
            lines.append(f"**Revised Prompt:** {image.metadata.revised_prompt}")
        if image.metadata.seed is not None:
            lines.append(f"**Seed:** {image.metadata.seed}")
        if not image.locator.startswith("data:"):
            lines.append(f"**URL:** {image.locator}")

    return "\n".join(lines)


def format_generation_json(result: GenerationResult) -> str:
    return _dump(result.to_dict(include_data=True))


def _split_sentences(text: str) -> list[str]:
    return [s.strip() for s in re.split(r"(?<=[.!?])\s+", text.strip()) if s.strip()]


def _mentions_any(sentence: str, keywords: list[str]) -> bool:
    lowered = sentence.lower()
    return any(re.search(rf"\b{re.escape(word)}(?:s|es)?\b", lowered) for word in keywords)


def refine_description(
    text: str,
    detail_level: DetailLevel | None = DetailLevel.DETAILED,
    focus: DescriptionFocus | None = DescriptionFocus.GENERAL,
) -> str:
    """
    Shape a raw description to the requested detail level and focus.

    - brief: the first two sentences
    - comprehensive: short descriptions get an analysis note appended
    - focus: only sentences mentioning the focus keywords, when any do;
      otherwise the detail-level result is kept
    """
    sentences = _split_sentences(text)
    refined = " ".join(sentences)
    if detail_level == DetailLevel.BRIEF:
        refined = " ".join(sentences[:BRIEF_DESCRIPTION_SENTENCES])
    elif detail_level == DetailLevel.COMPREHENSIVE and len(refined) < COMPREHENSIVE_MIN_LENGTH:
        refined = f"{refined} {COMPREHENSIVE_NOTE}".strip()

    if focus and focus != DescriptionFocus.GENERAL:
        keywords = DESCRIPTION_FOCUS_KEYWORDS[focus.value]
        relevant = [sentence for sentence in sentences if _mentions_any(sentence, keywords)]
        if relevant:
            refined = f"Focusing on {focus.value}: " + " ".join(relevant)
    return refined


def format_description(
    result: DescriptionResult,
    output_format: OutputFormat,
    parameters: dict[str, Any] | None = None,
    original: str | None = None,
) -> str:
    if output_format == OutputFormat.JSON:
        data = result.to_dict()
        if parameters is not None:
            data["parameters"] = parameters
        if original is not None and original != result.description:
            data["original_description"] = original
        return _dump(data)
    if not result.success:
        return f"## ❌ Image Description Failed\n\n**Error:** {result.error}\n**Code:** `{result.error_code}`"
    lines = [
        "## 🖼️ Image Description",
        "",
        result.description,
        "",
        f"**Provider:** {result.backend_name}",
    ]
    if result.confidence is not None:
        lines.append(f"**Confidence:** {result.confidence:.0%}")
    if parameters and parameters.get("focus") not in (None, DescriptionFocus.GENERAL.value):
        lines.append(f"**Focus:** {parameters['focus']}")
    return "\n".join(lines)


def format_tags(result: TaggingResult, output_format: OutputFormat) -> str:
    if output_format == OutputFormat.JSON:
        return _dump(result.to_dict())
    if not result.success:
        return f"## ❌ Image Tagging Failed\n\n**Error:** {result.error}\n**Code:** `{result.error_code}`"
    lines = [
        "## 🏷️ Image Tags",
        "",
        f"**Provider:** {result.backend_name}",
        "",
    ]
    if not result.tags:
        lines.append("*No tags matched the requested filters.*")
    for tag in result.tags:
        lines.append(f"- **{tag.label}** ({tag.category}): {tag.confidence:.0%}")
    return "\n".join(lines)


def build_logo_prompt(params: LogoGenerationInput) -> str:
    """Compose a logo generation prompt from the logo options."""
    parts = [params.prompt]

    if params.logo_type == LogoType.TEXT:
        parts.extend(["text-only logo", "typography-focused design", "no icons or symbols"])
        if params.business_name:
            parts.append(f'featuring the text "{params.business_name}"')
    elif params.logo_type == LogoType.ICON:
        parts.extend(["icon-only logo", "symbol-based design", "no text elements"])
    else:
        parts.extend(["logo with both text and icon elements", "balanced composition"])
        if params.business_name:
            parts.append(f'incorporating the business name "{params.business_name}"')

    style = params.style or LogoStyle.MINIMALIST
    parts.append(f"{style.value} style design")
    if params.primary_color:
        parts.append(f"primary color: {params.primary_color}")
    if params.secondary_color:
        parts.append(f"secondary color: {params.secondary_color}")
    parts.extend(["transparent background", "no background"])
    if params.industry:
        parts.append(f"suitable for {params.industry} industry")
    parts.extend(
        [
            "professional logo design",
            "scalable design",
            "clean and crisp",
            "centered composition",
        ]
    )
    return ", ".join(parts)


# ============================
# Tool Handlers
# ============================


async def handle_generate_image(
    orchestrator: ProviderOrchestrator, params: ImageGenerationInput
) -> str:
    """Generate images and render the result."""
    if (params.width is None) != (params.height is None):
        result = GenerationResult(
            success=False,
            backend_name="system",
            request_id="",
            error="Both width and height must be provided together.",
            error_code="INVALID_REQUEST",
            retryable=False,
        )
    else:
        dimensions = Dimensions(params.width, params.height) if params.width is not None else None
        request = GenerationRequest(
            prompt=params.prompt,
            style=params.style,
            dimensions=dimensions,
            quality=params.quality or "standard",
            count=params.count or 1,
            format=params.format or "png",
            transparent=bool(params.transparent),
            negative_prompt=params.negative_prompt,
            seed=params.seed,
        )
        result = await orchestrator.generate_image(request, params.preferred_backend())

    if params.output_format == OutputFormat.JSON:
        return format_generation_json(result)
    return format_generation_markdown(result)


async def handle_generate_logo(
    orchestrator: ProviderOrchestrator, params: LogoGenerationInput
) -> str:
    """Generate a transparent PNG logo and render the result."""
    size = params.size or 512
    request = GenerationRequest(
        prompt=build_logo_prompt(params),
        dimensions=Dimensions(size, size),
        format="png",
        transparent=True,
        count=1,
    )
    result = await orchestrator.generate_image(request, params.preferred_backend())

    if params.output_format == OutputFormat.JSON:
        data = result.to_dict(include_data=True)
        data["logo_specs"] = {
            "type": params.logo_type.value,
            "style": (params.style or LogoStyle.MINIMALIST).value,
            "size": size,
            "primary_color": params.primary_color,
            "secondary_color": params.secondary_color,
            "business_name": params.business_name,
            "industry": params.industry,
            "format": "png",
            "transparent": True,
        }
        return _dump(data)
    return format_generation_markdown(result, title="Logo")


async def handle_describe_image(
    orchestrator: ProviderOrchestrator, params: ImageDescriptionInput
) -> str:
    """Describe an image and render the result."""
    result = await orchestrator.describe_image(params.image_url, params.preferred_backend())
    detail_level = params.detail_level or DetailLevel.DETAILED
    focus = params.focus or DescriptionFocus.GENERAL
    original = None
    if result.success:
        original = result.description
        result.description = refine_description(original, detail_level, focus)
    parameters = {
        "detail_level": detail_level.value,
        "focus": focus.value,
        "language": params.language or "english",
    }
    return format_description(
        result, params.output_format or OutputFormat.MARKDOWN, parameters, original
    )


async def handle_tag_image(orchestrator: ProviderOrchestrator, params: ImageTaggingInput) -> str:
    """Tag an image, apply the confidence/category/count filters, and render the result."""
    result = await orchestrator.tag_image(params.image_url, params.preferred_backend())
    if result.success:
        min_confidence = params.min_confidence or 0.0
        tags = [tag for tag in result.tags if tag.confidence >= min_confidence]
        if params.categories:
            wanted = {category.value for category in params.categories}
            tags = [tag for tag in tags if tag.category in wanted]
        result.tags = tags[: params.max_tags or 10]
    return format_tags(result, params.output_format or OutputFormat.MARKDOWN)


async def handle_list_providers(
    orchestrator: ProviderOrchestrator, params: ListProvidersInput
) -> str:
    """Summarize capabilities, per-backend availability and cache statistics."""
    capabilities = await orchestrator.get_capabilities()
    stats = await orchestrator.get_provider_stats()

    if params.output_format == OutputFormat.JSON:
        return _dump({"capabilities": capabilities, **stats})

    def mark(flag: bool) -> str:
        return "✅" if flag else "❌"

    lines = [
        "## 🎨 Image Backends",
        "",
        f"**Configured:** {stats['total_providers']}  **Available:** {stats['available_providers']}",
        "",
        "### Capabilities",
        f"- Generate images: {mark(capabilities['can_generate'])}",
        f"- Generate logos: {mark(capabilities['can_generate_logos'])}",
        f"- Describe images: {mark(capabilities['can_describe'])}",
        f"- Tag images: {mark(capabilities['can_tag'])}",
        f"- Formats: {', '.join(capabilities['supported_formats']) or 'none'}",
        f"- Max images per request: {capabilities['max_image_count']}",
        "",
        "### Backends",
    ]
    if not stats["providers"]:
        lines.append(
            "*No backends configured. Set OPENAI_API_KEY, GEMINI_API_KEY or HUGGINGFACE_API_KEY.*"
        )
    for provider in stats["providers"]:
        lines.append(
            f"- {mark(provider['available'])} **{provider['display_name']}** (`{provider['name']}`): "
            f"{', '.join(provider['features'])}"
        )

    cache = stats["cache"]
    if cache is not None:
        lines.extend(
            [
                "",
                "### Cache",
                f"- Entries: {cache['entries']}/{cache['max_size']}",
                f"- Hit rate: {cache['hit_rate']:.0%} ({cache['hits']} hits, {cache['misses']} misses)",
                f"- Disk usage: {format_file_size(cache['disk_usage_bytes'])}",
            ]
        )
    return "\n".join(lines)


# ============================
# MCP Tools
# ============================


@mcp.tool(name="generate_image")
async def generate_image(params: ImageGenerationInput, ctx: Context) -> str:
    """Generate images using the best available backend.

    **Backend Selection:**
    Backends are ranked per capability (OpenAI, then Gemini, then Hugging Face)
    and only available ones are used. If the chosen backend fails, one other
    capable backend is tried before giving up.

    - Set `transparent` to remove a light background (routes to logo-capable backends)
    - Set `provider` to 'openai', 'gemini' or 'huggingface' to prefer a backend
    - Identical requests within the cache TTL are served from the result cache

    Args:
        params: Image generation parameters including prompt and optional settings.

    Returns:
        Formatted response with image metadata (JSON output includes base64 data).
    """
    return await handle_generate_image(_orchestrator(ctx), params)


@mcp.tool(name="generate_logo")
async def generate_logo(params: LogoGenerationInput, ctx: Context) -> str:
    """Generate a professional logo as a transparent PNG.

    **Logo Types:**
    - text: typography-focused, includes `business_name`
    - icon: symbol only, no text
    - combination: text and icon together

    Colors, industry and style are folded into the prompt. Logos are square.

    Args:
        params: Logo parameters.

    Returns:
        Formatted response with logo metadata.
    """
    return await handle_generate_logo(_orchestrator(ctx), params)


@mcp.tool(name="describe_image")
async def describe_image(params: ImageDescriptionInput, ctx: Context) -> str:
    """Describe an image at a URL using a vision model.

    OpenAI (GPT-4o) and Gemini give detailed descriptions; Hugging Face uses BLIP captions.

    Detail levels: brief (two sentences), detailed (everything), comprehensive
    (flags short descriptions). A focus such as colors or people keeps only the
    sentences about that aspect.

    Args:
        params: Image URL and description options.

    Returns:
        The description with provider metadata.
    """
    return await handle_describe_image(_orchestrator(ctx), params)


@mcp.tool(name="tag_image")
async def tag_image(params: ImageTaggingInput, ctx: Context) -> str:
    """Tag an image at a URL with labels, confidences and categories.

    Uses an image classification model (Hugging Face ViT). Tags can be
    filtered by confidence and category and capped by count.

    Args:
        params: Image URL and filtering options.

    Returns:
        Tag list with confidence scores.
    """
    return await handle_tag_image(_orchestrator(ctx), params)


@mcp.tool(name="list_providers")
async def list_providers(params: ListProvidersInput, ctx: Context) -> str:
    """List configured image backends, their availability and capabilities.

    Also reports result cache statistics (entries, hit rate, disk usage).
    """
    return await handle_list_providers(_orchestrator(ctx), params)


# ============================
# Server Entry Point
# ============================


def create_app() -> FastMCP:
    """Create the MCP server application."""
    return mcp


def main() -> None:
    """Run the MCP server over stdio."""
    configure_logging()
    logger.info("Starting image-for-me MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
