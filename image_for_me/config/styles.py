"""
Image style presets.

Each style maps to a prompt modifier appended to the user's prompt before it
is sent to a backend.
"""

from enum import Enum


class ImageStyle(str, Enum):
    """Predefined artistic styles."""

    REALISTIC = "realistic"
    CARTOON = "cartoon"
    ANIME = "anime"
    OIL_PAINTING = "oil-painting"
    WATERCOLOR = "watercolor"
    SKETCH = "sketch"
    DIGITAL_ART = "digital-art"
    CYBERPUNK = "cyberpunk"
    STEAMPUNK = "steampunk"
    MINIMALIST = "minimalist"
    VINTAGE = "vintage"
    POP_ART = "pop-art"
    SURREAL = "surreal"
    PHOTOGRAPHIC = "photographic"
    ABSTRACT = "abstract"


STYLE_MODIFIERS = {
    ImageStyle.REALISTIC: (
        "photorealistic, highly detailed, professional photography, natural lighting, sharp focus"
    ),
    ImageStyle.CARTOON: "cartoon style, colorful, fun, animated, bright colors, clean lines",
    ImageStyle.ANIME: (
        "anime style, manga, Japanese art, detailed eyes, cel shading, vibrant colors"
    ),
    ImageStyle.OIL_PAINTING: (
        "oil painting, classical art, rich textures, visible brushstrokes, artistic, painted"
    ),
    ImageStyle.WATERCOLOR: (
        "watercolor painting, soft colors, flowing paint, artistic, gentle textures, "
        "painted on paper"
    ),
    ImageStyle.SKETCH: (
        "pencil sketch, hand drawn, artistic sketch, charcoal drawing, black and white, "
        "detailed linework"
    ),
    ImageStyle.DIGITAL_ART: (
        "digital art, concept art, highly detailed, vibrant colors, trending on artstation"
    ),
    ImageStyle.CYBERPUNK: (
        "cyberpunk style, neon lights, futuristic city, high tech, dark atmosphere, "
        "glowing accents"
    ),
    ImageStyle.STEAMPUNK: (
        "steampunk style, Victorian era, brass and copper, gears and cogs, "
        "mechanical details"
    ),
    ImageStyle.MINIMALIST: (
        "minimalist design, clean, simple, negative space, limited color palette, modern"
    ),
    ImageStyle.VINTAGE: "vintage style, retro, aged, nostalgic, muted colors, film grain",
    ImageStyle.POP_ART: (
        "pop art style, bold colors, comic book style, halftone dots, Andy Warhol inspired"
    ),
    ImageStyle.SURREAL: (
        "surreal art, dreamlike, impossible scenes, Salvador Dali inspired, imaginative"
    ),
    ImageStyle.PHOTOGRAPHIC: (
        "professional photograph, DSLR, 50mm lens, shallow depth of field, studio quality"
    ),
    ImageStyle.ABSTRACT: (
        "abstract art, non-representational, geometric shapes, bold colors, modern art"
    ),
}


def get_style_names() -> list[str]:
    """Return the names of all predefined styles."""
    return [style.value for style in ImageStyle]


def apply_style_to_prompt(prompt: str, style: ImageStyle | str | None) -> str:
    """Append the style's prompt modifier, leaving unknown styles untouched."""
    if not style:
        return prompt
    try:
        modifier = STYLE_MODIFIERS[ImageStyle(style)]
    except ValueError:
        return prompt
    return f"{prompt}, {modifier}"
