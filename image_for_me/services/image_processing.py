"""
Image post-processing for generated images.

Pure CPU work on decoded bytes: format conversion, best-effort background
transparency for logos, and resizing to the requested dimensions.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageChops

from ..config.constants import (
    TRANSPARENCY_BRIGHTNESS_THRESHOLD,
    TRANSPARENCY_CHANNEL_TOLERANCE,
)
from ..models.domain import Dimensions

logger = logging.getLogger(__name__)

# Pillow format names per output format
_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}
_LOSSY_QUALITY = 90


@dataclass
class ProcessedImage:
    data: bytes
    format: str
    width: int
    height: int

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode()


def make_background_transparent(image: Image.Image) -> Image.Image:
    """
    Turn near-white, near-grey pixels fully transparent.

    A brightness heuristic with no accuracy guarantee, meant for logos
    rendered on a plain light background.
    """
    rgba = image.convert("RGBA")
    red, green, blue, alpha = rgba.split()

    brightness = rgba.convert("RGB").convert("L", matrix=(1 / 3, 1 / 3, 1 / 3, 0))
    bright = brightness.point(lambda v: 255 if v > TRANSPARENCY_BRIGHTNESS_THRESHOLD else 0)
    red_green = ImageChops.difference(red, green).point(
        lambda v: 255 if v < TRANSPARENCY_CHANNEL_TOLERANCE else 0
    )
    green_blue = ImageChops.difference(green, blue).point(
        lambda v: 255 if v < TRANSPARENCY_CHANNEL_TOLERANCE else 0
    )
    # 255 where every condition holds, 0 elsewhere
    background = ImageChops.darker(bright, ImageChops.darker(red_green, green_blue))

    rgba.putalpha(ImageChops.subtract(alpha, background))
    return rgba


def process_image_bytes(
    data: bytes,
    *,
    target_format: str = "png",
    dimensions: Dimensions | None = None,
    transparent: bool = False,
) -> ProcessedImage:
    """
    Decode raw image bytes and apply the requested post-processing.

    Args:
        data: Encoded image bytes as returned by a backend
        target_format: Output format ("png", "jpeg" or "webp")
        dimensions: Resize to these dimensions when they differ from the decoded size
        transparent: Remove a light background (PNG only)

    Returns:
        ProcessedImage with the re-encoded bytes and final size
    """
    pil_format = _PIL_FORMATS.get(target_format.lower())
    if pil_format is None:
        raise ValueError(f"Unsupported output format: {target_format}")

    image: Image.Image = Image.open(io.BytesIO(data))
    image.load()

    if transparent and pil_format == "PNG":
        try:
            image = make_background_transparent(image)
        except Exception:
            logger.warning("Failed to make image transparent, keeping original", exc_info=True)

    if dimensions is not None and image.size != (dimensions.width, dimensions.height):
        logger.debug("Resizing from %s to %dx%d", image.size, dimensions.width, dimensions.height)
        image = image.resize((dimensions.width, dimensions.height), Image.Resampling.LANCZOS)

    if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = io.BytesIO()
    if pil_format == "PNG":
        image.save(buffer, format=pil_format)
    else:
        image.save(buffer, format=pil_format, quality=_LOSSY_QUALITY)

    return ProcessedImage(
        data=buffer.getvalue(),
        format=target_format.lower(),
        width=image.size[0],
        height=image.size[1],
    )


def to_data_uri(data: bytes, image_format: str) -> str:
    encoded = base64.b64encode(data).decode()
    return f"data:image/{image_format};base64,{encoded}"


def guess_mime_type(data: bytes) -> str:
    """Best-effort MIME type for downloaded image bytes."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            mime = Image.MIME.get(image.format or "")
    except Exception:
        mime = None
    return mime or "image/png"


def format_file_size(num_bytes: float) -> str:
    """Format a byte count for humans, e.g. `1.50 KB`."""
    units = ["B", "KB", "MB", "GB"]
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.2f} {units[unit_index]}"
