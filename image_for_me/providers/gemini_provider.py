"""
Google Gemini image backend.

Wraps the google-genai SDK for image generation (`response_modalities=["IMAGE"]`)
and for image description with a multimodal Flash model. The SDK is
synchronous, so calls run in the default executor.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Optional

import httpx

from ..config.constants import (
    DEFAULT_GEMINI_IMAGE_MODEL,
    DEFAULT_GEMINI_VISION_MODEL,
    DEFAULT_TIMEOUT,
    GEMINI_ASPECT_RATIOS,
)
from ..models.domain import (
    Capability,
    DescriptionResult,
    Dimensions,
    GeneratedImage,
    GenerationRequest,
    GenerationResult,
    ImageMetadata,
)
from ..services.errors import ErrorCode, ProviderError
from ..services.image_processing import guess_mime_type, process_image_bytes, to_data_uri
from ..services.logging_config import log_event
from .base import ImageAdapter, ImageDescriber
from .resilience import RetryExecutor

logger = logging.getLogger(__name__)

# Lazy import for google-genai (may not be installed)
genai = None
types = None


def _import_dependencies():
    """Lazily import Gemini dependencies."""
    global genai, types
    if genai is None:
        try:
            from google import genai as _genai
            from google.genai import types as _types

            genai = _genai
            types = _types
        except ImportError as e:
            raise ProviderError(
                ErrorCode.CONFIGURATION_ERROR,
                "Gemini backend requires the google-genai package. "
                "Install with: pip install google-genai",
                "gemini",
            ) from e


def closest_aspect_ratio(dimensions: Optional[Dimensions]) -> str:
    """Pick the Gemini aspect ratio closest to the requested dimensions."""
    if dimensions is None:
        return "1:1"
    target = dimensions.aspect_ratio
    return min(GEMINI_ASPECT_RATIOS, key=lambda ratio: abs(GEMINI_ASPECT_RATIOS[ratio] - target))


class GeminiProvider(ImageAdapter):
    """
    Google Gemini image backend.

    Best for:
    - Photorealistic scenes and product photography
    - Flexible aspect ratios (10 options)
    - Image description via multimodal Flash

    Limitations:
    - One image per call; multi-image requests issue one call per image (max 4)
    - No image tagging
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = DEFAULT_GEMINI_IMAGE_MODEL,
        vision_model: str = DEFAULT_GEMINI_VISION_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        enabled: bool = True,
        executor: Optional[RetryExecutor] = None,
        client: Any = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Gemini backend. `client` overrides the SDK client (used in tests)."""
        self._api_key = api_key
        self._model = model
        self._vision_model = vision_model
        self._timeout = timeout
        self._enabled = enabled
        self._client = client
        self._transport = transport
        super().__init__(executor or RetryExecutor(self.name, timeout=timeout))

    def _ensure_initialized(self) -> Any:
        """Ensure dependencies are imported and client is initialized."""
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise ProviderError(
                ErrorCode.PROVIDER_NOT_CONFIGURED,
                "Gemini backend is not configured (missing GEMINI_API_KEY)",
                self.name,
            )
        _import_dependencies()
        self._client = genai.Client(api_key=self._api_key)
        return self._client

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def display_name(self) -> str:
        return f"Google Gemini {self._model}"

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset(
            {
                Capability.GENERATION,
                Capability.DESCRIPTION,
                Capability.TRANSPARENCY,
                Capability.LOGO,
            }
        )

    @property
    def describer(self) -> Optional[ImageDescriber]:
        return self.describe_image

    def reconfigure(self, **changes: Any) -> None:
        """Update api_key, model, vision_model, timeout or enabled."""
        if "api_key" in changes:
            self._api_key = changes["api_key"]
            self._client = None
        for key in ("model", "vision_model", "enabled"):
            if key in changes:
                setattr(self, f"_{key}", changes[key])
        if "timeout" in changes:
            self._timeout = float(changes["timeout"])
            self.executor.timeout = self._timeout

    async def _run_sdk(self, func: Any, **kwargs: Any) -> Any:
        # SDK is synchronous, run in executor
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(func, **kwargs))

    async def is_available(self) -> bool:
        if not self._enabled:
            return False
        try:
            client = self._ensure_initialized()
            await self._run_sdk(client.models.list)
            return True
        except Exception as e:
            logger.warning(f"Gemini backend not available: {e}")
            return False

    def _extract_images(self, response: Any) -> list[bytes]:
        """Collect inline image bytes from a generate_content response."""
        images: list[bytes] = []
        for part in getattr(response, "parts", None) or []:
            inline_data = getattr(part, "inline_data", None)
            if inline_data and getattr(inline_data, "data", None):
                images.append(inline_data.data)
        return images

    async def _generate_once(self, contents: str, aspect_ratio: str) -> bytes:
        client = self._ensure_initialized()
        _import_dependencies()
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
        )
        response = await self._run_sdk(
            client.models.generate_content,
            model=self._model,
            contents=contents,
            config=config,
        )
        images = self._extract_images(response)
        if not images:
            raise ProviderError(
                ErrorCode.INVALID_RESPONSE, "No image data found in Gemini API response", self.name
            )
        return images[0]

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        """Generate images using Gemini."""
        request_id = self.new_request_id()
        self.validate_request(request, request_id)
        self._ensure_initialized()

        sanitized_prompt, styled_prompt = self.prepare_prompt(request, request_id)
        contents = styled_prompt
        if request.negative_prompt:
            contents = f"{styled_prompt}. Avoid: {request.negative_prompt}"
        aspect_ratio = closest_aspect_ratio(request.dimensions)

        logger.info(
            f"Generating image with Gemini model={self._model}, aspect_ratio={aspect_ratio}"
        )

        images = []
        for _ in range(min(request.count, self.get_max_image_count())):
            raw = await self.executor.execute(
                lambda: self._generate_once(contents, aspect_ratio),
                "generate image",
                request_id=request_id,
            )
            processed = process_image_bytes(
                raw,
                target_format=request.format,
                dimensions=request.dimensions,
                transparent=request.transparent,
            )
            images.append(
                GeneratedImage(
                    locator=to_data_uri(processed.data, processed.format),
                    format=processed.format,
                    dimensions=processed.dimensions,
                    byte_size=len(processed.data),
                    base64=processed.base64,
                    metadata=ImageMetadata(
                        prompt=sanitized_prompt,
                        style=self.style_name(request),
                        backend_name=self.name,
                        model=self._model,
                        seed=request.seed,
                    ),
                )
            )

        log_event(
            "image_generated",
            backend=self.name,
            model=self._model,
            request_id=request_id,
            image_count=len(images),
            prompt=sanitized_prompt,
        )
        return GenerationResult(
            success=True,
            backend_name=self.name,
            request_id=request_id,
            images=images,
        )

    async def _download(self, image_url: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport, follow_redirects=True
        ) as client:
            try:
                response = await client.get(image_url)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise ProviderError(
                    ErrorCode.DOWNLOAD_FAILED,
                    f"Failed to download image ({e.response.status_code})",
                    self.name,
                    details={"url": image_url},
                ) from e
            return response.content

    async def _describe_once(self, image_bytes: bytes) -> str:
        client = self._ensure_initialized()
        _import_dependencies()
        part = types.Part.from_bytes(data=image_bytes, mime_type=guess_mime_type(image_bytes))
        response = await self._run_sdk(
            client.models.generate_content,
            model=self._vision_model,
            contents=[
                part,
                "Describe this image in detail, including objects, colors, composition and mood.",
            ],
        )
        return response.text or ""

    async def describe_image(self, image_url: str) -> DescriptionResult:
        """Describe an image by sending its bytes inline to a multimodal model."""
        self._ensure_initialized()
        image_bytes = await self.executor.execute(
            lambda: self._download(image_url), "download image"
        )
        description = await self.executor.execute(
            lambda: self._describe_once(image_bytes), "describe image"
        )
        if not description:
            raise ProviderError(ErrorCode.INVALID_RESPONSE, "No description in response", self.name)
        return DescriptionResult(success=True, backend_name=self.name, description=description)

    def get_supported_formats(self) -> list[str]:
        return ["png", "jpeg", "webp"]

    def get_supported_dimensions(self) -> list[Dimensions]:
        return [Dimensions(1024, 1024), Dimensions(832, 1248), Dimensions(1248, 832), Dimensions(1344, 768)]

    def get_max_image_count(self) -> int:
        return 4

    async def close(self) -> None:
        """Clean up resources."""
        # genai SDK handles cleanup automatically
        self._client = None
