"""
OpenAI DALL-E backend.

Generates images through the Images API and describes images through a
vision-capable Chat Completions model. All HTTP goes through httpx.
"""

import base64
import logging
from typing import Any

import httpx

from ..config.constants import (
    DEFAULT_OPENAI_IMAGE_MODEL,
    DEFAULT_OPENAI_VISION_MODEL,
    DEFAULT_TIMEOUT,
    OPENAI_API_BASE_URL,
    OPENAI_DESCRIBE_INSTRUCTION,
    OPENAI_SIZES,
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
from ..services.image_processing import process_image_bytes, to_data_uri
from ..services.logging_config import log_event
from .base import ImageAdapter, ImageDescriber
from .resilience import RetryExecutor

logger = logging.getLogger(__name__)


class OpenAIProvider(ImageAdapter):
    """
    OpenAI DALL-E backend.

    Best for:
    - Precise instruction following
    - Logos and illustrations (PNG output, transparency post-processing)
    - Detailed image descriptions via GPT-4o vision

    Limitations:
    - Only 3 native sizes; other dimensions are resized locally
    - DALL-E 3 returns one image per request
    - No image tagging
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_OPENAI_IMAGE_MODEL,
        vision_model: str = DEFAULT_OPENAI_VISION_MODEL,
        base_url: str = OPENAI_API_BASE_URL,
        organization: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        enabled: bool = True,
        executor: RetryExecutor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize OpenAI backend."""
        self._api_key = api_key
        self._model = model
        self._vision_model = vision_model
        self._base_url = base_url.rstrip("/")
        self._organization = organization
        self._timeout = timeout
        self._enabled = enabled
        self._transport = transport
        super().__init__(executor or RetryExecutor(self.name, timeout=timeout))

    @property
    def name(self) -> str:
        return "openai"

    @property
    def display_name(self) -> str:
        return f"OpenAI {self._model}"

    @property
    def model(self) -> str:
        return self._model

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
    def describer(self) -> ImageDescriber | None:
        return self.describe_image

    def reconfigure(self, **changes: Any) -> None:
        """Update api_key, model, vision_model, base_url, organization, timeout or enabled."""
        for key in ("api_key", "model", "vision_model", "organization", "enabled"):
            if key in changes:
                setattr(self, f"_{key}", changes[key])
        if "base_url" in changes:
            self._base_url = str(changes["base_url"]).rstrip("/")
        if "timeout" in changes:
            self._timeout = float(changes["timeout"])
            self.executor.timeout = self._timeout

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderError(
                ErrorCode.PROVIDER_NOT_CONFIGURED,
                "OpenAI backend is not configured (missing OPENAI_API_KEY)",
                self.name,
            )
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._organization:
            headers["OpenAI-Organization"] = self._organization
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _request(
        self, method: str, endpoint: str, json_data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Single API request; retries are the executor's job."""
        url = f"{self._base_url}{endpoint}"
        async with self._client() as client:
            response = await client.request(method, url, headers=self._headers(), json=json_data)
            response.raise_for_status()
            return dict(response.json())

    async def is_available(self) -> bool:
        if not self._enabled or not self._api_key:
            return False
        try:
            await self._request("GET", "/models")
            return True
        except Exception as e:
            logger.warning(f"OpenAI backend not available: {e}")
            return False

    def _size_for(self, dimensions: Dimensions | None) -> str:
        """Map requested dimensions to the closest native DALL-E size."""
        if dimensions is None:
            return "1024x1024"
        requested = f"{dimensions.width}x{dimensions.height}"
        if requested in OPENAI_SIZES:
            return requested
        if dimensions.width == dimensions.height:
            return "1024x1024"
        return "1792x1024" if dimensions.width > dimensions.height else "1024x1792"

    def _build_payload(
        self, request: GenerationRequest, styled_prompt: str, request_id: str
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "prompt": styled_prompt,
            "n": min(request.count, self.get_max_image_count()),
            "size": self._size_for(request.dimensions),
            "quality": request.quality,
            "response_format": "b64_json",
            "user": request_id,
        }
        if self._model == "dall-e-3":
            payload["style"] = "natural" if self.style_name(request) == "realistic" else "vivid"
        return payload

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        """Generate images using DALL-E."""
        request_id = self.new_request_id()
        self.validate_request(request, request_id)
        self._headers()  # fail fast when unconfigured

        sanitized_prompt, styled_prompt = self.prepare_prompt(request, request_id)
        payload = self._build_payload(request, styled_prompt, request_id)

        logger.info(
            f"Generating image with OpenAI model={self._model}, size={payload['size']}, n={payload['n']}"
        )
        response = await self.executor.execute(
            lambda: self._request("POST", "/images/generations", payload),
            "generate image",
            request_id=request_id,
        )

        data = response.get("data") or []
        if not data:
            raise ProviderError(
                ErrorCode.INVALID_RESPONSE, "No images in response", self.name, request_id=request_id
            )

        images = []
        for item in data:
            b64_json = item.get("b64_json")
            if not b64_json:
                raise ProviderError(
                    ErrorCode.INVALID_RESPONSE,
                    "No image data in response",
                    self.name,
                    request_id=request_id,
                )
            processed = process_image_bytes(
                base64.b64decode(b64_json),
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
                        revised_prompt=item.get("revised_prompt"),
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

    async def describe_image(self, image_url: str) -> DescriptionResult:
        """Describe an image using a vision-capable chat model."""
        self._headers()
        payload = {
            "model": self._vision_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": OPENAI_DESCRIBE_INSTRUCTION},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
            "max_tokens": 500,
        }
        response = await self.executor.execute(
            lambda: self._request("POST", "/chat/completions", payload),
            "describe image",
        )

        choices = response.get("choices") or []
        description = choices[0].get("message", {}).get("content") if choices else None
        if not description:
            raise ProviderError(ErrorCode.INVALID_RESPONSE, "No description in response", self.name)

        return DescriptionResult(success=True, backend_name=self.name, description=description)

    def get_supported_formats(self) -> list[str]:
        return ["png", "jpeg", "webp"]

    def get_supported_dimensions(self) -> list[Dimensions]:
        return [Dimensions(*map(int, size.split("x"))) for size in OPENAI_SIZES]

    def get_max_image_count(self) -> int:
        return 1 if self._model == "dall-e-3" else 10
