"""
Hugging Face Inference backend.

Text-to-image through a Stable Diffusion model, captioning through BLIP and
tagging through a ViT image classifier, all over the Inference REST API.
"""

import logging
from typing import Any, Optional

import httpx

from ..config.constants import (
    DEFAULT_HUGGINGFACE_MODEL,
    DEFAULT_DIMENSION,
    DEFAULT_TIMEOUT,
    HUGGINGFACE_CAPTION_MODEL,
    HUGGINGFACE_CLASSIFICATION_MODEL,
    HUGGINGFACE_GUIDANCE_SCALE,
    HUGGINGFACE_HUB_API_URL,
    HUGGINGFACE_INFERENCE_STEPS,
    HUGGINGFACE_INFERENCE_URL,
    HUGGINGFACE_MAX_TAGS,
    TAG_CATEGORY_KEYWORDS,
)
from ..models.domain import (
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
from ..services.errors import ErrorCode, ProviderError
from ..services.image_processing import process_image_bytes, to_data_uri
from ..services.logging_config import log_event
from .base import ImageAdapter, ImageDescriber, ImageTagger
from .resilience import RetryExecutor

logger = logging.getLogger(__name__)

# BLIP captions carry no score; report a fixed confidence
CAPTION_CONFIDENCE = 0.8


def categorize_tag(label: str) -> str:
    """Map a classifier label to a coarse category by keyword."""
    lower_label = label.lower()
    for category, keywords in TAG_CATEGORY_KEYWORDS:
        if any(keyword in lower_label for keyword in keywords):
            return category
    return "object"


class HuggingFaceProvider(ImageAdapter):
    """
    Hugging Face Inference backend.

    Best for:
    - Open models (Stable Diffusion XL by default)
    - Negative prompts and seeds
    - Image tagging (the only backend that tags)

    Limitations:
    - One image per request
    - Cold models answer 503 while loading (retried)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = DEFAULT_HUGGINGFACE_MODEL,
        endpoint: str = HUGGINGFACE_INFERENCE_URL,
        hub_url: str = HUGGINGFACE_HUB_API_URL,
        caption_model: str = HUGGINGFACE_CAPTION_MODEL,
        classification_model: str = HUGGINGFACE_CLASSIFICATION_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        enabled: bool = True,
        executor: Optional[RetryExecutor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Hugging Face backend."""
        self._api_key = api_key
        self._model = model
        self._endpoint = endpoint.rstrip("/")
        self._hub_url = hub_url.rstrip("/")
        self._caption_model = caption_model
        self._classification_model = classification_model
        self._timeout = timeout
        self._enabled = enabled
        self._transport = transport
        super().__init__(executor or RetryExecutor(self.name, timeout=timeout))

    @property
    def name(self) -> str:
        return "huggingface"

    @property
    def display_name(self) -> str:
        return f"Hugging Face {self._model}"

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset(Capability)

    @property
    def describer(self) -> Optional[ImageDescriber]:
        return self.describe_image

    @property
    def tagger(self) -> Optional[ImageTagger]:
        return self.tag_image

    def reconfigure(self, **changes: Any) -> None:
        """Update api_key, model, endpoint, caption_model, classification_model, timeout or enabled."""
        for key in ("api_key", "model", "caption_model", "classification_model", "enabled"):
            if key in changes:
                setattr(self, f"_{key}", changes[key])
        if "endpoint" in changes:
            self._endpoint = str(changes["endpoint"]).rstrip("/")
        if "timeout" in changes:
            self._timeout = float(changes["timeout"])
            self.executor.timeout = self._timeout

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderError(
                ErrorCode.PROVIDER_NOT_CONFIGURED,
                "Hugging Face backend is not configured (missing HUGGINGFACE_API_KEY)",
                self.name,
            )
        return {"Authorization": f"Bearer {self._api_key}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport, follow_redirects=True
        )

    def _is_stable_diffusion(self) -> bool:
        lower_model = self._model.lower()
        return "stable-diffusion" in lower_model or "sdxl" in lower_model

    async def is_available(self) -> bool:
        if not self._enabled or not self._api_key:
            return False
        try:
            async with self._client() as client:
                response = await client.get(f"{self._hub_url}/{self._model}", headers=self._headers())
                response.raise_for_status()
            return True
        except Exception as e:
            logger.warning(f"Hugging Face backend not available: {e}")
            return False

    def _build_payload(self, request: GenerationRequest, styled_prompt: str) -> dict[str, Any]:
        parameters: dict[str, Any] = {}
        if request.negative_prompt:
            parameters["negative_prompt"] = request.negative_prompt
        if request.seed is not None:
            parameters["seed"] = request.seed
        if self._is_stable_diffusion():
            parameters["num_inference_steps"] = HUGGINGFACE_INFERENCE_STEPS
            parameters["guidance_scale"] = HUGGINGFACE_GUIDANCE_SCALE
            dimensions = request.dimensions or Dimensions(DEFAULT_DIMENSION, DEFAULT_DIMENSION)
            parameters["width"] = dimensions.width
            parameters["height"] = dimensions.height
        return {"inputs": styled_prompt, "parameters": parameters}

    async def _text_to_image(self, payload: dict[str, Any]) -> bytes:
        async with self._client() as client:
            response = await client.post(
                f"{self._endpoint}/{self._model}",
                headers={**self._headers(), "Accept": "image/png"},
                json=payload,
            )
            response.raise_for_status()
        if not response.content:
            raise ProviderError(ErrorCode.INVALID_RESPONSE, "Empty image data received", self.name)
        return response.content

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        """Generate an image with the configured text-to-image model."""
        request_id = self.new_request_id()
        self.validate_request(request, request_id)
        self._headers()

        sanitized_prompt, styled_prompt = self.prepare_prompt(request, request_id)
        payload = self._build_payload(request, styled_prompt)

        logger.info(f"Generating image with Hugging Face model={self._model}")
        raw = await self.executor.execute(
            lambda: self._text_to_image(payload),
            "generate image",
            request_id=request_id,
        )
        processed = process_image_bytes(
            raw,
            target_format=request.format,
            dimensions=request.dimensions,
            transparent=request.transparent,
        )
        image = GeneratedImage(
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

        log_event(
            "image_generated",
            backend=self.name,
            model=self._model,
            request_id=request_id,
            image_count=1,
            prompt=sanitized_prompt,
        )
        return GenerationResult(
            success=True,
            backend_name=self.name,
            request_id=request_id,
            images=[image],
        )

    async def _download(self, image_url: str) -> bytes:
        async with self._client() as client:
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

    async def _infer_on_image(self, model: str, image_bytes: bytes) -> Any:
        async with self._client() as client:
            response = await client.post(
                f"{self._endpoint}/{model}",
                headers=self._headers(),
                content=image_bytes,
            )
            response.raise_for_status()
            return response.json()

    async def describe_image(self, image_url: str) -> DescriptionResult:
        """Caption an image with BLIP."""
        self._headers()
        image_bytes = await self.executor.execute(
            lambda: self._download(image_url), "download image"
        )
        response = await self.executor.execute(
            lambda: self._infer_on_image(self._caption_model, image_bytes), "describe image"
        )

        # Inference returns [{"generated_text": ...}]
        if isinstance(response, list):
            response = response[0] if response else {}
        description = response.get("generated_text") if isinstance(response, dict) else None
        if not description:
            raise ProviderError(ErrorCode.INVALID_RESPONSE, "No description in response", self.name)

        return DescriptionResult(
            success=True,
            backend_name=self.name,
            description=description,
            confidence=CAPTION_CONFIDENCE,
        )

    async def tag_image(self, image_url: str) -> TaggingResult:
        """Tag an image with the top labels from an image classifier."""
        self._headers()
        image_bytes = await self.executor.execute(
            lambda: self._download(image_url), "download image"
        )
        response = await self.executor.execute(
            lambda: self._infer_on_image(self._classification_model, image_bytes), "tag image"
        )

        if not isinstance(response, list):
            raise ProviderError(
                ErrorCode.INVALID_RESPONSE, "Invalid classification response", self.name
            )

        tags = [
            ImageTag(
                label=item.get("label") or "unknown",
                confidence=float(item.get("score") or 0.0),
                category=categorize_tag(item.get("label") or ""),
            )
            for item in response[:HUGGINGFACE_MAX_TAGS]
        ]
        return TaggingResult(success=True, backend_name=self.name, tags=tags)

    def get_supported_formats(self) -> list[str]:
        return ["png", "jpeg", "webp"]

    def get_supported_dimensions(self) -> list[Dimensions]:
        return [
            Dimensions(512, 512),
            Dimensions(768, 768),
            Dimensions(1024, 1024),
            Dimensions(1152, 896),
            Dimensions(896, 1152),
        ]
