"""Shared fixtures and in-memory backends for the test suite."""

import io
from uuid import uuid4

import pytest
from PIL import Image

from image_for_me.config.settings import get_settings
from image_for_me.models.domain import (
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
from image_for_me.providers.base import ImageAdapter
from image_for_me.providers.resilience import RetryExecutor

GENERATION_CAPABILITIES = frozenset(
    {Capability.GENERATION, Capability.TRANSPARENCY, Capability.LOGO}
)


async def no_sleep(delay: float) -> None:
    return None


class FakeAdapter(ImageAdapter):
    """Scriptable backend that records how often it was probed and called."""

    def __init__(
        self,
        name: str,
        *,
        available: bool = True,
        capabilities: frozenset = GENERATION_CAPABILITIES,
        error: Exception | None = None,
        probe_error: Exception | None = None,
        description: str | None = None,
        tags: list[ImageTag] | None = None,
        max_images: int = 1,
    ):
        self._name = name
        self.available = available
        self._capabilities = capabilities
        self.error = error
        self.probe_error = probe_error
        self.description = description
        self.tags = tags
        self.max_images = max_images
        self.probe_calls = 0
        self.generate_calls = 0
        self.describe_calls = 0
        self.tag_calls = 0
        self.closed = False
        super().__init__(RetryExecutor(name, timeout=1.0, sleep=no_sleep))

    @property
    def name(self) -> str:
        return self._name

    @property
    def display_name(self) -> str:
        return f"Fake {self._name}"

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self._capabilities

    @property
    def describer(self):
        return self._describe if self.description is not None else None

    @property
    def tagger(self):
        return self._tag if self.tags is not None else None

    async def is_available(self) -> bool:
        self.probe_calls += 1
        if self.probe_error is not None:
            raise self.probe_error
        return self.available

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        self.generate_calls += 1
        if self.error is not None:
            raise self.error
        dimensions = request.dimensions or Dimensions(1024, 1024)
        image = GeneratedImage(
            locator=f"https://images.example/{self._name}/{uuid4().hex}.{request.format}",
            format=request.format,
            dimensions=dimensions,
            byte_size=1234,
            metadata=ImageMetadata(
                prompt=request.prompt,
                style=self.style_name(request),
                backend_name=self._name,
                model=f"{self._name}-model",
            ),
        )
        return GenerationResult(
            success=True,
            backend_name=self._name,
            request_id=str(uuid4()),
            images=[image] * min(request.count, self.max_images),
        )

    async def _describe(self, image_url: str) -> DescriptionResult:
        self.describe_calls += 1
        if self.error is not None:
            raise self.error
        return DescriptionResult(success=True, backend_name=self._name, description=self.description)

    async def _tag(self, image_url: str) -> TaggingResult:
        self.tag_calls += 1
        if self.error is not None:
            raise self.error
        return TaggingResult(success=True, backend_name=self._name, tags=list(self.tags))

    def get_max_image_count(self) -> int:
        return self.max_images

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep settings, logs and cache files out of the real home directory."""
    monkeypatch.setenv("IMAGE_FOR_ME_DATA_DIR", str(tmp_path / "data"))
    for name in (
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "HUGGINGFACE_API_KEY",
        "HF_TOKEN",
        "CACHE_DIR",
        "CACHE_PERSIST",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_png(size=(16, 16), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def request_factory():
    def factory(**overrides) -> GenerationRequest:
        fields = {"prompt": "a red bicycle", "dimensions": Dimensions(512, 512)}
        fields.update(overrides)
        return GenerationRequest(**fields)

    return factory
