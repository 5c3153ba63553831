"""
Provider orchestrator for image-for-me.

Owns the adapter registry and the result cache, computes availability,
selects the best adapter per capability, and performs one cross-adapter
fallback when the chosen adapter fails. Every public operation returns a
result object; errors never escape to the caller.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, Optional, TypeVar

from ..config.constants import CAPABILITY_PRIORITIES, DEFAULT_AVAILABILITY_TIMEOUT
from ..config.paths import get_cache_directory
from ..config.settings import Settings, get_settings
from ..models.domain import (
    Capability,
    DescriptionResult,
    GenerationRequest,
    GenerationResult,
    TaggingResult,
)
from ..services.cache import ResultCache
from ..services.errors import (
    REQUEST_ERROR_CODES,
    ErrorCode,
    ProviderError,
    classify_error,
    log_provider_error,
)
from ..services.logging_config import log_event
from .base import ImageAdapter
from .gemini_provider import GeminiProvider
from .huggingface_provider import HuggingFaceProvider
from .openai_provider import OpenAIProvider
from .resilience import RetryExecutor
from .validation import validate_request

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ProviderOrchestrator:
    """
    Routes generation, description and tagging requests across backends.

    Selection:
    - A preferred adapter is used when it is registered, available and capable
    - Otherwise capable adapters are ranked by the per-capability priority table
    - Adapters missing from the table follow in registration order

    Failure handling:
    - Request-level errors (invalid input, content policy) are returned as-is
    - Any other failure gets exactly one fallback on a different adapter
    """

    def __init__(
        self,
        adapters: Optional[Iterable[ImageAdapter]] = None,
        cache: Optional[ResultCache] = None,
        priorities: Mapping[str, list[str]] = CAPABILITY_PRIORITIES,
        availability_timeout: float = DEFAULT_AVAILABILITY_TIMEOUT,
    ):
        self._lock = threading.RLock()
        self.availability_timeout = availability_timeout
        self._adapters: dict[str, ImageAdapter] = {}
        self.cache = cache
        self.priorities = {key: list(order) for key, order in priorities.items()}
        for adapter in adapters or []:
            self.register_adapter(adapter)

    # ----------------------------
    # Registry
    # ----------------------------

    def register_adapter(self, adapter: ImageAdapter) -> None:
        """Add or replace an adapter under its name."""
        with self._lock:
            self._adapters[adapter.name] = adapter
        logger.info(f"Registered backend: {adapter.name}")

    def unregister_adapter(self, name: str) -> Optional[ImageAdapter]:
        with self._lock:
            return self._adapters.pop(name, None)

    def get_adapter(self, name: str) -> Optional[ImageAdapter]:
        with self._lock:
            return self._adapters.get(name)

    def list_adapters(self) -> list[ImageAdapter]:
        """Registered adapters in registration order."""
        with self._lock:
            return list(self._adapters.values())

    def replace_adapters(self, adapters: Iterable[ImageAdapter]) -> list[ImageAdapter]:
        """
        Swap the whole registry, e.g. after a configuration reload.

        Returns:
            The previously registered adapters (caller closes them)
        """
        new_adapters = {adapter.name: adapter for adapter in adapters}
        with self._lock:
            old_adapters = list(self._adapters.values())
            self._adapters = new_adapters
        logger.info(f"Reloaded backends: {list(new_adapters)}")
        return old_adapters

    # ----------------------------
    # Availability and selection
    # ----------------------------

    async def _probe_all(self) -> list[tuple[ImageAdapter, bool]]:
        adapters = self.list_adapters()
        results = await asyncio.gather(
            *(
                asyncio.wait_for(adapter.is_available(), self.availability_timeout)
                for adapter in adapters
            ),
            return_exceptions=True,
        )
        probed = []
        for adapter, result in zip(adapters, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(
                    f"Backend {adapter.name} did not answer its availability check "
                    f"within {self.availability_timeout}s; treating it as unavailable"
                )
            elif isinstance(result, BaseException):
                logger.warning(f"Backend {adapter.name} availability probe failed: {result}")
            probed.append((adapter, result is True))
        return probed

    async def get_available_adapters(self) -> list[ImageAdapter]:
        """Adapters whose liveness probe succeeded, probed concurrently."""
        return [adapter for adapter, available in await self._probe_all() if available]

    def _rank(self, capability: Capability, adapters: list[ImageAdapter]) -> list[ImageAdapter]:
        order = self.priorities.get(capability.value, [])
        by_name = {adapter.name: adapter for adapter in adapters}
        ranked = [by_name[name] for name in order if name in by_name]
        ranked.extend(adapter for adapter in adapters if adapter.name not in order)
        return ranked

    async def select_adapter(
        self,
        capability: Capability | str,
        preferred_name: Optional[str] = None,
        exclude: Iterable[str] = (),
    ) -> Optional[ImageAdapter]:
        """
        Pick the best available adapter for a capability.

        Args:
            capability: Capability the adapter must support
            preferred_name: Adapter to use when it is available and capable
            exclude: Adapter names to skip (the failed primary during fallback)

        Returns:
            The selected adapter, or None when no available adapter is capable
        """
        try:
            capability = Capability(capability)
        except ValueError:
            logger.warning(f"Unknown capability requested: {capability!r}")
            return None
        excluded = set(exclude)
        candidates = [
            adapter
            for adapter in await self.get_available_adapters()
            if adapter.name not in excluded and adapter.supports_feature(capability)
        ]
        if not candidates:
            return None

        if preferred_name:
            for adapter in candidates:
                if adapter.name == preferred_name:
                    return adapter
            logger.warning(
                f"Preferred backend {preferred_name} is not available for {capability.value}, "
                "falling back to best available"
            )

        return self._rank(capability, candidates)[0]

    async def has_available_adapters(self) -> bool:
        return bool(await self.get_available_adapters())

    # ----------------------------
    # Dispatch
    # ----------------------------

    async def _dispatch(
        self,
        capability: Capability,
        preferred_name: Optional[str],
        operation_name: str,
        call: Callable[[ImageAdapter], Optional[Awaitable[R]]],
        request_id: Optional[str] = None,
    ) -> tuple[Optional[R], Optional[ProviderError]]:
        """
        Run `call` on the selected adapter, then on one fallback adapter.

        `call` returns None when the adapter lacks the capability; that
        adapter is skipped without being invoked.

        Returns:
            (result, None) on success, (None, error) on failure
        """
        adapter = await self.select_adapter(capability, preferred_name)
        if adapter is None:
            return None, ProviderError(
                ErrorCode.FEATURE_NOT_AVAILABLE,
                f"No available backends for {operation_name}",
                "none",
                request_id=request_id,
            )

        tried: list[str] = []
        primary_error: Optional[ProviderError] = None
        while adapter is not None:
            tried.append(adapter.name)
            awaitable = call(adapter)
            if awaitable is None:
                error = ProviderError(
                    ErrorCode.FEATURE_NOT_AVAILABLE,
                    f"Backend {adapter.name} does not support {capability.value}",
                    adapter.name,
                    request_id=request_id,
                )
            else:
                try:
                    return await awaitable, None
                except Exception as e:
                    error = classify_error(e, adapter.name, request_id)
                log_provider_error(error)

            primary_error = primary_error or error
            if error.code in REQUEST_ERROR_CODES or len(tried) > 1:
                break

            adapter = await self.select_adapter(capability, exclude=tried)
            if adapter is not None:
                logger.info(f"Trying fallback backend: {adapter.name}")
                log_event(
                    "fallback_selected",
                    operation=operation_name,
                    failed_backend=tried[0],
                    fallback_backend=adapter.name,
                    error_code=error.code_value,
                    request_id=request_id,
                )

        return None, primary_error

    async def generate_image(
        self, request: GenerationRequest, preferred_name: Optional[str] = None
    ) -> GenerationResult:
        """
        Generate images through the cache, the best adapter and one fallback.

        Never raises; failures come back as `success=False` with an error code.
        """
        try:
            # Invalid input fails before any probe or network call
            validate_request(request)
        except ProviderError as e:
            log_provider_error(e)
            return self._failed_generation(e)

        try:
            if self.cache is not None:
                cached = self.cache.get(request)
                if cached is not None:
                    log_event("cache_hit", backend=cached.backend_name, request_id=cached.request_id)
                    return cached.marked_cached()

            result, error = await self._dispatch(
                request.capability,
                preferred_name,
                "image generation",
                lambda adapter: adapter.generate_image(request),
            )
            if error is not None:
                return self._failed_generation(error)

            if self.cache is not None:
                self.cache.set(request, result.copy())
            return result
        except Exception as e:
            logger.exception("Unexpected failure in image generation")
            return self._failed_generation(
                classify_error(e, "system", default_code=ErrorCode.OPERATION_FAILED)
            )

    async def describe_image(
        self, image_url: str, preferred_name: Optional[str] = None
    ) -> DescriptionResult:
        """Describe an image with the best description-capable adapter. Never raises."""
        try:
            result, error = await self._dispatch(
                Capability.DESCRIPTION,
                preferred_name,
                "image description",
                lambda adapter: adapter.describer(image_url) if adapter.describer else None,
            )
        except Exception as e:
            logger.exception("Unexpected failure in image description")
            result, error = None, classify_error(e, "system")

        if error is not None:
            return DescriptionResult(
                success=False,
                backend_name=error.backend_name,
                error=error.user_message,
                error_code=error.code_value,
                retryable=error.retryable,
            )
        return result

    async def tag_image(self, image_url: str, preferred_name: Optional[str] = None) -> TaggingResult:
        """Tag an image with the best tagging-capable adapter. Never raises."""
        try:
            result, error = await self._dispatch(
                Capability.TAGGING,
                preferred_name,
                "image tagging",
                lambda adapter: adapter.tagger(image_url) if adapter.tagger else None,
            )
        except Exception as e:
            logger.exception("Unexpected failure in image tagging")
            result, error = None, classify_error(e, "system")

        if error is not None:
            return TaggingResult(
                success=False,
                backend_name=error.backend_name,
                error=error.user_message,
                error_code=error.code_value,
                retryable=error.retryable,
            )
        return result

    def _failed_generation(self, error: ProviderError) -> GenerationResult:
        return GenerationResult(
            success=False,
            backend_name=error.backend_name,
            request_id=error.request_id or "",
            error=error.user_message,
            error_code=error.code_value,
            retryable=error.retryable,
        )

    # ----------------------------
    # Introspection
    # ----------------------------

    async def get_capabilities(self) -> dict[str, Any]:
        """Capabilities summary across available adapters."""
        available = await self.get_available_adapters()
        if not available:
            return {
                "can_generate": False,
                "can_describe": False,
                "can_tag": False,
                "can_generate_logos": False,
                "supported_formats": [],
                "max_image_count": 0,
            }

        formats: list[str] = []
        for adapter in available:
            formats.extend(f for f in adapter.get_supported_formats() if f not in formats)

        return {
            "can_generate": any(a.supports_feature(Capability.GENERATION) for a in available),
            "can_describe": any(a.supports_feature(Capability.DESCRIPTION) for a in available),
            "can_tag": any(a.supports_feature(Capability.TAGGING) for a in available),
            "can_generate_logos": any(a.supports_feature(Capability.LOGO) for a in available),
            "supported_formats": formats,
            "max_image_count": max(a.get_max_image_count() for a in available),
        }

    async def get_provider_stats(self) -> dict[str, Any]:
        """Per-adapter availability and info, plus cache statistics."""
        probed = await self._probe_all()
        providers = []
        for adapter, available in probed:
            info = adapter.get_info()
            providers.append(
                {
                    "name": adapter.name,
                    "display_name": info["display_name"],
                    "available": available,
                    "features": info["features"],
                    "supported_formats": info["supported_formats"],
                    "max_image_count": info["max_image_count"],
                }
            )

        return {
            "total_providers": len(probed),
            "available_providers": sum(1 for _, available in probed if available),
            "providers": providers,
            "cache": self.cache.get_stats() if self.cache is not None else None,
        }

    async def close(self) -> None:
        """Close all adapters and the cache."""
        for adapter in self.list_adapters():
            try:
                await adapter.close()
            except Exception as e:
                logger.warning(f"Failed to close backend {adapter.name}: {e}")
        if self.cache is not None:
            self.cache.close()


def build_adapters(settings: Optional[Settings] = None) -> list[ImageAdapter]:
    """Create adapters for every backend that is enabled and has credentials."""
    settings = settings or get_settings()

    def executor(name: str, timeout: float) -> RetryExecutor:
        return RetryExecutor(
            name,
            timeout=timeout,
            max_attempts=settings.retry_attempts,
            base_delay=settings.retry_base_delay,
        )

    adapters: list[ImageAdapter] = []
    if settings.is_openai_enabled():
        adapters.append(
            OpenAIProvider(
                settings.get_openai_api_key(),
                model=settings.openai_model,
                vision_model=settings.openai_vision_model,
                base_url=settings.openai_base_url,
                organization=settings.openai_organization,
                timeout=settings.openai_timeout,
                executor=executor("openai", settings.openai_timeout),
            )
        )
    if settings.is_gemini_enabled():
        adapters.append(
            GeminiProvider(
                settings.get_gemini_api_key(),
                model=settings.gemini_model,
                timeout=settings.gemini_timeout,
                executor=executor("gemini", settings.gemini_timeout),
            )
        )
    if settings.is_huggingface_enabled():
        adapters.append(
            HuggingFaceProvider(
                settings.get_huggingface_api_key(),
                model=settings.huggingface_model,
                endpoint=settings.huggingface_endpoint,
                timeout=settings.huggingface_timeout,
                executor=executor("huggingface", settings.huggingface_timeout),
            )
        )
    return adapters


def create_orchestrator(settings: Optional[Settings] = None) -> ProviderOrchestrator:
    """Build an orchestrator (adapters plus cache) from settings."""
    settings = settings or get_settings()
    cache = None
    if settings.cache_enabled:
        cache = ResultCache(
            max_size=settings.cache_max_size,
            ttl_seconds=settings.cache_ttl,
            directory=get_cache_directory(settings),
        )

    adapters = build_adapters(settings)
    logger.info(f"Initialized {len(adapters)} image backends: {[a.name for a in adapters]}")
    return ProviderOrchestrator(
        adapters, cache=cache, availability_timeout=settings.availability_timeout
    )
