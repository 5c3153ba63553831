"""
Result cache for image generation.

Maps a request fingerprint to a previously computed GenerationResult with a
time-to-live and a size bound (oldest-created entries are evicted first).
Entries can optionally be mirrored to a `diskcache.Cache` so they survive
restarts; correctness never depends on the disk copy.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import diskcache

from ..config.constants import DEFAULT_CACHE_MAX_SIZE, DEFAULT_CACHE_TTL
from ..models.domain import GenerationRequest, GenerationResult
from .image_processing import format_file_size

logger = logging.getLogger(__name__)


def fingerprint_request(request: GenerationRequest) -> str:
    """
    Deterministic hash of the fields that affect the generated output.

    Two requests that agree on every field below share a fingerprint; any
    difference in one of them yields a different fingerprint.
    """
    payload = {
        "prompt": request.prompt,
        "style": request.style.value if hasattr(request.style, "value") else request.style,
        "dimensions": request.dimensions.to_dict() if request.dimensions else None,
        "quality": request.quality,
        "count": request.count,
        "format": request.format,
        "transparent": request.transparent,
        "negative_prompt": request.negative_prompt,
        "seed": request.seed,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    fingerprint: str
    result: GenerationResult
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """
    Thread-safe, size-bounded TTL cache of successful generation results.

    Args:
        max_size: Maximum number of live entries
        ttl_seconds: Lifetime of an entry from the moment it is written
        directory: Optional directory for the on-disk copy
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        ttl_seconds: float = DEFAULT_CACHE_TTL,
        directory: Path | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.directory = directory
        self._clock = clock
        self._lock = threading.RLock()
        # Insertion order == creation order; overwrites move to the end
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._disk: diskcache.Cache | None = None

        if self.directory is not None:
            try:
                self._disk = diskcache.Cache(str(self.directory), disk=diskcache.JSONDisk)
            except Exception:
                logger.warning(
                    "Failed to open cache directory %s; caching in memory only",
                    self.directory,
                    exc_info=True,
                )
            else:
                self._load_from_disk()

    def get(self, request: GenerationRequest) -> GenerationResult | None:
        """Return the live cached result for this request, or None."""
        try:
            key = fingerprint_request(request)
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    self._misses += 1
                    return None
                if entry.is_expired(self._clock()):
                    self._remove(key)
                    self._misses += 1
                    return None
                self._hits += 1
                return entry.result
        except Exception:
            logger.warning("Cache lookup failed; treating as miss", exc_info=True)
            return None

    def set(self, request: GenerationRequest, result: GenerationResult) -> None:
        """Insert or overwrite the entry for this request, then enforce the size bound."""
        if not result.success:
            return

        key = fingerprint_request(request)
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            entry = CacheEntry(
                fingerprint=key,
                result=result,
                created_at=now,
                expires_at=now + self.ttl_seconds,
            )
            self._entries[key] = entry
            self._purge_expired(now)
            while len(self._entries) > self.max_size:
                oldest_key = next(iter(self._entries))
                self._remove(oldest_key)
                self._evictions += 1
            self._write_to_disk(entry)

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._entries)

    def __contains__(self, request: object) -> bool:
        if not isinstance(request, GenerationRequest):
            return False
        key = fingerprint_request(request)
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            if self._disk is not None:
                self._disk.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def close(self) -> None:
        """Release the on-disk copy. The in-memory entries stay usable."""
        with self._lock:
            if self._disk is not None:
                self._disk.close()
                self._disk = None

    def get_hit_rate(self) -> float:
        """Hits / (hits + misses) since the cache was created."""
        with self._lock:
            total = self._hits + self._misses
            return self._hits / total if total else 0.0

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            self._purge_expired(self._clock())
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self.get_hit_rate(),
                "evictions": self._evictions,
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "disk_usage_bytes": self.get_disk_usage(),
            }

    def get_disk_usage(self) -> int:
        with self._lock:
            return self._disk.volume() if self._disk is not None else 0

    def get_formatted_disk_usage(self) -> str:
        return format_file_size(self.get_disk_usage())

    # ----------------------------
    # Internals (caller holds lock)
    # ----------------------------

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)
        if self._disk is not None:
            with contextlib.suppress(KeyError):
                del self._disk[key]

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)

    def _write_to_disk(self, entry: CacheEntry) -> None:
        if self._disk is None:
            return
        try:
            self._disk.set(entry.fingerprint, entry.result.to_dict(), expire=self.ttl_seconds)
        except Exception:
            logger.warning("Failed to persist cache entry %s", entry.fingerprint, exc_info=True)

    def _load_from_disk(self) -> None:
        assert self._disk is not None
        self._disk.expire()

        loaded: list[tuple[float, CacheEntry]] = []
        now_epoch = time.time()
        now = self._clock()
        for key in list(self._disk.iterkeys()):
            value, expire_epoch = self._disk.get(key, expire_time=True)
            if value is None:
                continue
            try:
                result = GenerationResult.from_dict(value)
            except (ValueError, KeyError, TypeError):
                logger.warning("Skipping unreadable cache entry %s", key, exc_info=True)
                self._disk.delete(key)
                continue
            remaining = self.ttl_seconds if expire_epoch is None else expire_epoch - now_epoch
            expires_at = now + min(remaining, self.ttl_seconds)
            entry = CacheEntry(
                fingerprint=key,
                result=result,
                created_at=expires_at - self.ttl_seconds,
                expires_at=expires_at,
            )
            loaded.append((entry.created_at, entry))

        with self._lock:
            for _, entry in sorted(loaded, key=lambda item: item[0]):
                self._entries[entry.fingerprint] = entry
            while len(self._entries) > self.max_size:
                self._remove(next(iter(self._entries)))

        if loaded:
            logger.info("Loaded %d cached results from %s", len(self._entries), self.directory)
