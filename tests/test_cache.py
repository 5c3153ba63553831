"""Tests for the result cache."""

import time
from concurrent.futures import ThreadPoolExecutor

import diskcache

from image_for_me.config.styles import ImageStyle
from image_for_me.models.domain import (
    Dimensions,
    GeneratedImage,
    GenerationRequest,
    GenerationResult,
    ImageMetadata,
)
from image_for_me.services.cache import ResultCache, fingerprint_request


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_result(backend: str = "openai", success: bool = True) -> GenerationResult:
    image = GeneratedImage(
        locator="data:image/png;base64,AAAA",
        format="png",
        dimensions=Dimensions(512, 512),
        byte_size=3,
        base64="AAAA",
        metadata=ImageMetadata(prompt="p", style="realistic", backend_name=backend, model="m"),
    )
    return GenerationResult(
        success=success,
        backend_name=backend,
        request_id="req-1",
        images=[image] if success else [],
        error=None if success else "failed",
    )


class TestFingerprint:
    """Fingerprints depend on exactly the output-affecting fields."""

    def test_identical_requests_share_fingerprint(self):
        a = GenerationRequest(prompt="cat", style=ImageStyle.ANIME, dimensions=Dimensions(512, 512))
        b = GenerationRequest(prompt="cat", style=ImageStyle.ANIME, dimensions=Dimensions(512, 512))
        assert fingerprint_request(a) == fingerprint_request(b)

    def test_each_field_changes_fingerprint(self):
        base = GenerationRequest(prompt="cat")
        variants = [
            GenerationRequest(prompt="dog"),
            GenerationRequest(prompt="cat", style=ImageStyle.SKETCH),
            GenerationRequest(prompt="cat", dimensions=Dimensions(512, 512)),
            GenerationRequest(prompt="cat", quality="hd"),
            GenerationRequest(prompt="cat", count=2),
            GenerationRequest(prompt="cat", format="jpeg"),
            GenerationRequest(prompt="cat", transparent=True),
            GenerationRequest(prompt="cat", negative_prompt="blurry"),
            GenerationRequest(prompt="cat", seed=7),
        ]
        fingerprints = {fingerprint_request(v) for v in variants}
        assert fingerprint_request(base) not in fingerprints
        assert len(fingerprints) == len(variants)

    def test_fingerprint_is_hex_sha256(self):
        fingerprint = fingerprint_request(GenerationRequest(prompt="cat"))
        assert len(fingerprint) == 64
        int(fingerprint, 16)


class TestResultCache:
    """Tests for get/set, TTL and eviction."""

    def test_round_trip_within_ttl(self):
        clock = FakeClock()
        cache = ResultCache(max_size=10, ttl_seconds=60, clock=clock)
        request = GenerationRequest(prompt="cat")
        result = make_result()

        cache.set(request, result)
        clock.advance(59)

        assert cache.get(request) is result

    def test_expired_entry_is_a_miss(self):
        clock = FakeClock()
        cache = ResultCache(max_size=10, ttl_seconds=60, clock=clock)
        request = GenerationRequest(prompt="cat")

        cache.set(request, make_result())
        clock.advance(60)

        assert cache.get(request) is None
        assert len(cache) == 0

    def test_set_is_idempotent(self):
        cache = ResultCache(max_size=10, ttl_seconds=60, clock=FakeClock())
        request = GenerationRequest(prompt="cat")
        result = make_result()

        cache.set(request, result)
        cache.set(request, result)

        assert len(cache) == 1
        assert cache.get(request) is result

    def test_overwrite_replaces_result(self):
        cache = ResultCache(max_size=10, ttl_seconds=60, clock=FakeClock())
        request = GenerationRequest(prompt="cat")
        second = make_result("gemini")

        cache.set(request, make_result("openai"))
        cache.set(request, second)

        assert cache.get(request) is second

    def test_oldest_entry_is_evicted(self):
        clock = FakeClock()
        cache = ResultCache(max_size=2, ttl_seconds=60, clock=clock)
        f1, f2, f3 = (GenerationRequest(prompt=p) for p in ("one", "two", "three"))

        for request in (f1, f2, f3):
            cache.set(request, make_result())
            clock.advance(1)

        assert cache.get(f1) is None
        assert cache.get(f2) is not None
        assert cache.get(f3) is not None
        assert cache.get_stats()["evictions"] == 1

    def test_overwrite_refreshes_creation_order(self):
        clock = FakeClock()
        cache = ResultCache(max_size=2, ttl_seconds=60, clock=clock)
        f1, f2, f3 = (GenerationRequest(prompt=p) for p in ("one", "two", "three"))

        cache.set(f1, make_result())
        cache.set(f2, make_result())
        cache.set(f1, make_result())
        cache.set(f3, make_result())

        assert f1 in cache
        assert f2 not in cache
        assert f3 in cache

    def test_failed_results_are_not_stored(self):
        cache = ResultCache(max_size=10, ttl_seconds=60, clock=FakeClock())
        request = GenerationRequest(prompt="cat")

        cache.set(request, make_result(success=False))

        assert cache.get(request) is None

    def test_hit_rate_and_stats(self):
        cache = ResultCache(max_size=10, ttl_seconds=60, clock=FakeClock())
        request = GenerationRequest(prompt="cat")

        cache.get(request)
        cache.set(request, make_result())
        cache.get(request)
        cache.get(request)

        stats = cache.get_stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert cache.get_hit_rate() == 2 / 3
        assert stats["entries"] == 1
        assert stats["disk_usage_bytes"] == 0

    def test_clear(self):
        cache = ResultCache(max_size=10, ttl_seconds=60, clock=FakeClock())
        request = GenerationRequest(prompt="cat")
        cache.set(request, make_result())

        cache.clear()

        assert len(cache) == 0
        assert cache.get_stats()["hits"] == 0


class TestConcurrentAccess:
    def test_threaded_set_and_get_respect_bounds(self):
        cache = ResultCache(max_size=8, ttl_seconds=60)
        requests = [GenerationRequest(prompt=f"prompt {i % 12}") for i in range(200)]

        def work(request: GenerationRequest) -> None:
            cache.set(request, make_result())
            cache.get(request)
            assert len(cache) <= cache.max_size

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, requests))

        assert len(cache) <= 8
        fingerprints = list(cache._entries)
        assert len(fingerprints) == len(set(fingerprints))
        live = [request for request in {r.prompt: r for r in requests}.values() if request in cache]
        assert len(live) == len(cache)


class TestCachePersistence:
    """Tests for the optional diskcache copy."""

    def test_entries_survive_restart(self, tmp_path):
        request = GenerationRequest(prompt="cat", dimensions=Dimensions(512, 512))
        first = ResultCache(max_size=10, ttl_seconds=60, directory=tmp_path)
        first.set(request, make_result())

        assert first.get_disk_usage() > 0
        assert first.get_formatted_disk_usage().endswith(("B", "KB"))
        first.close()

        second = ResultCache(max_size=10, ttl_seconds=60, directory=tmp_path)
        restored = second.get(request)
        second.close()

        assert restored is not None
        assert restored.backend_name == "openai"
        assert restored.images[0].dimensions == Dimensions(512, 512)

    def test_entries_are_stored_with_expiry(self, tmp_path):
        request = GenerationRequest(prompt="cat")
        cache = ResultCache(max_size=10, ttl_seconds=60, directory=tmp_path)
        cache.set(request, make_result())
        cache.close()

        with diskcache.Cache(str(tmp_path), disk=diskcache.JSONDisk) as disk:
            value, expire_time = disk.get(fingerprint_request(request), expire_time=True)

        assert value["backend_name"] == "openai"
        assert 0 < expire_time - time.time() <= 60

    def test_unreadable_entries_are_skipped(self, tmp_path):
        with diskcache.Cache(str(tmp_path), disk=diskcache.JSONDisk) as disk:
            disk.set("not-a-result", {"nope": 1})

        cache = ResultCache(max_size=10, ttl_seconds=60, directory=tmp_path)

        assert len(cache) == 0
        cache.close()

    def test_evicted_entries_are_removed_from_disk(self, tmp_path):
        cache = ResultCache(max_size=1, ttl_seconds=60, directory=tmp_path)
        cache.set(GenerationRequest(prompt="one"), make_result())
        cache.set(GenerationRequest(prompt="two"), make_result())
        cache.close()

        with diskcache.Cache(str(tmp_path), disk=diskcache.JSONDisk) as disk:
            assert list(disk.iterkeys()) == [fingerprint_request(GenerationRequest(prompt="two"))]

    def test_clear_empties_disk(self, tmp_path):
        cache = ResultCache(max_size=10, ttl_seconds=60, directory=tmp_path)
        cache.set(GenerationRequest(prompt="cat"), make_result())

        cache.clear()
        cache.close()

        reopened = ResultCache(max_size=10, ttl_seconds=60, directory=tmp_path)
        assert len(reopened) == 0
        reopened.close()
