"""Tests for the DiskCacheHook module."""

from __future__ import annotations

import time

import pytest

from pleasure_client.cache import DiskCacheHook, fingerprint
from pleasure_client.models import CacheConfig


@pytest.fixture()
def cache(tmp_path):
    """Create a DiskCacheHook with default config pointing at tmp_path."""
    config = CacheConfig(enabled=True, ttl_seconds=300)
    c = DiskCacheHook(tmp_path, config)
    yield c
    c.close()


@pytest.fixture()
def disabled_cache(tmp_path):
    """Create a disabled DiskCacheHook."""
    config = CacheConfig(enabled=False, ttl_seconds=300)
    c = DiskCacheHook(tmp_path, config)
    yield c
    c.close()


def _request(method: str = "get", url: str = "/users", params: dict | None = None) -> dict:
    """Build a pipeline request mapping."""
    return {"method": method, "url": url, "params": params or {}, "data": {}}


def _store(cache: DiskCacheHook, request: dict, response=None) -> str:
    request_id = fingerprint(request)
    cache.res(request_id, request, response if response is not None else [{"id": 1}])
    return request_id


# ------------------------------------------------------------------ #
# Core req/res behaviour
# ------------------------------------------------------------------ #


class TestReqRes:
    def test_stores_and_returns_get_response(self, cache: DiskCacheHook) -> None:
        """A stored GET response is returned by req()."""
        request = _request()
        request_id = _store(cache, request)
        assert cache.req(request_id, request) == [{"id": 1}]

    def test_cache_miss_returns_none(self, cache: DiskCacheHook) -> None:
        """A fingerprint that was never stored returns None."""
        request = _request(url="/missing")
        assert cache.req(fingerprint(request), request) is None

    def test_none_response_not_stored(self, cache: DiskCacheHook) -> None:
        """A None result is indistinguishable from a miss and is skipped."""
        request = _request()
        request_id = fingerprint(request)
        cache.res(request_id, request, None)
        assert cache.stats()["size"] == 0


# ------------------------------------------------------------------ #
# Method filtering
# ------------------------------------------------------------------ #


class TestMethodFiltering:
    @pytest.mark.parametrize("method", ["post", "patch", "delete"])
    def test_non_get_methods_not_cached(self, cache: DiskCacheHook, method: str) -> None:
        """Only GET requests are cached."""
        request = _request(method=method)
        request_id = _store(cache, request)
        assert cache.req(request_id, request) is None
        assert cache.stats()["size"] == 0

    def test_non_get_lookup_passes(self, cache: DiskCacheHook) -> None:
        """req() passes for non-GET requests even if the fingerprint exists."""
        request = _request()
        request_id = _store(cache, request)
        assert cache.req(request_id, {**request, "method": "post"}) is None


# ------------------------------------------------------------------ #
# TTL expiry
# ------------------------------------------------------------------ #


class TestTTL:
    def test_ttl_expiry(self, tmp_path) -> None:
        """Entries expire after ttl_seconds."""
        c = DiskCacheHook(tmp_path, CacheConfig(enabled=True, ttl_seconds=1))
        try:
            request = _request()
            request_id = _store(c, request)
            assert c.req(request_id, request) is not None
            time.sleep(1.5)
            assert c.req(request_id, request) is None
        finally:
            c.close()


# ------------------------------------------------------------------ #
# Disabled cache
# ------------------------------------------------------------------ #


class TestDisabled:
    def test_disabled_req_returns_none(self, disabled_cache: DiskCacheHook) -> None:
        request = _request()
        request_id = _store(disabled_cache, request)
        assert disabled_cache.req(request_id, request) is None

    def test_disabled_stats(self, disabled_cache: DiskCacheHook) -> None:
        assert disabled_cache.stats() == {"enabled": False}


# ------------------------------------------------------------------ #
# Invalidate, clear and stats
# ------------------------------------------------------------------ #


class TestMaintenance:
    def test_invalidate_removes_specific_entry(self, cache: DiskCacheHook) -> None:
        a, b = _request(url="/a"), _request(url="/b")
        id_a, id_b = _store(cache, a), _store(cache, b)

        cache.invalidate(id_a)

        assert cache.req(id_a, a) is None
        assert cache.req(id_b, b) is not None

    def test_clear_removes_all_entries(self, cache: DiskCacheHook) -> None:
        _store(cache, _request(url="/a"))
        _store(cache, _request(url="/b"))
        cache.clear()
        assert cache.stats()["size"] == 0

    def test_invalidate_nonexistent_key_no_error(self, cache: DiskCacheHook) -> None:
        cache.invalidate("0" * 64)

    def test_stats(self, cache: DiskCacheHook, tmp_path) -> None:
        _store(cache, _request(url="/a"))
        s = cache.stats()
        assert s == {
            "enabled": True,
            "size": 1,
            "directory": str(tmp_path / "responses"),
            "ttl_seconds": 300,
        }
