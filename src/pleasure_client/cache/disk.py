"""Disk-based cache hook for GET requests.

:class:`DiskCacheHook` is a ready-made
:class:`~pleasure_client.cache.pipeline.CacheHook` that persists the
unwrapped ``data`` of GET responses with :mod:`diskcache`, keyed by the
request fingerprint, with a configurable time-to-live (TTL).  Only ``get``
requests are cached; every other verb passes straight through to the
transport.

See Also:
    :class:`~pleasure_client.models.CacheConfig` -- the Pydantic model that
    controls ``enabled`` and ``ttl_seconds``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import diskcache

from pleasure_client.models import CacheConfig


class DiskCacheHook:
    """Disk-backed cache hook for GET responses.

    Entries live in a :class:`diskcache.Cache` directory and expire after
    :attr:`~pleasure_client.models.CacheConfig.ttl_seconds`.  A cached
    ``None`` is indistinguishable from a miss, so empty results are simply
    fetched again.  With ``enabled=False`` no directory is opened and every
    call is a no-op.

    Args:
        cache_dir: Root directory for the cache.  Entries go into its
            ``responses/`` subdirectory.
        config: Cache configuration (``enabled`` flag and ``ttl_seconds``).

    Example::

        from pleasure_client import create_client
        from pleasure_client.cache import DiskCacheHook
        from pleasure_client.config import get_cache_dir
        from pleasure_client.models import CacheConfig

        client = create_client()
        client.cache(DiskCacheHook(get_cache_dir(), CacheConfig(enabled=True, ttl_seconds=60)))
    """

    def __init__(self, cache_dir: str | Path, config: CacheConfig) -> None:
        self._ttl = config.ttl_seconds
        self._directory = Path(cache_dir) / "responses"
        self._store: Optional[diskcache.Cache] = (
            diskcache.Cache(str(self._directory)) if config.enabled else None
        )

    def _cacheable(self, request: dict[str, Any]) -> bool:
        return self._store is not None and str(request.get("method", "")).lower() == "get"

    # ------------------------------------------------------------------ #
    # CacheHook
    # ------------------------------------------------------------------ #

    def req(self, fingerprint: str, request: dict[str, Any]) -> Optional[Any]:
        """Return the stored ``data`` for a GET request, or ``None`` on a miss."""
        if not self._cacheable(request):
            return None
        return self._store.get(fingerprint)

    def res(self, fingerprint: str, request: dict[str, Any], response: Any) -> None:
        """Remember *response* under *fingerprint*.  Non-GET verbs and ``None`` are skipped."""
        if response is not None and self._cacheable(request):
            self._store.set(fingerprint, response, expire=self._ttl)

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def invalidate(self, fingerprint: str) -> None:
        if self._store is not None:
            self._store.delete(fingerprint)

    def clear(self) -> None:
        """Drop every stored response."""
        if self._store is not None:
            self._store.clear()

    def stats(self) -> dict[str, Any]:
        """Summarise the cache state.

        A disabled cache reports ``{"enabled": False}`` only; an enabled one
        adds the entry count, its directory and the TTL.
        """
        if self._store is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._store),
            "directory": str(self._directory),
            "ttl_seconds": self._ttl,
        }

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
