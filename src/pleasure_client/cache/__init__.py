"""Request fingerprinting and cache hooks.

:class:`CachePipeline` wraps every request issued by
:class:`~pleasure_client.client.ApiClient`; :class:`DiskCacheHook` is a
ready-made hook that stores GET responses on disk with :mod:`diskcache`.
"""

from pleasure_client.cache.disk import DiskCacheHook
from pleasure_client.cache.pipeline import CacheHook, CachePipeline, fingerprint

__all__ = ["CacheHook", "CachePipeline", "DiskCacheHook", "fingerprint"]
