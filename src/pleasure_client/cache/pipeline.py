"""Request fingerprinting and the cache-hook pipeline.

Every request issued by :class:`~pleasure_client.client.ApiClient` passes
through a :class:`CachePipeline` in two phases:

1. **Lookup** (``req``) -- before the transport is touched, each registered
   hook is offered the request in registration order.  The first hook that
   returns something other than ``None`` wins: its value becomes the result
   and neither later hooks nor the transport are consulted.
2. **Observe** (``res``) -- after a transport response, every hook's ``res``
   runs in registration order in a background task.  The caller gets its
   result without waiting for observation; observation failures are logged
   as warnings and never reach the caller.

Requests are identified by :func:`fingerprint`, a SHA-256 digest of the
canonical JSON form of ``{method, url, params, data}``.  Mapping key order
does not affect the fingerprint.

Hooks are plain objects exposing ``req`` and/or ``res``; either may be a
regular function or a coroutine function::

    class MemoryHook:
        def __init__(self):
            self.store = {}

        def req(self, fingerprint, request):
            return self.store.get(fingerprint)

        async def res(self, fingerprint, request, response):
            if request["method"] == "get":
                self.store[fingerprint] = response
"""

from __future__ import annotations

import asyncio
import hashlib
import inspect
import json
from typing import Any, Optional, Protocol, runtime_checkable

from pleasure_client.output import get_output


@runtime_checkable
class CacheHook(Protocol):
    """A pair of request/response interceptors registered on a pipeline."""

    def req(self, fingerprint: str, request: dict[str, Any]) -> Any:
        """Return a cached result, or ``None`` to let the request proceed."""
        ...

    def res(self, fingerprint: str, request: dict[str, Any], response: Any) -> Any:
        """Observe a fresh response.  The return value is ignored."""
        ...


def fingerprint(request: dict[str, Any]) -> str:
    """Return the SHA-256 hex digest identifying *request*.

    *request* is the ``{method, url, params, data}`` mapping handed to the
    hooks; its query parameters must already be normalised.

    Example::

        >>> a = fingerprint({"method": "get", "url": "/u", "params": {"a": "1", "b": "2"}, "data": {}})
        >>> b = fingerprint({"method": "get", "url": "/u", "params": {"b": "2", "a": "1"}, "data": {}})
        >>> a == b
        True
    """
    canonical = json.dumps(request, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class CachePipeline:
    """Ordered chain of :class:`CacheHook` objects.

    Hooks are only ever appended; there is no way to unregister one.
    """

    def __init__(self) -> None:
        self._hooks: list[Any] = []
        self._pending: set[asyncio.Task] = set()

    @property
    def hooks(self) -> tuple[Any, ...]:
        return tuple(self._hooks)

    def register(self, hook: Any) -> None:
        """Append *hook* to the chain.

        Raises:
            TypeError: If *hook* exposes neither ``req`` nor ``res``.
        """
        if not (callable(getattr(hook, "req", None)) or callable(getattr(hook, "res", None))):
            raise TypeError(f"Cache hook {hook!r} must define req() and/or res()")
        self._hooks.append(hook)

    async def lookup(self, request_id: str, request: dict[str, Any]) -> Optional[Any]:
        """Offer the request to every ``req`` in order; return the first hit.

        Returns:
            The first non-``None`` value returned by a hook, or ``None`` when
            every hook passed.
        """
        for hook in self._hooks:
            req = getattr(hook, "req", None)
            if req is None:
                continue
            result = await _maybe_await(req(request_id, request))
            if result is not None:
                get_output().debug(f"Cache hit {request_id[:12]} for {request['url']}")
                return result
        return None

    async def observe(self, request_id: str, request: dict[str, Any], response: Any) -> None:
        """Run every hook's ``res`` in order.  The first failure propagates."""
        for hook in self._hooks:
            res = getattr(hook, "res", None)
            if res is None:
                continue
            await _maybe_await(res(request_id, request, response))

    async def _observe_logged(self, request_id: str, request: dict[str, Any], response: Any) -> None:
        try:
            await self.observe(request_id, request, response)
        except Exception as exc:
            get_output().warning(
                f"Cache hook failed while storing {request['method']} {request['url']}: {exc}"
            )

    def schedule_observe(
        self, request_id: str, request: dict[str, Any], response: Any
    ) -> Optional[asyncio.Task]:
        """Run :meth:`observe` in the background on the running loop.

        Returns:
            The scheduled task, or ``None`` when no hook is registered.
        """
        if not self._hooks:
            return None
        task = asyncio.get_running_loop().create_task(
            self._observe_logged(request_id, request, response)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every outstanding observation task to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
