"""Fluent call-path builder that compiles navigation into request descriptors.

:class:`CallPath` lets a caller describe a request by navigating the API's
resource tree with ordinary attribute access and calls::

    await client.entities.user("5e1f")                  # GET    /entities/user/5e1f
    await client.entities.user({"active": True})         # GET    /entities/user?active=true
    await client.entities.user.create({"name": "x"})     # POST   /entities/user
    await client.entities.user({"id": "y"}).update(b)    # PATCH  /entities/user?id="y"
    await client.entities.user("5e1f").delete()          # DELETE /entities/user/5e1f
    await client.product.oliviasFavorite()               # GET    /product/olivias-favorite

Each step is one instruction of a tiny interpreter:

* attribute access / :meth:`CallPath.path` appends an identifier segment;
* calling with a mapping / :meth:`CallPath.where` stages a query;
* calling with any other value / :meth:`CallPath.read` appends a literal;
* :meth:`~CallPath.create`, :meth:`~CallPath.update`,
  :meth:`~CallPath.delete` and awaiting compile the path into exactly one
  :class:`~pleasure_client.models.RequestDescriptor` and hand it to the
  bound *dispatch* continuation.

A :class:`CallPath` is an immutable value: every step returns a new one
and never alters the instance it was derived from, so a root path can be
reused for any number of chains without segments leaking between them.

Names that collide with the builder's own methods (``path``, ``read``,
``where``, ``create``, ``update``, ``delete``, ``compile``, ``segments``,
``query``) and names starting with ``_`` are not reachable as attributes;
use :meth:`CallPath.path` for those.
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from typing import Any, Callable, Generator, Optional

from pleasure_client.exceptions import InvalidArgument
from pleasure_client.models import RequestDescriptor
from pleasure_client.proxy.path import Identifier, Literal, Segment, compile_path

Dispatch = Callable[[RequestDescriptor], Any]
MethodCallback = Callable[[str, tuple], Any]


def _identity(descriptor: RequestDescriptor) -> RequestDescriptor:
    return descriptor


class CallPath:
    """An immutable, fluent description of one API request.

    Args:
        segments: Segments accumulated so far.
        query: Staged query filter, or ``None`` when nothing was staged.
        dispatch: Continuation receiving the compiled descriptor.  Its
            return value (possibly awaitable) is returned by the terminal
            operation.  Defaults to returning the descriptor itself.
        method_callback: Called as ``method_callback(name, args)`` when a
            single-segment path is invoked and *name* is a reserved method
            (see *methods*).  A non-``None`` result short-circuits the
            chain and is returned as-is.
        methods: Names offered to *method_callback*.  ``None`` offers every
            name.

    Example::

        root = CallPath()
        root.entities.user.create({"name": "x"})
        # RequestDescriptor(url='/entities/user', method='post', query={}, body={'name': 'x'})
    """

    __slots__ = ("_segments", "_query", "_dispatch", "_method_callback", "_methods")

    def __init__(
        self,
        segments: tuple[Segment, ...] = (),
        query: Optional[dict[str, Any]] = None,
        dispatch: Optional[Dispatch] = None,
        method_callback: Optional[MethodCallback] = None,
        methods: Optional[frozenset[str]] = None,
    ) -> None:
        self._segments = tuple(segments)
        self._query = query
        self._dispatch = dispatch or _identity
        self._method_callback = method_callback
        self._methods = methods

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #

    @property
    def segments(self) -> tuple[Segment, ...]:
        """Segments accumulated so far."""
        return self._segments

    @property
    def query(self) -> Optional[dict[str, Any]]:
        """The staged query filter, or ``None``."""
        return self._query

    def __repr__(self) -> str:
        return f"<CallPath {compile_path(self._segments)} query={self._query!r}>"

    # ------------------------------------------------------------------ #
    # Navigation
    # ------------------------------------------------------------------ #

    def _derive(self, segments: tuple[Segment, ...], query: Optional[dict[str, Any]]) -> CallPath:
        return CallPath(
            segments,
            query,
            dispatch=self._dispatch,
            method_callback=self._method_callback,
            methods=self._methods,
        )

    def path(self, name: str) -> CallPath:
        """Append an identifier segment (kebab-cased on compile)."""
        return self._derive(self._segments + (Identifier(name),), self._query)

    def read(self, value: Any) -> CallPath:
        """Narrow the path by a literal value such as an entry id.

        The staged query is cleared: a literal always addresses a single
        resource rather than filtering a collection.
        """
        return self._derive(self._segments + (Literal(value),), None)

    def where(self, query: Mapping[str, Any]) -> CallPath:
        """Stage *query* as the filter of the eventual request."""
        return self._derive(self._segments, dict(query))

    def __getattr__(self, name: str) -> CallPath:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.path(name)

    def __call__(self, *args: Any) -> Any:
        if (
            len(self._segments) == 1
            and self._query is None
            and self._method_callback is not None
        ):
            segment = self._segments[0]
            if isinstance(segment, Identifier) and (
                self._methods is None or segment.name in self._methods
            ):
                result = self._method_callback(segment.name, args)
                if result is not None:
                    return result

        if len(args) > 1:
            raise InvalidArgument(
                f"A call path takes at most one argument, got {len(args)}"
            )
        if not args:
            return self.where({})
        if isinstance(args[0], Mapping):
            return self.where(args[0])
        return self.read(args[0])

    # ------------------------------------------------------------------ #
    # Terminal operations
    # ------------------------------------------------------------------ #

    def _deliver(
        self,
        method: str,
        body: Any = None,
        query: Optional[dict[str, Any]] = None,
    ) -> RequestDescriptor:
        return RequestDescriptor(
            url=compile_path(self._segments),
            method=method,
            query=query if query is not None else {},
            body=body if body is not None else {},
        )

    def compile(self) -> RequestDescriptor:
        """Compile the path as a ``get`` request without dispatching it."""
        return self._deliver("get", query=self._query)

    def create(self, body: Any) -> Any:
        """Dispatch a ``post`` of *body*.  Any staged query is not sent."""
        return self._dispatch(self._deliver("post", body=body))

    def update(self, body: Any) -> Any:
        """Dispatch a ``patch`` of *body* using the staged query."""
        return self._dispatch(self._deliver("patch", body=body, query=self._query))

    def delete(self, *args: Any) -> Any:
        """Dispatch a ``delete`` using the staged query.

        Raises:
            InvalidArgument: If called with any argument.  Narrow the path
                first instead: ``user("5e1f").delete()``.
        """
        if args:
            raise InvalidArgument("Method delete does not take any arguments")
        return self._dispatch(self._deliver("delete", query=self._query))

    async def _resolve(self) -> Any:
        result = self._dispatch(self.compile())
        if inspect.isawaitable(result):
            result = await result
        return result

    def __await__(self) -> Generator[Any, None, Any]:
        return self._resolve().__await__()
