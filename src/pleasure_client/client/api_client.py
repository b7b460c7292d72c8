"""The API client: call-path navigation, CRUD helpers, session and realtime.

:class:`ApiClient` is the composition root of the package.  It wires a
:class:`~pleasure_client.client.driver.Driver`, a
:class:`~pleasure_client.cache.CachePipeline`, a
:class:`~pleasure_client.auth.SessionManager` and a
:class:`~pleasure_client.realtime.RealtimeChannel` around one shared
:class:`~pleasure_client.events.EventEmitter`, and exposes two ways of
issuing requests:

**Navigation** -- any attribute the client does not define starts a
:class:`~pleasure_client.proxy.CallPath` bound to :meth:`ApiClient.fetch`::

    async with create_client() as client:
        user = await client.entities.user("5e1f")
        await client.entities.user("5e1f").update({"name": "Olivia"})
        favorite = await client.product.oliviasFavorite()

**Convenience methods** -- ``create``, ``read``, ``update``, ``list``,
``delete``, ``push``, ``pull``, ``controller`` and ``get_entities`` build
the request directly.  Their arguments are validated synchronously, so
:class:`~pleasure_client.exceptions.InvalidArgument` is raised at call time,
before anything is awaited::

    products = await client.list("product", {"price": {"$lt": 5}})
    await client.delete("product", ["5e1f", "5e20"])

Every request, whichever way it was built, goes through :meth:`request`:
query normalisation, fingerprinting, cache lookup, transport, then a
background cache observation.
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Optional

import httpx

from pleasure_client.auth.session import SessionManager
from pleasure_client.auth.storage import CredentialStorage
from pleasure_client.cache.disk import DiskCacheHook
from pleasure_client.cache.pipeline import CachePipeline, fingerprint
from pleasure_client.client.driver import Driver
from pleasure_client.client.query import encode_query_params
from pleasure_client.config import get_cache_dir, resolve_config
from pleasure_client.events import EventEmitter, Handler, Subscription
from pleasure_client.exceptions import InvalidArgument
from pleasure_client.models import ClientConfig, Credentials, RequestDescriptor, SessionProfile
from pleasure_client.output import get_output
from pleasure_client.proxy.call_path import CallPath
from pleasure_client.realtime.channel import MUTATION_EVENTS, RealtimeChannel, SocketFactory

RESERVED_METHODS = frozenset(
    {
        "login",
        "logout",
        "me",
        "list",
        "create",
        "read",
        "update",
        "delete",
        "push",
        "pull",
        "controller",
        "get_entities",
    }
)


def _join(*parts: Any) -> str:
    return "/" + "/".join(str(part).strip("/") for part in parts if part not in (None, ""))


async def _settle(awaitables: list[Awaitable[Any]]) -> None:
    for awaitable in awaitables:
        await awaitable


class ApiClient:
    """Client of one entity-oriented API server.

    Args:
        config: Connection settings.  Defaults to ``ClientConfig()``; use
            :func:`create_client` to resolve them from config files and
            environment variables instead.
        access_token: Initial access token.  Takes precedence over the
            persisted one.
        refresh_token: Initial refresh token.  Takes precedence over the
            persisted one.
        storage: Credential storage.  Defaults to in-memory storage.
        transport: Custom :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.
        socket_factory: Factory of realtime sockets.  Defaults to
            :class:`socketio.AsyncClient`.

    Raises:
        InvalidArgument: If the initial access token is not a JWT.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        storage: Optional[CredentialStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        socket_factory: Optional[SocketFactory] = None,
    ) -> None:
        self.config = config or ClientConfig()
        if self.config.verbose:
            get_output().set_verbose(True)

        self.emitter = EventEmitter()
        self.driver = Driver(self.config, transport=transport)
        self.pipeline = CachePipeline()
        self.channel = RealtimeChannel(
            self.config.api_url,
            self.emitter,
            socket_path=self.config.socket_path,
            socket_factory=socket_factory,
            timeout=self.config.timeout,
        )
        self.session = SessionManager(
            self.driver,
            self.emitter,
            self.config,
            storage=storage,
            request=self.request,
            on_token=self._forward_token,
        )
        self.proxy = CallPath(
            dispatch=self.fetch,
            method_callback=self._method_callback,
            methods=RESERVED_METHODS,
        )

        self._disk_cache: Optional[DiskCacheHook] = None
        if self.config.cache.enabled:
            self._disk_cache = DiskCacheHook(get_cache_dir(), self.config.cache)
            self.pipeline.register(self._disk_cache)

        saved = self.session.saved_credentials()
        self.session.set_credentials(
            access_token or saved.access_token,
            refresh_token or saved.refresh_token,
        )

    def __repr__(self) -> str:
        return f"<ApiClient {self.config.api_url} {self.session.state}>"

    def __getattr__(self, name: str) -> CallPath:
        if name.startswith("_") or "proxy" not in self.__dict__:
            raise AttributeError(name)
        return self.__dict__["proxy"].path(name)

    def _method_callback(self, name: str, args: tuple) -> Any:
        return getattr(self, name)(*args)

    def _forward_token(self, access_token: Optional[str]) -> None:
        self.channel.token = access_token

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ApiClient:
        self.driver.open()
        self.session.arm()
        if self.config.auto_connect:
            await self.channel.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop the session beat, close the socket, flush cache hooks and the transport."""
        self.session.close()
        await self.channel.disconnect()
        await self.pipeline.drain()
        await self.driver.aclose()
        if self._disk_cache is not None:
            self._disk_cache.close()

    # ------------------------------------------------------------------ #
    # Request pipeline
    # ------------------------------------------------------------------ #

    def cache(self, hook: Any) -> None:
        """Append a :class:`~pleasure_client.cache.CacheHook` to the request pipeline."""
        self.pipeline.register(hook)

    async def fetch(self, descriptor: RequestDescriptor) -> Any:
        """Issue the request compiled by a call path."""
        return await self.request(
            descriptor.method,
            descriptor.url,
            params=descriptor.query,
            data=descriptor.body,
        )

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        data: Any = None,
    ) -> Any:
        """Issue one request through the cache pipeline.

        The query is normalised with
        :func:`~pleasure_client.client.query.encode_query_params` before the
        fingerprint is computed, so equal filters always share a fingerprint.
        The result of the first cache hook answering the lookup is returned
        as-is; otherwise the transport is called and every hook observes the
        response in the background.

        Returns:
            The unwrapped envelope ``data`` (or the cached value).

        Raises:
            ApiError: If the server answers with an error envelope.
            ConnectionError_: On timeouts and network failures.
        """
        encoded = encode_query_params(params or {})
        req = {
            "method": method.lower(),
            "url": url,
            "params": encoded,
            "data": data if data is not None else {},
        }
        request_id = fingerprint(req)

        cached = await self.pipeline.lookup(request_id, req)
        if cached is not None:
            return cached

        response = await self.driver.request(req["method"], url, params=encoded, data=req["data"])
        self.pipeline.schedule_observe(request_id, req, response)
        return response

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    @property
    def access_token(self) -> Optional[str]:
        return self.session.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self.session.refresh_token

    @property
    def user_profile(self) -> Optional[SessionProfile]:
        return self.session.profile

    def get_session_profile(self) -> Optional[SessionProfile]:
        return self.session.get_session_profile()

    def set_credentials(
        self, access_token: Optional[str] = None, refresh_token: Optional[str] = None
    ) -> None:
        """Replace the token pair.  See :meth:`SessionManager.set_credentials`."""
        self.session.set_credentials(access_token, refresh_token)

    async def login(self, credentials: Any, params: Optional[dict[str, Any]] = None) -> Credentials:
        """Exchange *credentials* for a token pair at ``auth_endpoint`` and apply it."""
        return await self.session.login(credentials, params)

    async def logout(self) -> None:
        """Revoke the session (best effort) and clear it locally."""
        await self.session.logout()

    async def me(self) -> None:
        """Revoke and clear the current session; no-op when anonymous."""
        await self.session.me()

    # ------------------------------------------------------------------ #
    # Convenience operations
    # ------------------------------------------------------------------ #

    def create(
        self, entity: str, entry: Any, params: Optional[dict[str, Any]] = None
    ) -> Awaitable[Any]:
        """Create *entry* (or a list of entries) in *entity*.

        Raises:
            InvalidArgument: If *entity* or *entry* is missing.
        """
        if not entity or not entry:
            raise InvalidArgument("Provide both entity and entry")
        return self.request("post", _join(entity), params=params, data=entry)

    def read(
        self,
        entity: str,
        id: Any,
        target: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        """Read entry *id* of *entity*, or only the value at *target* within it.

        Raises:
            InvalidArgument: If *entity* or *id* is missing.
        """
        if not entity or not id:
            raise InvalidArgument("Provide both entity and id")
        return self.request("get", _join(entity, id, target), params=params)

    def update(
        self,
        entity: str,
        id: Any,
        update: Any,
        params: Optional[dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        """Partially update entry *id* of *entity* with *update*.

        Raises:
            InvalidArgument: If *entity* or *id* is missing.
        """
        if not entity or not id:
            raise InvalidArgument("Provide both entity and id")
        return self.request("patch", _join(entity, id), params=params, data=update)

    def list(
        self,
        entity: str,
        options: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        """List the entries of *entity* matching *options*.

        *options* and *params* are both sent as query parameters; *options*
        wins on conflicting keys.

        Raises:
            InvalidArgument: If *entity* is missing.
        """
        if not entity:
            raise InvalidArgument("Provide an entity")
        return self.request("get", _join(entity), params={**(params or {}), **(options or {})})

    def delete(
        self,
        entity: str,
        id: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        """Delete entry *id* of *entity*.

        A list of ids, or a mapping query, is sent as the ``id`` query
        parameter to delete several entries at once.

        Raises:
            InvalidArgument: If *entity* is missing.
        """
        if not entity:
            raise InvalidArgument("Provide an entity")
        query = dict(params or {})
        url = _join(entity)
        if isinstance(id, (list, tuple)):
            query["id"] = list(id)
        elif isinstance(id, Mapping):
            query["id"] = dict(id)
        elif id:
            url = _join(entity, id)
        return self.request("delete", url, params=query)

    def push(
        self,
        entity: str,
        id: Any,
        field_path: str,
        value: Any,
        multiple: bool = False,
        params: Optional[dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        """Append *value* to the array at *field_path* of entry *id*.

        With ``multiple=True``, *value* is a list whose items are all pushed.

        Raises:
            InvalidArgument: If any of *entity*, *id*, *field_path* or
                *value* is missing.
        """
        if not entity or not id or not field_path or value is None:
            raise InvalidArgument("Provide all 'entity', 'id', 'field_path' and 'value'")
        return self.request(
            "post",
            _join(entity, id, field_path),
            params=params,
            data={"push": value, "multiple": multiple},
        )

    def pull(
        self,
        entity: str,
        id: Any,
        field_path: str,
        value: Any,
        params: Optional[dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        """Remove *value* (an item id, or a list of them) from the array at *field_path*.

        Raises:
            InvalidArgument: If any of *entity*, *id*, *field_path* or
                *value* is missing.
        """
        if not entity or not id or not field_path or value is None:
            raise InvalidArgument("Provide all 'entity', 'id', 'field_path' and 'value'")
        return self.request(
            "delete",
            _join(entity, id, field_path),
            params={**(params or {}), "pull": value},
        )

    def controller(
        self,
        entity: str,
        name: str,
        data: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        """Call the custom controller *name* of *entity*: ``post`` with *data*, ``get`` without.

        Raises:
            InvalidArgument: If *entity* or *name* is missing.
        """
        if not entity or not name:
            raise InvalidArgument("Provide both 'entity' and 'controller'")
        method = "post" if data is not None else "get"
        return self.request(method, _join(entity, name), params=params, data=data)

    def get_entities(self) -> Awaitable[Any]:
        """Fetch the entity schema published at ``entities_uri``."""
        return self.request("get", self.config.entities_uri)

    # ------------------------------------------------------------------ #
    # Events and realtime
    # ------------------------------------------------------------------ #

    def on(self, event: str, handler: Handler) -> Subscription:
        return self.emitter.on(event, handler)

    def once(self, event: str, handler: Handler) -> Subscription:
        return self.emitter.once(event, handler)

    def off(self, event: str, handler: Optional[Handler] = None) -> None:
        self.emitter.off(event, handler)

    def watch(
        self,
        entity: str,
        event: str,
        handler: Callable[[Any], Any],
        id: Any = None,
    ) -> Subscription:
        """Subscribe *handler* to realtime *event* on *entity*.

        *handler* receives the event payload.  With *id*, it only receives
        entries whose ``_id`` equals *id*, once per matching entry when the
        payload is a list.

        Raises:
            InvalidArgument: If *event* is not one of ``create``, ``update``
                or ``delete``.
        """
        if event not in MUTATION_EVENTS:
            raise InvalidArgument(
                f"Cannot watch '{event}'; expected one of {', '.join(MUTATION_EVENTS)}"
            )

        def listener(message: Any) -> Any:
            if not isinstance(message, Mapping) or message.get("entity") != entity:
                return None
            payload = message.get("payload")
            if id is None:
                return handler(payload)

            entries = payload if isinstance(payload, list) else [payload]
            results = [
                handler(entry)
                for entry in entries
                if isinstance(entry, Mapping) and entry.get("_id") == id
            ]
            pending = [result for result in results if inspect.isawaitable(result)]
            return _settle(pending) if pending else None

        return self.emitter.on(event, listener)

    @property
    def connected(self) -> bool:
        return self.channel.connected

    async def connect(self) -> None:
        """Open the realtime connection.  See :meth:`RealtimeChannel.connect`."""
        await self.channel.connect()

    async def disconnect(self) -> None:
        await self.channel.disconnect()


def create_client(config: Optional[ClientConfig] = None, **kwargs: Any) -> ApiClient:
    """Build an :class:`ApiClient`, resolving configuration when none is given.

    Without *config*, settings come from
    :func:`~pleasure_client.config.resolve_config` (global config,
    ``./pleasure.json`` and ``PLEASURE_*`` environment variables).

    Args:
        config: Explicit configuration.
        **kwargs: Forwarded to :class:`ApiClient` (``access_token``,
            ``storage``, ``transport``, ...).
    """
    return ApiClient(config if config is not None else resolve_config(), **kwargs)
