"""Realtime channel: one socket.io connection re-emitting entity events.

The API server pushes ``create``, ``update`` and ``delete`` events carrying
``{entity, payload}`` over socket.io.  :class:`RealtimeChannel` owns at most
one :class:`socketio.AsyncClient` at a time and re-emits everything it
receives on the shared :class:`~pleasure_client.events.EventEmitter`:

* ``connect`` / ``disconnect`` -- socket lifecycle;
* ``error`` -- connection failures (``connect_error``);
* ``create`` / ``update`` / ``delete`` -- under their own name, then under
  ``*`` as ``(event_name, payload)``;
* any other inbound event -- under ``*`` only.

The connection is tied to the current access token.  Changing the token
while connected replaces the socket wholesale; the previous socket is
disconnected and any late event it still delivers is ignored.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import socketio
from socketio import exceptions as socketio_exceptions

from pleasure_client.events import EventEmitter
from pleasure_client.exceptions import ConnectionError_
from pleasure_client.output import get_output

MUTATION_EVENTS = ("create", "update", "delete")

SocketFactory = Callable[[], Any]


class RealtimeChannel:
    """Manager of the single realtime connection of an API client.

    Args:
        api_url: Base URL of the API.  The socket connects to its scheme and
            host.
        emitter: Receives every re-emitted event.
        socket_path: socket.io path.  Defaults to the path of *api_url*
            (``/api`` for ``https://shop.example.com/api``), or
            ``socket.io`` when that path is empty.
        socket_factory: Zero-argument callable returning a new socket.
            Defaults to :class:`socketio.AsyncClient`.
        timeout: Seconds to wait for the connection to be established.

    Example::

        emitter = EventEmitter()
        channel = RealtimeChannel("https://shop.example.com/api", emitter)
        emitter.on("create", lambda event: print(event["entity"], event["payload"]))
        channel.token = access_token
        await channel.connect()
    """

    def __init__(
        self,
        api_url: str,
        emitter: EventEmitter,
        socket_path: Optional[str] = None,
        socket_factory: Optional[SocketFactory] = None,
        timeout: float = 3.0,
    ) -> None:
        parts = urlsplit(api_url)
        self._host = f"{parts.scheme}://{parts.netloc}"
        self._socket_path = socket_path or parts.path.rstrip("/") or "socket.io"
        self._emitter = emitter
        self._socket_factory = socket_factory or socketio.AsyncClient
        self._timeout = timeout

        self._token: Optional[str] = None
        self._connected_auth: Optional[str] = None
        self._connected = False
        self._connecting = False
        self._socket: Optional[Any] = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def host(self) -> str:
        return self._host

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def socket(self) -> Optional[Any]:
        """The current socket, or ``None`` before the first :meth:`connect`."""
        return self._socket

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def connecting(self) -> bool:
        return self._connecting

    @property
    def token(self) -> Optional[str]:
        return self._token

    @token.setter
    def token(self, value: Optional[str]) -> None:
        changed = value != self._token
        self._token = value
        if changed and (self._connected or self._connecting):
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            get_output().debug("Realtime token changed outside an event loop; reconnect on next connect()")
            return
        task = loop.create_task(self._reconnect())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _reconnect(self) -> None:
        try:
            await self.connect()
        except ConnectionError_ as exc:
            get_output().warning(f"Realtime reconnect failed: {exc}")

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self) -> None:
        """Open a connection for the current token.

        No-op when a connection for the same token is established or in
        progress.  Otherwise the previous socket is torn down and replaced.

        Raises:
            ConnectionError_: If the socket cannot connect.  ``error`` is
                emitted first.
        """
        if self._connected_auth == self._token and (self._connected or self._connecting):
            get_output().debug("Realtime connect skipped: already connected with this token")
            return

        token = self._token
        self._connecting = True
        self._connected = False
        self._connected_auth = token

        previous = self._socket
        sock = self._socket_factory()
        self._socket = sock
        self._wire(sock)

        if previous is not None:
            get_output().debug(f"Realtime disconnecting {getattr(previous, 'sid', None)}")
            await previous.disconnect()

        headers = {"Authorization": f"Bearer {token}"} if token else {}
        get_output().debug(
            f"Realtime connecting {'with' if token else 'without'} credentials to "
            f"{self._host} path={self._socket_path}"
        )
        try:
            await sock.connect(
                self._host,
                headers=headers,
                socketio_path=self._socket_path,
                wait_timeout=self._timeout,
            )
        except socketio_exceptions.ConnectionError as exc:
            if self._socket is sock:
                if self._connecting:
                    self._connecting = False
                    self._emitter.emit("error", exc)
                self._connected_auth = None
            raise ConnectionError_(f"Realtime connection to {self._host} failed: {exc}") from exc

        if self._socket is not sock:
            # superseded while connecting
            await sock.disconnect()
            return
        if self._connecting and getattr(sock, "connected", False):
            self._on_connect(sock)

    async def disconnect(self) -> None:
        """Close the current connection without reconnecting."""
        sock = self._socket
        was_connected = self._connected
        self._socket = None
        self._connected = False
        self._connecting = False
        self._connected_auth = None
        if sock is None:
            return
        await sock.disconnect()
        if was_connected:
            self._emitter.emit("disconnect")

    # ------------------------------------------------------------------ #
    # Socket handlers
    # ------------------------------------------------------------------ #

    def _wire(self, sock: Any) -> None:
        sock.on("connect", lambda: self._on_connect(sock))
        sock.on("disconnect", lambda *args: self._on_disconnect(sock, *args))
        sock.on("connect_error", lambda *args: self._on_connect_error(sock, *args))
        for name in MUTATION_EVENTS:
            sock.on(name, self._mutation_handler(sock, name))
        sock.on("*", lambda event, *args: self._on_any(sock, event, *args))

    def _mutation_handler(self, sock: Any, name: str) -> Callable[..., None]:
        def handler(payload: Any = None) -> None:
            if self._socket is not sock:
                return
            self._emitter.emit(name, payload)
            self._emitter.emit("*", name, payload)

        return handler

    def _on_connect(self, sock: Any) -> None:
        if self._socket is not sock:
            return
        self._connected = True
        self._connecting = False
        get_output().debug(f"Realtime connected with id {getattr(sock, 'sid', None)}")
        self._emitter.emit("connect")

    def _on_disconnect(self, sock: Any, *args: Any) -> None:
        if self._socket is not sock:
            return
        self._connected = False
        get_output().debug(f"Realtime disconnected {args[0] if args else ''}".rstrip())
        self._emitter.emit("disconnect")

    def _on_connect_error(self, sock: Any, *args: Any) -> None:
        if self._socket is not sock:
            return
        self._connecting = False
        self._emitter.emit("error", *args)

    def _on_any(self, sock: Any, event: str, *args: Any) -> None:
        if self._socket is not sock:
            return
        payload = args[0] if len(args) == 1 else (list(args) or None)
        self._emitter.emit("*", event, payload)
