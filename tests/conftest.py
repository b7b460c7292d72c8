"""Shared test fixtures for pleasure-client.

Provides reusable fixtures for isolated config environments, output state,
a fake API server behind :class:`httpx.MockTransport`, fake realtime
sockets, JWT minting and running CLI commands.  These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import jwt
import pytest
from socketio import exceptions as socketio_exceptions

from pleasure_client.client.api_client import ApiClient
from pleasure_client.models import ClientConfig
from pleasure_client.output import OutputFormat, OutputManager, reset_output, set_output

API_URL = "http://api.test/api"


# ---------------------------------------------------------------------------
# Async backend
# ---------------------------------------------------------------------------


@pytest.fixture
def anyio_backend() -> str:
    """Run ``@pytest.mark.anyio`` tests on asyncio only."""
    return "asyncio"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all PLEASURE_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("pleasure_client.config._is_xdg_platform", lambda: True)

    for var in [
        "PLEASURE_API_URL",
        "PLEASURE_TIMEOUT",
        "PLEASURE_CREDENTIALS_KEY",
        "PLEASURE_SOCKET_PATH",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# JWT fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def make_jwt() -> Callable[..., str]:
    """Mint HS256 tokens; ``expires_in`` sets ``sessionExpires`` (ms) relative to now."""

    def _make(sub: str = "olivia", expires_in: Optional[float] = 3600, **claims: Any) -> str:
        payload: dict[str, Any] = {"sub": sub, **claims}
        if expires_in is not None:
            payload["sessionExpires"] = int((time.time() + expires_in) * 1000)
        return jwt.encode(payload, "test-secret", algorithm="HS256")

    return _make


# ---------------------------------------------------------------------------
# Fake API server
# ---------------------------------------------------------------------------


class FakeApi:
    """In-memory API answering with ``{code, data, error}`` envelopes.

    Routes are keyed by ``(METHOD, path)`` with the path relative to
    :data:`API_URL`.  Unrouted requests get a 404 envelope.  Every request
    is recorded in :attr:`requests`.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def route(
        self,
        method: str,
        path: str,
        data: Any = None,
        code: int = 200,
        message: str = "",
        errors: Optional[list[Any]] = None,
    ) -> None:
        if code == 200:
            body = {"code": 200, "data": data}
        else:
            body = {"code": code, "error": {"message": message, "errors": errors or []}}
        self._routes[(method.upper(), path)] = lambda request: httpx.Response(200, json=body)

    def route_handler(
        self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]
    ) -> None:
        self._routes[(method.upper(), path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        prefix = httpx.URL(API_URL).path
        if path.startswith(prefix):
            path = path[len(prefix):] or "/"
        handler = self._routes.get((request.method, path))
        if handler is None:
            return httpx.Response(
                200, json={"code": 404, "error": {"message": f"No route {path}", "errors": []}}
            )
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


# ---------------------------------------------------------------------------
# Fake realtime sockets
# ---------------------------------------------------------------------------


class FakeSocket:
    """Stand-in for :class:`socketio.AsyncClient` driven by the tests."""

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.connected = False
        self.sid: Optional[str] = None
        self.fail = fail
        self.delay = delay
        self.connect_calls: list[dict[str, Any]] = []
        self.disconnect_calls = 0

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str, headers: Optional[dict] = None, socketio_path: str = "socket.io", **kwargs: Any) -> None:
        self.connect_calls.append({"url": url, "headers": headers or {}, "socketio_path": socketio_path})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise socketio_exceptions.ConnectionError("Connection refused by the server")
        self.connected = True
        self.sid = f"sid-{id(self)}"
        self.trigger("connect")

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        was_connected = self.connected
        self.connected = False
        if was_connected:
            self.trigger("disconnect", "client disconnect")

    def trigger(self, event: str, *args: Any) -> Any:
        """Deliver an inbound event the way python-socketio dispatches it."""
        handler = self.handlers.get(event)
        if handler is not None:
            return handler(*args)
        catch_all = self.handlers.get("*")
        if catch_all is not None and event not in ("connect", "disconnect", "connect_error"):
            return catch_all(event, *args)
        return None


class FakeSocketFactory:
    """Socket factory recording every socket it creates."""

    def __init__(self) -> None:
        self.sockets: list[FakeSocket] = []
        self.fail = False
        self.delay = 0.0

    def __call__(self) -> FakeSocket:
        sock = FakeSocket(fail=self.fail, delay=self.delay)
        self.sockets.append(sock)
        return sock

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


@pytest.fixture
def socket_factory() -> FakeSocketFactory:
    return FakeSocketFactory()


# ---------------------------------------------------------------------------
# Client fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def make_client(fake_api: FakeApi, socket_factory: FakeSocketFactory) -> Callable[..., ApiClient]:
    """Build :class:`ApiClient` instances wired to the fake API and sockets."""

    def _make(config: Optional[ClientConfig] = None, **kwargs: Any) -> ApiClient:
        kwargs.setdefault("transport", fake_api.transport)
        kwargs.setdefault("socket_factory", socket_factory)
        return ApiClient(config or ClientConfig(api_url=API_URL), **kwargs)

    return _make


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
