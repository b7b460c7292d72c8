"""Tests for the session state machine."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import httpx
import pytest

from pleasure_client.auth import MemoryStorage, SessionManager, decode_profile
from pleasure_client.client.driver import Driver
from pleasure_client.events import EventEmitter
from pleasure_client.exceptions import ApiError, InvalidArgument
from pleasure_client.models import ClientConfig
from pleasure_client.output import OutputManager, set_output

API_URL = "http://api.test/api"


class Harness:
    """A session manager plus everything it talks to."""

    def __init__(self, transport: Any, **config: Any) -> None:
        self.config = ClientConfig(api_url=API_URL, **config)
        self.driver = Driver(self.config, transport)
        self.emitter = EventEmitter()
        self.storage = MemoryStorage()
        self.tokens: list[Optional[str]] = []
        self.events: list[tuple[str, Any]] = []
        self.emitter.on("login", lambda profile: self.events.append(("login", profile)))
        self.emitter.on("logout", lambda profile: self.events.append(("logout", profile)))
        self.session = SessionManager(
            self.driver,
            self.emitter,
            self.config,
            storage=self.storage,
            on_token=self.tokens.append,
        )

    @property
    def stored(self) -> Optional[dict]:
        raw = self.storage.get_item(self.config.credentials_key)
        return json.loads(raw) if raw else None


@pytest.fixture
def harness(fake_api) -> Harness:
    h = Harness(fake_api.transport)
    yield h
    h.session.close()


# ------------------------------------------------------------------ #
# Profile decoding
# ------------------------------------------------------------------ #


class TestDecodeProfile:
    def test_claims_are_exposed(self, make_jwt: Callable[..., str]) -> None:
        profile = decode_profile(make_jwt(sub="olivia", level="admin"))
        assert profile.sub == "olivia"
        assert profile.claims["level"] == "admin"

    def test_session_expires_is_milliseconds(self, make_jwt: Callable[..., str]) -> None:
        profile = decode_profile(make_jwt(expires_in=60))
        assert profile.session_expires is not None
        assert profile.expires_at == pytest.approx(profile.session_expires / 1000)

    def test_invalid_token_raises(self) -> None:
        with pytest.raises(InvalidArgument, match="not a valid JWT"):
            decode_profile("not-a-jwt")


# ------------------------------------------------------------------ #
# Applying credentials
# ------------------------------------------------------------------ #


class TestSetCredentials:
    def test_starts_anonymous(self, harness: Harness) -> None:
        assert harness.session.state == "anonymous"
        assert harness.session.profile is None
        assert harness.session.get_session_profile() is None

    def test_authenticates(self, harness: Harness, make_jwt: Callable[..., str]) -> None:
        token = make_jwt(sub="olivia")
        harness.session.set_credentials(token, "refresh")

        assert harness.session.state == "authenticated"
        assert harness.session.access_token == token
        assert harness.session.refresh_token == "refresh"
        assert harness.session.user_profile.sub == "olivia"
        assert harness.driver.headers["Authorization"] == f"Bearer {token}"
        assert harness.tokens == [token]
        assert [name for name, _ in harness.events] == ["login"]
        assert harness.events[0][1].sub == "olivia"

    def test_persists_with_wire_names(self, harness: Harness, make_jwt: Callable[..., str]) -> None:
        token = make_jwt()
        harness.session.set_credentials(token, "refresh")
        assert harness.stored == {"accessToken": token, "refreshToken": "refresh"}

    def test_nothing_persisted_when_disabled(self, fake_api, make_jwt: Callable[..., str]) -> None:
        h = Harness(fake_api.transport, store_credentials=False)
        h.session.set_credentials(make_jwt())
        assert h.stored is None

    def test_invalid_token_leaves_session_untouched(
        self, harness: Harness, make_jwt: Callable[..., str]
    ) -> None:
        token = make_jwt()
        harness.session.set_credentials(token)
        with pytest.raises(InvalidArgument):
            harness.session.set_credentials("garbage")
        assert harness.session.access_token == token
        assert harness.stored["accessToken"] == token

    def test_clearing_removes_header_without_logout_event(
        self, harness: Harness, make_jwt: Callable[..., str]
    ) -> None:
        harness.session.set_credentials(make_jwt())
        harness.events.clear()

        harness.session.set_credentials()

        assert harness.session.state == "anonymous"
        assert "Authorization" not in harness.driver.headers
        assert harness.events == []
        assert harness.tokens[-1] is None
        assert harness.stored == {"accessToken": None, "refreshToken": None}

    def test_expired_token_logs_out_immediately(
        self, harness: Harness, make_jwt: Callable[..., str]
    ) -> None:
        harness.session.set_credentials(make_jwt(expires_in=-10))

        assert harness.session.state == "anonymous"
        assert "Authorization" not in harness.driver.headers
        assert [name for name, _ in harness.events] == ["logout"]

    def test_token_without_expiry_stays_authenticated(
        self, harness: Harness, make_jwt: Callable[..., str]
    ) -> None:
        harness.session.set_credentials(make_jwt(expires_in=None))
        assert harness.session.authenticated
        assert not harness.session.beat_scheduled


# ------------------------------------------------------------------ #
# Stored credentials
# ------------------------------------------------------------------ #


class TestSavedCredentials:
    def test_reads_stored_blob(self, harness: Harness) -> None:
        harness.storage.set_item("pleasure-credentials", '{"accessToken": "a", "refreshToken": "r"}')
        saved = harness.session.saved_credentials()
        assert saved.access_token == "a"
        assert saved.refresh_token == "r"

    def test_missing_blob_is_empty(self, harness: Harness) -> None:
        saved = harness.session.saved_credentials()
        assert saved.access_token is None
        assert saved.refresh_token is None

    def test_malformed_blob_warns(self, harness: Harness, capsys: pytest.CaptureFixture[str]) -> None:
        set_output(OutputManager(no_color=True))
        harness.storage.set_item("pleasure-credentials", "{not json")

        assert harness.session.saved_credentials().access_token is None
        assert "unreadable stored credentials" in capsys.readouterr().err


# ------------------------------------------------------------------ #
# Local logout and the session beat
# ------------------------------------------------------------------ #


class TestLocalLogout:
    def test_emits_previous_profile(self, harness: Harness, make_jwt: Callable[..., str]) -> None:
        harness.session.set_credentials(make_jwt(sub="olivia"))
        harness.events.clear()

        harness.session.local_logout()

        assert harness.session.state == "anonymous"
        assert len(harness.events) == 1
        name, profile = harness.events[0]
        assert name == "logout"
        assert profile.sub == "olivia"

    def test_noop_when_anonymous(self, harness: Harness) -> None:
        harness.session.local_logout()
        assert harness.events == []


class TestBeat:
    @pytest.mark.anyio
    async def test_timer_logs_out_on_expiry(self, fake_api, make_jwt: Callable[..., str]) -> None:
        h = Harness(fake_api.transport, session_beat_floor=0.05)
        h.session.set_credentials(make_jwt(expires_in=0.3))
        assert h.session.beat_scheduled

        await asyncio.sleep(0.2)
        assert h.session.state == "authenticated"
        assert [name for name, _ in h.events] == ["login"]

        await asyncio.sleep(0.6)

        assert h.session.state == "anonymous"
        assert not h.session.beat_scheduled
        assert [name for name, _ in h.events] == ["login", "logout"]

    def test_no_timer_outside_event_loop(self, harness: Harness, make_jwt: Callable[..., str]) -> None:
        harness.session.set_credentials(make_jwt(expires_in=60))
        assert harness.session.authenticated
        assert not harness.session.beat_scheduled

    @pytest.mark.anyio
    async def test_arm_schedules_timer(self, fake_api, make_jwt: Callable[..., str]) -> None:
        h = Harness(fake_api.transport)
        # applied synchronously, as the client constructor does
        await asyncio.get_running_loop().run_in_executor(
            None, h.session.set_credentials, make_jwt(expires_in=60)
        )
        assert not h.session.beat_scheduled

        h.session.arm()
        assert h.session.beat_scheduled

        h.session.close()
        assert not h.session.beat_scheduled


# ------------------------------------------------------------------ #
# Remote calls
# ------------------------------------------------------------------ #


class TestLogin:
    @pytest.mark.anyio
    async def test_login_applies_received_tokens(
        self, harness: Harness, fake_api, make_jwt: Callable[..., str]
    ) -> None:
        token = make_jwt(sub="olivia")
        fake_api.route("POST", "/token", data={"accessToken": token, "refreshToken": "r"})

        received = await harness.session.login({"user": "olivia", "password": "pw"})

        assert received.access_token == token
        assert harness.session.access_token == token
        assert json.loads(fake_api.last.content) == {"user": "olivia", "password": "pw"}

    @pytest.mark.anyio
    async def test_failed_login_leaves_session_anonymous(
        self, harness: Harness, fake_api, make_jwt: Callable[..., str]
    ) -> None:
        harness.session.set_credentials(make_jwt(sub="before"))
        fake_api.route("POST", "/token", code=401, message="Invalid credentials")

        with pytest.raises(ApiError, match="Invalid credentials"):
            await harness.session.login({"user": "olivia", "password": "wrong"})

        assert harness.session.state == "anonymous"
        assert [name for name, _ in harness.events] == ["login", "logout"]

    @pytest.mark.anyio
    async def test_unexpected_response_raises(self, harness: Harness, fake_api) -> None:
        fake_api.route("POST", "/token", data="nope")
        with pytest.raises(ApiError, match="Unexpected response"):
            await harness.session.login({})

    @pytest.mark.anyio
    async def test_login_uses_injected_request(self, fake_api, make_jwt: Callable[..., str]) -> None:
        calls: list = []
        token = make_jwt()

        async def request(method: str, url: str, params: Any = None, data: Any = None) -> Any:
            calls.append((method, url, params, data))
            return {"accessToken": token}

        config = ClientConfig(api_url=API_URL)
        session = SessionManager(Driver(config, fake_api.transport), EventEmitter(), config, request=request)
        await session.login({"user": "a"}, {"remember": True})

        assert calls == [("post", "/token", {"remember": True}, {"user": "a"})]
        assert session.access_token == token
        assert fake_api.requests == []


class TestLogout:
    @pytest.mark.anyio
    async def test_logout_revokes_then_clears(
        self, harness: Harness, fake_api, make_jwt: Callable[..., str]
    ) -> None:
        token = make_jwt()
        harness.session.set_credentials(token)
        fake_api.route("POST", "/revoke", data=True)

        await harness.session.logout()

        assert fake_api.last.url.path == "/api/revoke"
        assert fake_api.last.headers["authorization"] == f"Bearer {token}"
        assert harness.session.state == "anonymous"

    @pytest.mark.anyio
    async def test_revoke_failure_still_clears(
        self, harness: Harness, make_jwt: Callable[..., str], capsys: pytest.CaptureFixture[str]
    ) -> None:
        set_output(OutputManager(no_color=True))
        harness.session.set_credentials(make_jwt())

        await harness.session.logout()

        assert harness.session.state == "anonymous"
        assert "Could not revoke session" in capsys.readouterr().err

    @pytest.mark.anyio
    async def test_redirect_loop_on_revoke_still_clears(
        self, make_jwt: Callable[..., str], capsys: pytest.CaptureFixture[str]
    ) -> None:
        set_output(OutputManager(no_color=True))

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": str(request.url)})

        h = Harness(httpx.MockTransport(handler))
        h.session.set_credentials(make_jwt())

        await h.session.logout()

        assert h.session.state == "anonymous"
        assert h.stored["accessToken"] is None
        assert [name for name, _ in h.events] == ["login", "logout"]
        assert "Could not revoke session" in capsys.readouterr().err
        await h.driver.aclose()

    @pytest.mark.anyio
    async def test_me_is_noop_when_anonymous(self, harness: Harness, fake_api) -> None:
        await harness.session.me()
        assert fake_api.requests == []

    @pytest.mark.anyio
    async def test_me_revokes_when_authenticated(
        self, harness: Harness, fake_api, make_jwt: Callable[..., str]
    ) -> None:
        harness.session.set_credentials(make_jwt())
        fake_api.route("POST", "/revoke", data=True)

        await harness.session.me()

        assert len(fake_api.requests) == 1
        assert harness.session.state == "anonymous"
