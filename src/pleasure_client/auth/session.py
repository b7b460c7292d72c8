"""Session and credential state machine.

:class:`SessionManager` owns the access/refresh token pair and keeps every
dependent piece of state consistent with it:

* the ``Authorization: Bearer <token>`` header of the transport driver;
* the token handed to the realtime channel;
* the :class:`~pleasure_client.models.SessionProfile` decoded from the
  access token (with :mod:`jwt`, signature not verified -- the server is
  the authority, the client only reads the claims);
* the credentials persisted in a
  :class:`~pleasure_client.auth.storage.CredentialStorage`;
* the *session beat*, a timer re-checking expiry at 75% of the remaining
  session time (never sooner than ``session_beat_floor`` seconds).

The manager has two states, ``anonymous`` and ``authenticated``.
Transitions emit ``login`` (with the new profile) and ``logout`` (with the
previous profile) on the shared :class:`~pleasure_client.events.EventEmitter`.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Optional

import jwt

from pleasure_client.auth.storage import CredentialStorage, MemoryStorage
from pleasure_client.client.driver import Driver
from pleasure_client.events import EventEmitter
from pleasure_client.exceptions import ApiError, InvalidArgument, PleasureClientError
from pleasure_client.models import ClientConfig, Credentials, SessionProfile
from pleasure_client.output import get_output

RequestFn = Callable[..., Awaitable[Any]]

ANONYMOUS = "anonymous"
AUTHENTICATED = "authenticated"

BEAT_RATIO = 0.75


def decode_profile(access_token: str) -> SessionProfile:
    """Decode the claims of *access_token* without verifying its signature.

    Raises:
        InvalidArgument: If *access_token* is not a decodable JWT.
    """
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise InvalidArgument(f"Access token is not a valid JWT: {exc}") from exc
    return SessionProfile.model_validate(claims)


class SessionManager:
    """Credential holder and session lifecycle for one API client.

    Args:
        driver: Transport whose ``Authorization`` header is maintained, and
            which carries the revoke call.
        emitter: Receives ``login`` / ``logout`` events.
        config: Supplies endpoints, the storage key and the beat floor.
        storage: Where credentials are persisted when
            ``config.store_credentials`` is true.  Defaults to a fresh
            :class:`~pleasure_client.auth.storage.MemoryStorage`.
        request: Coroutine function used for the login call, called as
            ``request(method, url, params=..., data=...)``.  Defaults to
            ``driver.request``; the API client passes its cache-aware
            request method.
        on_token: Called with the new access token (or ``None``) on every
            credential change; the API client forwards it to the realtime
            channel.
    """

    def __init__(
        self,
        driver: Driver,
        emitter: EventEmitter,
        config: ClientConfig,
        storage: Optional[CredentialStorage] = None,
        request: Optional[RequestFn] = None,
        on_token: Optional[Callable[[Optional[str]], None]] = None,
    ) -> None:
        self._driver = driver
        self._emitter = emitter
        self._config = config
        self._storage = storage if storage is not None else MemoryStorage()
        self._request = request or driver.request
        self._on_token = on_token
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._profile: Optional[SessionProfile] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    @property
    def credentials(self) -> Credentials:
        return Credentials(access_token=self._access_token, refresh_token=self._refresh_token)

    @property
    def profile(self) -> Optional[SessionProfile]:
        """Claims of the current access token, or ``None`` when anonymous."""
        return self._profile

    user_profile = profile

    @property
    def state(self) -> str:
        return AUTHENTICATED if self._access_token else ANONYMOUS

    @property
    def authenticated(self) -> bool:
        return self._access_token is not None

    @property
    def beat_scheduled(self) -> bool:
        return self._timer is not None

    def get_session_profile(self) -> Optional[SessionProfile]:
        """Decode the current access token afresh, or return ``None`` when anonymous."""
        return decode_profile(self._access_token) if self._access_token else None

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def saved_credentials(self) -> Credentials:
        """Read the persisted credentials.

        Unreadable or malformed blobs are reported as a warning and treated
        as empty.
        """
        if not self._config.store_credentials:
            return Credentials()
        raw = self._storage.get_item(self._config.credentials_key)
        if not raw:
            return Credentials()
        try:
            return Credentials.model_validate(json.loads(raw))
        except ValueError as exc:
            get_output().warning(
                f"Ignoring unreadable stored credentials '{self._config.credentials_key}': {exc}"
            )
            return Credentials()

    def _persist(self) -> None:
        if not self._config.store_credentials:
            return
        blob = self.credentials.model_dump(by_alias=True)
        self._storage.set_item(self._config.credentials_key, json.dumps(blob))

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def set_credentials(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> None:
        """Replace both tokens and refresh every dependent piece of state.

        Omitted tokens become ``None``; ``set_credentials()`` therefore
        clears the session without emitting ``logout`` (use
        :meth:`local_logout` for that).

        Raises:
            InvalidArgument: If *access_token* is not a decodable JWT.  The
                session is left untouched in that case.
        """
        profile = decode_profile(access_token) if access_token else None

        self._access_token = access_token or None
        self._refresh_token = refresh_token or None
        self._persist()
        self._refresh(profile)

    def _refresh(self, profile: Optional[SessionProfile]) -> None:
        if self._on_token is not None:
            self._on_token(self._access_token)
        self._profile = profile
        self._beat()

        # the beat may have logged out an already expired session
        if not self._access_token:
            self._driver.set_authorization(None)
            return

        self._driver.set_authorization(self._access_token)
        get_output().debug(f"Session authenticated as {self._profile.sub if self._profile else '?'}")
        self._emitter.emit("login", self._profile)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _beat(self) -> None:
        self._cancel_timer()

        if not self._access_token or self._profile is None:
            self.local_logout()
            return

        expires_at = self._profile.expires_at
        if expires_at is None:
            return

        remaining = expires_at - time.time()
        if remaining <= 0:
            get_output().debug("Session expired")
            self.local_logout()
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        delay = max(remaining * BEAT_RATIO, self._config.session_beat_floor)
        self._timer = loop.call_later(delay, self._beat)

    def arm(self) -> None:
        """Re-run the session beat, arming the expiry timer on the running loop.

        Credentials applied before an event loop existed only got the
        immediate expiry check; the API client calls this on ``__aenter__``.
        """
        if self._access_token:
            self._beat()

    def local_logout(self) -> None:
        """Clear the session locally and emit ``logout`` with the previous profile.

        No-op when already anonymous.
        """
        if not self._access_token:
            return
        previous = self._profile
        self.set_credentials()
        get_output().debug("Session cleared")
        self._emitter.emit("logout", previous)

    def close(self) -> None:
        """Cancel the pending session beat, if any."""
        self._cancel_timer()

    # ------------------------------------------------------------------ #
    # Remote calls
    # ------------------------------------------------------------------ #

    async def login(
        self,
        credentials: Any,
        params: Optional[dict[str, Any]] = None,
    ) -> Credentials:
        """Exchange *credentials* for a token pair and apply it.

        Any current session is cleared first, so a failed login leaves the
        session anonymous.

        Args:
            credentials: Body posted to ``auth_endpoint`` (for example
                ``{"user": ..., "password": ...}``).
            params: Extra query parameters.

        Returns:
            The received :class:`~pleasure_client.models.Credentials`.

        Raises:
            ApiError: If the server rejects the credentials or answers with
                something other than a token pair.
        """
        self.local_logout()
        result = await self._request(
            "post", self._config.auth_endpoint, params=params or {}, data=credentials
        )
        if not isinstance(result, dict):
            raise ApiError(f"Unexpected response from {self._config.auth_endpoint}", 500)

        received = Credentials.model_validate(result)
        self.set_credentials(received.access_token, received.refresh_token)
        return received

    async def logout(self) -> None:
        """Revoke the session server-side (best effort), then clear it locally."""
        try:
            await self._driver.request("post", self._config.revoke_endpoint)
        except PleasureClientError as exc:
            get_output().warning(f"Could not revoke session: {exc}")
        finally:
            self.local_logout()

    async def me(self) -> None:
        """Revoke and clear the current session; no-op when anonymous."""
        if not self._access_token:
            return
        await self.logout()
