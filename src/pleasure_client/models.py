"""Canonical Pydantic models shared across pleasure-client.

This is the single source of truth for data shapes in the project.  The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config
directory or a project-local ``pleasure.json``:
    :class:`CacheConfig` and :class:`ClientConfig`.

**Runtime models** -- produced and consumed while the client talks to the
API:
    :class:`RequestDescriptor` (the compiled form of a call path),
    :class:`Credentials` (the access/refresh token pair) and
    :class:`SessionProfile` (claims decoded from the access token).

All models use Pydantic v2.  Models mirroring wire payloads accept both the
camelCase names used by the API and the snake_case attribute names.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def _package_version() -> str:
    from pleasure_client import __version__

    return __version__


# --- Configuration ---


class CacheConfig(BaseModel):
    """Settings for the disk-backed :class:`~pleasure_client.cache.DiskCacheHook`."""

    enabled: bool = Field(default=False, description="Register the disk cache hook")
    ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")


class ClientConfig(BaseModel):
    """Connection settings for an :class:`~pleasure_client.client.ApiClient`.

    Loaded by :func:`~pleasure_client.config.resolve_config` from the
    global config file, the project config and ``PLEASURE_*`` environment
    variables, or constructed directly in code.

    Example::

        ClientConfig(api_url="https://shop.example.com/api", timeout=10)
    """

    api_url: str = Field(
        default="http://localhost:3000/api", description="Base URL of the API server"
    )
    timeout: float = Field(default=3.0, description="Transport timeout in seconds")
    entities_uri: str = Field(
        default="/entities", description="Endpoint returning the entity schema"
    )
    auth_endpoint: str = Field(
        default="/token",
        description="Endpoint exchanging credentials for an access/refresh token pair",
    )
    revoke_endpoint: str = Field(
        default="/revoke", description="Endpoint revoking the current session"
    )
    client_version: str = Field(
        default_factory=_package_version,
        description="Value of the X-Pleasure-Client header",
    )
    store_credentials: bool = Field(
        default=True, description="Persist credentials on every change"
    )
    credentials_key: str = Field(
        default="pleasure-credentials",
        description="Storage key under which credentials are persisted",
    )
    auto_connect: bool = Field(
        default=False, description="Open the realtime channel when the client starts"
    )
    socket_path: Optional[str] = Field(
        default=None,
        description="socket.io path; defaults to the path of api_url ('socket.io' when empty)",
    )
    session_beat_floor: float = Field(
        default=1.0,
        description="Minimum delay in seconds between two session expiry checks",
    )
    verbose: bool = Field(default=False, description="Emit debug diagnostics")
    cache: CacheConfig = Field(default_factory=CacheConfig)


# --- Runtime ---


HTTPVerb = Literal["get", "post", "patch", "delete"]


class RequestDescriptor(BaseModel):
    """A compiled call path: exactly one verb, URL, query and body.

    Produced by :class:`~pleasure_client.proxy.CallPath` terminal
    operations and handed to the bound continuation (normally
    :meth:`~pleasure_client.client.ApiClient.fetch`).

    Attributes:
        url: ``/`` followed by the compiled path segments.
        method: Lowercase HTTP verb, ``get`` unless a terminal says otherwise.
        query: Query filter staged on the chain (sent as URL parameters).
        body: Request body for ``create`` and ``update``.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    method: HTTPVerb = "get"
    query: dict[str, Any] = Field(default_factory=dict)
    body: Any = Field(default_factory=dict)


class Credentials(BaseModel):
    """The access/refresh token pair owned by the session state machine.

    Serialised with camelCase aliases (``accessToken`` / ``refreshToken``)
    both on the wire and in credential storage.
    """

    model_config = ConfigDict(populate_by_name=True)

    access_token: Optional[str] = Field(default=None, alias="accessToken")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class SessionProfile(BaseModel):
    """Claims decoded from the current access token.

    Only the claims the client itself relies on are declared; every other
    claim is preserved and reachable through :attr:`claims` or attribute
    access via ``model_extra``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sub: Optional[str] = None
    session_expires: Optional[float] = Field(
        default=None,
        alias="sessionExpires",
        description="Session expiry as epoch milliseconds",
    )
    exp: Optional[float] = Field(
        default=None, description="Standard JWT expiry as epoch seconds"
    )

    @property
    def expires_at(self) -> Optional[float]:
        """Session expiry in epoch seconds, or ``None`` when the token has none."""
        if self.session_expires is not None:
            return self.session_expires / 1000
        return self.exp

    @property
    def claims(self) -> dict[str, Any]:
        """All decoded claims, keyed by their wire names."""
        return self.model_dump(by_alias=True, exclude_none=True)
