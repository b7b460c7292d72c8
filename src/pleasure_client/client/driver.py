"""Asynchronous transport driver -- the thin HTTP layer under the API client.

:class:`Driver` wraps :class:`httpx.AsyncClient` and adds what every API
call needs:

- **Default headers** -- ``X-Pleasure-Client: <version>`` on every request,
  plus the ``Authorization`` header maintained by the session state
  machine through :meth:`Driver.set_authorization`.
- **Query serialisation** -- parameters are flattened with
  :func:`~pleasure_client.client.query.serialize_query` (bracket notation).
- **Envelope unwrapping** -- every API response is a
  ``{code, data, error: {message, errors}}`` envelope; ``code == 200``
  yields ``data``, anything else raises
  :class:`~pleasure_client.exceptions.ApiError`.
- **Error mapping** -- timeouts, network failures and every other
  :class:`httpx.RequestError` surface as
  :class:`~pleasure_client.exceptions.ConnectionError_`.  There is no
  retry at this layer; retrying is the caller's decision.

See Also:
    :class:`~pleasure_client.client.api_client.ApiClient`, which routes
    every request through the cache pipeline before reaching the driver.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from pleasure_client.client.query import serialize_query
from pleasure_client.exceptions import ApiError, ConnectionError_
from pleasure_client.models import ClientConfig
from pleasure_client.output import get_output

CLIENT_HEADER = "X-Pleasure-Client"


class Driver:
    """HTTP driver bound to one API base URL.

    The underlying :class:`httpx.AsyncClient` is opened lazily on the first
    request, or explicitly through ``async with``.  Call :meth:`aclose` (or
    leave the ``async with`` block) to release connections.

    Args:
        config: Client configuration (``api_url``, ``timeout``,
            ``client_version``).
        transport: Optional custom :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with Driver(ClientConfig(api_url="https://shop.example.com/api")) as driver:
            products = await driver.request("get", "/product")
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.headers: dict[str, str] = {CLIENT_HEADER: config.client_version}

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def base_url(self) -> str:
        return self._config.api_url

    def open(self) -> httpx.AsyncClient:
        """Create the underlying :class:`httpx.AsyncClient` if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.api_url,
                timeout=self._config.timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Driver:
        self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Headers
    # ------------------------------------------------------------------ #

    def set_authorization(self, access_token: Optional[str]) -> None:
        """Set ``Authorization: Bearer <token>``, or remove it when *access_token* is falsy."""
        if access_token:
            self.headers["Authorization"] = f"Bearer {access_token}"
        else:
            self.headers.pop("Authorization", None)

    @property
    def authorized(self) -> bool:
        return "Authorization" in self.headers

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        data: Any = None,
    ) -> Any:
        """Send one request and return the unwrapped envelope ``data``.

        Args:
            method: HTTP verb, any case.
            url: Path relative to ``api_url``.
            params: Already-normalised query parameters.
            data: JSON body.  Omitted for ``get`` / ``delete`` when empty.

        Returns:
            The ``data`` member of a ``code == 200`` envelope.

        Raises:
            ApiError: When the envelope code is not 200, or the body is not
                a JSON envelope.
            ConnectionError_: On timeouts, network failures, redirect loops
                and undecodable bodies.
        """
        client = self.open()
        method = method.upper()

        kwargs: dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": dict(self.headers),
        }
        if params:
            kwargs["params"] = serialize_query(params)
        if data is not None and (data or method in ("POST", "PATCH")):
            kwargs["json"] = data

        get_output().debug(
            f"{method} {url} params={params or {}} "
            f"{'with' if self.authorized else 'without'} auth"
        )

        try:
            response = await client.request(**kwargs)
        except httpx.TimeoutException as exc:
            raise ConnectionError_(
                f"Request {method} {url} timed out after {self._config.timeout}s"
            ) from exc
        except httpx.RequestError as exc:
            raise ConnectionError_(f"Request {method} {url} failed: {exc}") from exc

        return self._unwrap(response)

    def _unwrap(self, response: httpx.Response) -> Any:
        """Return the envelope ``data`` or raise :class:`ApiError`."""
        try:
            payload = response.json()
        except ValueError:
            text = response.text[:200] if response.text else ""
            raise ApiError(
                f"HTTP {response.status_code}: {text}" if text else f"HTTP {response.status_code}",
                code=response.status_code,
            ) from None

        if not isinstance(payload, dict):
            payload = {}

        code = payload.get("code", 500)
        if code == 200:
            return payload.get("data")

        error = payload.get("error") or {}
        message = error.get("message") or "Unknown error"
        errors = error.get("errors") or []
        get_output().debug(f"API error {code}: {message} {errors}")
        raise ApiError(message, code, errors)
