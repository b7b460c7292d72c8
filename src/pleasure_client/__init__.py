"""pleasure_client -- async client for entity-oriented Pleasure API servers.

The client turns navigation over the API's resource tree into HTTP
requests, keeps the user session (tokens, decoded profile, expiry) in sync
with the transport, and re-emits the server's realtime create / update /
delete notifications as local events.

Typical usage::

    from pleasure_client import create_client

    async with create_client() as client:
        await client.login({"user": "olivia", "password": "s3cret"})
        user = await client.entities.user("5e1f")
        client.watch("user", "update", print, id="5e1f")
        await client.connect()

Modules:
    client: :class:`ApiClient`, the transport driver and query encoding.
    proxy: The immutable call-path builder and path compiler.
    cache: Request fingerprints, the cache-hook pipeline and a disk hook.
    auth: The session state machine and credential storage.
    realtime: The socket.io channel.
    events: The event emitter shared by session and realtime.
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from pleasure_client.client import ApiClient, create_client  # noqa: E402
from pleasure_client.exceptions import (  # noqa: E402
    ApiError,
    ConnectionError_,
    InvalidArgument,
    PleasureClientError,
)

__all__ = [
    "ApiClient",
    "ApiError",
    "ConnectionError_",
    "InvalidArgument",
    "PleasureClientError",
    "__version__",
    "create_client",
]
