"""HTTP side of pleasure-client.

Classes:
    :class:`ApiClient` -- the composition root: call-path navigation,
    convenience CRUD methods, session and realtime events.
    :class:`Driver` -- the :mod:`httpx` transport with envelope unwrapping.

Example::

    from pleasure_client.client import create_client

    async with create_client() as client:
        users = await client.entities.user({"active": True})
"""

from pleasure_client.client.api_client import RESERVED_METHODS, ApiClient, create_client
from pleasure_client.client.driver import Driver

__all__ = ["ApiClient", "Driver", "RESERVED_METHODS", "create_client"]
