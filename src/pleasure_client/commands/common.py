"""Helpers shared by the CLI commands.

Commands reach the client through :func:`build_client` via this module
(``common.build_client(ctx)``) so tests can substitute the factory with
:meth:`pytest.MonkeyPatch.setattr`.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Coroutine, Optional

import typer

from pleasure_client.auth.storage import FileStorage
from pleasure_client.client.api_client import ApiClient
from pleasure_client.config import resolve_config
from pleasure_client.exceptions import InvalidArgument, PleasureClientError
from pleasure_client.output import error


def build_client(ctx: typer.Context) -> ApiClient:
    """Create the client used by CLI commands.

    Configuration is resolved from config files and environment variables,
    with ``--api-url``, ``--timeout`` and ``--verbose`` from the root callback on top.
    Credentials persist in :class:`~pleasure_client.auth.storage.FileStorage`.
    """
    obj = ctx.obj or {}
    config = resolve_config(
        api_url=obj.get("api_url"),
        timeout=obj.get("timeout"),
        verbose=True if obj.get("verbose") else None,
    )
    return ApiClient(config, storage=FileStorage())


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run *coro* to completion, turning client errors into a clean exit.

    Raises:
        typer.Exit: With the error's exit code when a
            :class:`~pleasure_client.exceptions.PleasureClientError` escapes.
    """
    try:
        return asyncio.run(coro)
    except PleasureClientError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def parse_json_option(value: Optional[str], name: str) -> Any:
    """Parse a JSON CLI option, or return ``None`` when it was not given.

    Raises:
        InvalidArgument: If *value* is not valid JSON.
    """
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise InvalidArgument(f"--{name} is not valid JSON: {exc}") from exc
