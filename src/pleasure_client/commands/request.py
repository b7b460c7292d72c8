"""Request commands -- issue raw API calls from the shell.

Typical usage::

    pleasure-client request get entities/user/5e1f
    pleasure-client request get product --query '{"price": {"$lt": 5}}'
    pleasure-client request post product --body '{"name": "Kombucha"}'
    pleasure-client entities
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from pleasure_client.commands import common
from pleasure_client.exceptions import InvalidArgument
from pleasure_client.output import format_response
from pleasure_client.proxy.call_path import CallPath

_METHODS = ("get", "post", "patch", "delete")


def _navigate(root: CallPath, path: str) -> CallPath:
    """Append each ``/``-separated part of *path* as a literal segment."""
    current = root
    for part in path.strip("/").split("/"):
        if part:
            current = current.read(part)
    return current


async def _dispatch(
    ctx: typer.Context,
    method: str,
    path: str,
    query: Optional[str],
    body: Optional[str],
) -> Any:
    verb = method.lower()
    if verb not in _METHODS:
        raise InvalidArgument(f"Unsupported method '{method}'; expected one of {', '.join(_METHODS)}")
    params = common.parse_json_option(query, "query") or {}
    data = common.parse_json_option(body, "body")
    if verb in ("post", "patch") and data is None:
        raise InvalidArgument(f"{verb.upper()} needs --body")

    async with common.build_client(ctx) as client:
        target = _navigate(client.proxy, path)
        if verb == "post":
            return await target.create(data)
        target = target.where(params)
        if verb == "patch":
            return await target.update(data)
        if verb == "delete":
            return await target.delete()
        return await target


def request_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP verb: get, post, patch or delete."),
    path: str = typer.Argument(help="Resource path relative to the API URL, e.g. entities/user/5e1f."),
    query: Optional[str] = typer.Option(None, "--query", "-Q", help="Query filter as JSON."),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Request body as JSON."),
) -> None:
    """Send one request and print the returned data.

    Path parts are used verbatim; they are not kebab-cased.

    Example::

        pleasure-client request patch entities/user --query '{"name": "olivia"}' --body '{"active": true}'
    """
    result = common.run(_dispatch(ctx, method, path, query, body))
    format_response(result)


async def _entities(ctx: typer.Context) -> Any:
    async with common.build_client(ctx) as client:
        return await client.get_entities()


def entities_command(ctx: typer.Context) -> None:
    """Print the entity schema published by the server."""
    format_response(common.run(_entities(ctx)))
