"""Listen command -- print realtime events as they arrive.

Example::

    pleasure-client listen --entity product --seconds 60
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import typer

from pleasure_client.commands import common
from pleasure_client.output import event, info


async def _listen(ctx: typer.Context, entity: Optional[str], seconds: float) -> int:
    received = 0

    def on_event(name: str, payload: Any) -> None:
        nonlocal received
        if entity is not None and not (isinstance(payload, dict) and payload.get("entity") == entity):
            return
        received += 1
        event(name, payload)

    async with common.build_client(ctx) as client:
        client.on("*", on_event)
        await client.connect()
        info(f"Listening on {client.config.api_url} ...")
        if seconds > 0:
            await asyncio.sleep(seconds)
        else:
            await asyncio.Event().wait()
    return received


def listen_command(
    ctx: typer.Context,
    entity: Optional[str] = typer.Option(None, "--entity", "-e", help="Only print events of this entity."),
    seconds: float = typer.Option(0, "--seconds", "-s", help="Stop after this many seconds (0 = forever)."),
) -> None:
    """Connect to the realtime channel and print every event received."""
    received = common.run(_listen(ctx, entity, seconds))
    info(f"{received} event(s) received.")
