"""Session commands -- log in, log out and show the current user.

Credentials obtained by ``login`` are persisted in the credentials
directory, so later commands run authenticated until ``logout`` or until
the session expires.

Typical workflow::

    pleasure-client login --field user=olivia --field password=s3cret
    pleasure-client whoami
    pleasure-client logout
"""

from __future__ import annotations

from typing import List, Optional

import typer

from pleasure_client.commands import common
from pleasure_client.exceptions import InvalidArgument
from pleasure_client.models import SessionProfile
from pleasure_client.output import format_response, info, success, suggest


def _parse_fields(fields: list[str]) -> dict[str, str]:
    credentials: dict[str, str] = {}
    for field in fields:
        key, sep, value = field.partition("=")
        if not sep or not key:
            raise InvalidArgument(f"Invalid --field '{field}'; expected key=value")
        credentials[key] = value
    return credentials


async def _login(ctx: typer.Context, fields: list[str]) -> Optional[SessionProfile]:
    credentials = _parse_fields(fields)
    if not credentials:
        raise InvalidArgument("Provide credentials with --field key=value")
    async with common.build_client(ctx) as client:
        await client.login(credentials)
        return client.user_profile


def login_command(
    ctx: typer.Context,
    field: Optional[List[str]] = typer.Option(
        None, "--field", "-F", help="Credential field as key=value. Repeatable."
    ),
) -> None:
    """Exchange credentials for a session and store it.

    Example::

        pleasure-client login --field user=olivia --field password=s3cret
    """
    profile = common.run(_login(ctx, field or []))
    who = profile.sub if profile is not None and profile.sub else "anonymous"
    success(f"Logged in as {who}.")


async def _logout(ctx: typer.Context) -> bool:
    async with common.build_client(ctx) as client:
        if client.access_token is None:
            return False
        await client.logout()
        return True


def logout_command(ctx: typer.Context) -> None:
    """Revoke the stored session and forget it locally."""
    if common.run(_logout(ctx)):
        success("Logged out.")
    else:
        info("Not logged in.")


async def _whoami(ctx: typer.Context) -> Optional[SessionProfile]:
    async with common.build_client(ctx) as client:
        return client.user_profile


def whoami_command(ctx: typer.Context) -> None:
    """Show the claims of the stored session."""
    profile = common.run(_whoami(ctx))
    if profile is None:
        info("Not logged in.")
        suggest("pleasure-client login --field user=<name> --field password=<secret>")
        return
    format_response(profile.claims)
