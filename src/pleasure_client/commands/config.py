"""Config commands -- view and change the persisted client settings.

``pleasure-client config`` edits the global
:class:`~pleasure_client.models.ClientConfig` file in the config directory.
``show`` prints the *effective* settings, i.e. after ``./pleasure.json``,
``PLEASURE_*`` variables and ``--api-url`` have been applied on top.

Example::

    pleasure-client config set api_url https://shop.example.com/api
    pleasure-client config set cache.enabled true
    pleasure-client --json config show
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from pleasure_client.config import get_config_dir, load_global_config, resolve_config, save_global_config
from pleasure_client.exceptions import PleasureClientError
from pleasure_client.exit_codes import EXIT_INVALID_ARGUMENT
from pleasure_client.models import ClientConfig
from pleasure_client.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True, help="Show and change client settings.")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    obj = ctx.obj or {}
    try:
        config = resolve_config(api_url=obj.get("api_url"), timeout=obj.get("timeout"))
    except PleasureClientError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting name; dot notation for nested keys, e.g. cache.ttl_seconds."),
    value: str = typer.Argument(help="New value. Converted to the setting's type."),
) -> None:
    """Change one setting of the global configuration.

    Example::

        pleasure-client config set timeout 10
        pleasure-client config set socket_path /ws
    """
    data: dict[str, Any] = load_global_config().model_dump(mode="json")

    *parents, name = key.split(".")
    target = data
    for part in parents:
        if not isinstance(target.get(part), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_ARGUMENT)
        target = target[part]
    if name not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_ARGUMENT)

    target[name] = value
    try:
        updated = ClientConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Invalid value for {key}: {exc.errors()[0]['msg']}")
        raise typer.Exit(code=EXIT_INVALID_ARGUMENT) from None

    save_global_config(updated)
    success(f"Set {key} = {value}")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Restore the default configuration."""
    if not yes and not typer.confirm("Reset all settings to their defaults?"):
        info("Cancelled.")
        raise typer.Exit()
    save_global_config(ClientConfig())
    success("Configuration reset to defaults.")
