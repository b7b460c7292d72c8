"""Typer application factory and CLI entry point for pleasure-client.

This module wires together the top-level Typer application and registers the
built-in commands (``request``, ``entities``, ``login``, ``logout``,
``whoami``, ``listen``) and the ``config`` group.

:func:`main` is the ``pleasure-client`` console script.  The commands are
attached by :func:`register_commands`.

See Also:
    :mod:`pleasure_client.config`: Configuration resolution.
    :mod:`pleasure_client.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from pleasure_client import __version__
from pleasure_client.exit_codes import EXIT_GENERIC_FAILURE
from pleasure_client.output import OutputFormat, OutputManager, error, set_output


app = typer.Typer(
    name="pleasure-client",
    help="Talk to a Pleasure API server from the command line.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

_commands_registered = False


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"pleasure-client {__version__}")
        raise typer.Exit()


def _select_format(json_output: bool, plain_output: bool) -> OutputFormat:
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", "-u", help="Base URL of the API server."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Transport timeout in seconds."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Print results as JSON."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Print results as tab-separated text."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only print results, warnings and errors."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Trace requests, cache hits and socket events on stderr."
    ),
) -> None:
    """Install the output manager and share the root options with every command.

    ``--api-url`` and ``--timeout`` end up in ``ctx.obj`` and take precedence
    over every configuration file and ``PLEASURE_*`` variable when a command
    builds its client.
    """
    set_output(
        OutputManager(
            format=_select_format(json_output, plain_output),
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )

    ctx.ensure_object(dict)
    ctx.obj.update(api_url=api_url, timeout=timeout, verbose=verbose)


def register_commands() -> None:
    """Attach the built-in commands to :data:`app`.  Safe to call twice."""
    global _commands_registered
    if _commands_registered:
        return

    from pleasure_client.commands.config import config_app
    from pleasure_client.commands.listen import listen_command
    from pleasure_client.commands.request import entities_command, request_command
    from pleasure_client.commands.session import login_command, logout_command, whoami_command

    for name, command in (
        ("request", request_command),
        ("entities", entities_command),
        ("login", login_command),
        ("logout", logout_command),
        ("whoami", whoami_command),
        ("listen", listen_command),
    ):
        app.command(name)(command)
    app.add_typer(config_app, name="config")
    _commands_registered = True


def _cancelled(signum: Optional[int] = None, frame: Any = None) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(130)


def _write_crash_log(exc: Exception) -> str:
    """Dump the traceback of *exc* to ``<data_dir>/logs/crash-<timestamp>.log``.

    Returns:
        The path of the log file.
    """
    from pleasure_client.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return str(log_path)


def _fail(exc: Exception) -> int:
    """Report an exception that escaped a command and pick the exit code."""
    from pleasure_client.exceptions import PleasureClientError

    if isinstance(exc, PleasureClientError):
        error(str(exc))
        return exc.exit_code
    error(f"Unexpected error. Debug log: {_write_crash_log(exc)}")
    return EXIT_GENERIC_FAILURE


def main() -> None:
    """Console-script entry point.

    Library errors become their ``exit_code``; anything else is written to a
    crash log and exits with :data:`~pleasure_client.exit_codes.EXIT_GENERIC_FAILURE`.
    Ctrl-C exits with 130.
    """
    signal.signal(signal.SIGINT, _cancelled)
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        _cancelled()
    except Exception as exc:
        sys.exit(_fail(exc))
