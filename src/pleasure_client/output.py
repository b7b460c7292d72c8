"""Diagnostics and data output with strict stdout/stderr discipline.

Every part of pleasure-client reports through this module:

* **stdout** -- primary data only: API payloads and, for ``listen``, the
  realtime events as they arrive.
* **stderr** -- diagnostics: request tracing, cache hits, session
  transitions, socket lifecycle, warnings and errors.
* **TTY detection** -- Rich rendering when stdout is an interactive
  terminal, plain text when piped.
* **Colour control** -- ``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` all
  switch diagnostics to bare ``print`` calls.

:class:`OutputManager` holds the preferences.  The CLI installs one with
:func:`set_output`; a library user may do the same, or let
:class:`~pleasure_client.client.ApiClient` switch on debug diagnostics from
:attr:`ClientConfig.verbose`.  The module-level functions (:func:`info`,
:func:`warning`, :func:`debug`, ...) delegate to that global instance.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax


class OutputFormat(str, Enum):
    """Rendering of data written to stdout.

    ``AUTO`` becomes ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes payloads to stdout and diagnostics to stderr.

    Args:
        format: Rendering of stdout data.  ``AUTO`` resolves based on TTY
            detection.
        no_color: Disable all colour and Rich markup.
        quiet: Drop ``info``, ``success`` and ``suggest`` messages.
            Warnings and errors are always shown.
        verbose: Show ``debug`` messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    def set_verbose(self, verbose: bool) -> None:
        """Toggle debug diagnostics after construction."""
        self._verbose = verbose

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render an unwrapped API payload in the active format.

        ``JSON`` prints indented JSON, ``PLAIN`` prints ``key<TAB>value``
        lines for objects and one tab-separated row per entry for lists,
        ``RICH`` highlights the JSON.  ``None`` prints nothing outside JSON
        mode.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(data, indent=2))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_to_json(data, indent=2), "json", theme="monokai", word_wrap=True))
        elif data is not None:
            self._stdout.print(str(data))

    def event(self, name: str, payload: Any) -> None:
        """Render one realtime event on a single line.

        ``JSON`` mode emits one compact object per line
        (``{"event": ..., "payload": ...}``) so the stream can be piped to
        line-oriented tools.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json({"event": name, "payload": payload}))
        elif self._format == OutputFormat.PLAIN:
            self.print_data(f"{name}\t{_to_json(payload)}")
        else:
            self._stdout.print(f"[bold cyan]{escape(name)}[/bold cyan] {escape(_to_json(payload))}")

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, escape(message))

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, f"[green]{escape(message)}[/green]")

    def suggest(self, message: str) -> None:
        """Print a dimmed next step, e.g. the command to run after an anonymous ``whoami``."""
        if not self._quiet:
            self._diagnostic(f"→ {message}", f"[dim]→ {escape(message)}[/dim]")

    def warning(self, message: str) -> None:
        """Report a failure that is logged but never raised.

        Cache hooks failing in the background, handlers raising inside the
        event emitter and unreadable stored credentials all end up here.
        Shown even in quiet mode.
        """
        self._diagnostic(f"Warning: {message}", f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self._diagnostic(f"Error: {message}", f"[bold red]Error:[/bold red] {escape(message)}")

    def debug(self, message: str) -> None:
        """Trace requests, cache hits, session and socket transitions.  Verbose mode only."""
        if self._verbose:
            text = f"[debug] {message}"
            self._diagnostic(text, f"[dim]{escape(text)}[/dim]")

    def _diagnostic(self, text: str, markup: str) -> None:
        if self._no_color:
            print(text, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup)


# ------------------------------------------------------------------ #
# Rendering helpers
# ------------------------------------------------------------------ #


def _to_json(data: Any, indent: Optional[int] = None) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> list[str]:
    if data is None:
        return []
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """Return True when NO_COLOR is set (any value) or TERM=dumb."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the global :class:`OutputManager`; the next call creates a fresh one."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def event(name: str, payload: Any) -> None:
    get_output().event(name, payload)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
