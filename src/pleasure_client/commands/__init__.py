"""Built-in CLI commands for pleasure-client.

This package groups the Typer command modules registered on the root app by
:func:`pleasure_client.app.register_commands`:

* :mod:`~pleasure_client.commands.request` -- ``request`` and ``entities``.
* :mod:`~pleasure_client.commands.session` -- ``login``, ``logout`` and
  ``whoami``.
* :mod:`~pleasure_client.commands.listen` -- print realtime events.
* :mod:`~pleasure_client.commands.config` -- ``config show|set|reset``.

:mod:`~pleasure_client.commands.common` holds the client factory and the
async runner every command goes through.
"""
