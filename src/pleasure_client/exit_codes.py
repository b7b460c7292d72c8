"""Numeric process exit codes used by the ``pleasure-client`` CLI.

Each constant maps to an error category and is referenced by the
corresponding :class:`~pleasure_client.exceptions.PleasureClientError`
subclass.  Shell scripts can inspect the exit code to tell a rejected
login from an unreachable server without parsing stderr.

Example::

    $ pleasure-client request get entities/user/123
    $ echo $?
    4   # EXIT_NOT_FOUND -- the API answered with code 404
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_ARGUMENT = 2
"""A local contract was violated before any request was sent."""

EXIT_AUTH_FAILURE = 3
"""The API rejected the credentials (envelope code 401 or 403)."""

EXIT_NOT_FOUND = 4
"""The API answered with envelope code 404."""

EXIT_API_ERROR = 5
"""The API answered with any other non-200 envelope code."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
