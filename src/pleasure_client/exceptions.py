"""Exception hierarchy for pleasure-client.

All exceptions inherit from :class:`PleasureClientError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`pleasure_client.exit_codes`.  Library callers catch the specific
subclasses; the CLI entry point in :func:`pleasure_client.app.main`
catches the base class and exits with the matching code.

Subclass hierarchy::

    PleasureClientError (exit 1)
    +-- InvalidArgument     (exit 2)
    +-- ApiError            (exit 3 / 4 / 5 depending on the envelope code)
    +-- ConnectionError_    (exit 6)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import Any, Optional

from pleasure_client.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_ARGUMENT,
    EXIT_NOT_FOUND,
)


class PleasureClientError(Exception):
    """Base exception for all pleasure-client errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidArgument(PleasureClientError):
    """Raised synchronously when a local call contract is violated.

    Examples are calling ``.delete()`` with arguments on a call path, or
    omitting the entity / id of a convenience method.  Always raised before
    any network activity and never retried.
    """

    exit_code = EXIT_INVALID_ARGUMENT


class ApiError(PleasureClientError):
    """Raised when the API response envelope carries a code other than 200.

    Args:
        message: The ``error.message`` reported by the server.
        code: The envelope ``code`` (defaults to 500 when the server sent none).
        errors: Field-level error details from ``error.errors``.
    """

    def __init__(
        self,
        message: str,
        code: int = 500,
        errors: Optional[list[Any]] = None,
    ):
        if code in (401, 403):
            exit_code = EXIT_AUTH_FAILURE
        elif code == 404:
            exit_code = EXIT_NOT_FOUND
        else:
            exit_code = EXIT_API_ERROR
        super().__init__(message, exit_code=exit_code)
        self.message = message
        self.code = code
        self.errors = list(errors or [])

    def __repr__(self) -> str:
        return f"ApiError(code={self.code}, message={self.message!r})"


class ConnectionError_(PleasureClientError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(PleasureClientError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
