"""Key-value stores used to persist session credentials.

The session state machine only needs three operations, modelled on the
browser ``localStorage`` API the server's web clients use:
``get_item``, ``set_item`` and ``remove_item``.  Any object providing them
satisfies :class:`CredentialStorage`.

Two implementations ship with the package:

* :class:`MemoryStorage` -- a process-local dict; the default for library use.
* :class:`FileStorage` -- one JSON file per key under
  ``~/.local/share/pleasure-client/credentials/`` (XDG) or the
  platform-equivalent directory.  Files are written atomically with
  ``0o600`` permissions so that secrets are never world-readable, even
  momentarily.  Used by the CLI.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from pleasure_client.config import atomic_write, get_credentials_dir

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


@runtime_checkable
class CredentialStorage(Protocol):
    """Minimal string key-value store."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """In-memory :class:`CredentialStorage`; forgotten when the process exits."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items


class FileStorage:
    """File-backed :class:`CredentialStorage`, one file per key.

    Args:
        directory: Directory holding the files.  Defaults to
            :func:`~pleasure_client.config.get_credentials_dir`.

    Example::

        storage = FileStorage()
        storage.set_item("pleasure-credentials", '{"accessToken": "tok"}')
        assert storage.get_item("pleasure-credentials") == '{"accessToken": "tok"}'
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = Path(directory) if directory is not None else get_credentials_dir()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        """The file backing *key*.  Unsafe characters are replaced by ``_``."""
        return self._directory / f"{_UNSAFE_FILENAME_RE.sub('_', key)}.json"

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored text, or ``None`` if missing or unreadable."""
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError:
            return None

    def set_item(self, key: str, value: str) -> None:
        """Persist *value* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        atomic_write(self.path_for(key), value, mode=0o600)

    def remove_item(self, key: str) -> None:
        """Delete the file for *key*.  No-op when it is already gone."""
        path = self.path_for(key)
        if path.is_file():
            path.unlink()
