"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for pleasure-client:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.pleasure-client/`` on macOS and Windows.  See :func:`get_config_dir`,
  :func:`get_cache_dir` and :func:`get_data_dir`.
* **Global config** -- a single :class:`~pleasure_client.models.ClientConfig`
  JSON file holding the user's defaults.
* **Project config** -- an optional ``./pleasure.json`` that pins settings
  for one repository (typically ``api_url``).
* **Precedence resolution** -- :func:`resolve_config` merges explicit
  overrides, ``PLEASURE_*`` environment variables, project config and
  global config into the effective :class:`ClientConfig`.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from pleasure_client.exceptions import ConfigError
from pleasure_client.models import ClientConfig

_APP_NAME = "pleasure-client"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "pleasure.json"

# Environment variable -> ClientConfig field.
_ENV_FIELDS = {
    "PLEASURE_API_URL": "api_url",
    "PLEASURE_TIMEOUT": "timeout",
    "PLEASURE_CREDENTIALS_KEY": "credentials_key",
    "PLEASURE_SOCKET_PATH": "socket_path",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(xdg_var: str, xdg_default: tuple[str, ...], fallback: tuple[str, ...]) -> Path:
    """Return (and create) one of the per-user application directories.

    On XDG platforms this is ``$<xdg_var>/pleasure-client`` with *xdg_default*
    under ``$HOME`` standing in for an unset variable.  Elsewhere everything
    lives below ``~/.pleasure-client`` in the *fallback* subdirectory.
    """
    if _is_xdg_platform():
        base = os.environ.get(xdg_var) or str(Path.home().joinpath(*xdg_default))
        path = Path(base) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory of the global ``config.json``.

    ``~/.config/pleasure-client/`` by default on Linux/BSD,
    ``~/.pleasure-client/`` on macOS and Windows.
    """
    return _app_dir("XDG_CONFIG_HOME", (".config",), ())


def get_cache_dir() -> Path:
    """Directory of the :class:`~pleasure_client.cache.DiskCacheHook` store.

    Its content can be deleted at any time.
    """
    return _app_dir("XDG_CACHE_HOME", (".cache",), ("cache",))


def get_data_dir() -> Path:
    """Directory for stored credentials and crash logs."""
    return _app_dir("XDG_DATA_HOME", (".local", "share"), ("data",))


def get_credentials_dir() -> Path:
    """Return ``<data_dir>/credentials``, creating it if necessary."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* without ever exposing a partial file.

    The content goes to a hidden temp file in the same directory, is synced
    to disk and then renamed over *path* with :func:`os.replace`.  *mode* is
    applied to the temp file before anything is written to it, which keeps
    stored tokens private from the first byte.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    handle = tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    )
    tmp_path = Path(handle.name)
    try:
        with handle:
            if mode is not None:
                os.chmod(tmp_path, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    return data


def load_global_config() -> ClientConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~pleasure_client.models.ClientConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return ClientConfig()
    data = _read_json(path, "global config")
    try:
        return ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: ClientConfig) -> None:
    """Persist *config* atomically as the global configuration."""
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./pleasure.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# --- Precedence resolution ---


def _env_overrides() -> dict[str, Any]:
    return {field: os.environ[var] for var, field in _ENV_FIELDS.items() if os.environ.get(var)}


def resolve_config(**overrides: Any) -> ClientConfig:
    """Resolve the effective client configuration.

    Precedence (high to low):
        1. Explicit keyword overrides whose value is not ``None``
        2. Environment variables (``PLEASURE_API_URL``, ``PLEASURE_TIMEOUT``,
           ``PLEASURE_CREDENTIALS_KEY``, ``PLEASURE_SOCKET_PATH``)
        3. Project config (``./pleasure.json``)
        4. User config (``~/.config/pleasure-client/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer holds invalid JSON or the merged result
            fails validation (e.g. a non-numeric ``PLEASURE_TIMEOUT``).
    """
    merged: dict[str, Any] = load_global_config().model_dump()

    project = load_project_config()
    if project:
        merged.update(project)

    merged.update(_env_overrides())
    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return ClientConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
