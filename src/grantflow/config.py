"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles persistent configuration for grantflow:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.grantflow/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Proxy config** -- A single :class:`~grantflow.models.ProxyConfig` JSON
  file holding the client registration and endpoints.
* **Precedence resolution** -- :func:`resolve_config` layers
  ``GRANTFLOW_*`` environment variables over the config file.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts.
* **Provider adapter** -- see
  :class:`~grantflow.providers.static.StaticConfigProvider`, which serves a
  resolved config to the flows.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional

from grantflow.exceptions import ConfigurationError
from grantflow.models import ProxyConfig

_APP_NAME = "grantflow"
_CONFIG_FILENAME = "config.json"

# Environment variable -> ProxyConfig field
_ENV_OVERRIDES = {
    "GRANTFLOW_CLIENT_ID": "client_id",
    "GRANTFLOW_CLIENT_SECRET": "client_secret",
    "GRANTFLOW_API_HOST": "api_host",
    "GRANTFLOW_AUTHORIZATION_HOST": "authorization_host",
    "GRANTFLOW_REDIRECT_URI": "redirect_uri",
    "GRANTFLOW_CLIENT_URL": "client_url",
    "GRANTFLOW_ENCRYPTION_SALT": "encryption_salt",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/grantflow/`` (default ``~/.config/grantflow/``).
    On macOS/Windows: ``~/.grantflow/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (nonces, tokens), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/grantflow/`` (default ``~/.local/share/grantflow/``).
    On macOS/Windows: ``~/.grantflow/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given the permissions are applied before any content is written, so a
    secret is never readable by others, even momentarily.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Proxy config ---


def config_path() -> Path:
    """Path to the proxy config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> ProxyConfig:
    """Load the proxy configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~grantflow.models.ProxyConfig`. If the file
        does not exist, a default (empty) instance is returned.

    Raises:
        ConfigurationError: If the file exists but contains invalid JSON or
            fails Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return ProxyConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ProxyConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ProxyConfig) -> None:
    """Persist the proxy configuration atomically with ``0o600`` permissions."""
    data = config.model_dump(mode="json", exclude_none=True)
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n", mode=0o600)


def resolve_config() -> ProxyConfig:
    """Resolve the effective config.

    Precedence (high to low):
        1. Environment variables (``GRANTFLOW_CLIENT_ID``, ``GRANTFLOW_API_HOST``, ...)
        2. User config (``~/.config/grantflow/config.json``)
        3. Defaults
    """
    config = load_config()
    overrides = {
        field: os.environ[var]
        for var, field in _ENV_OVERRIDES.items()
        if os.environ.get(var)
    }
    if overrides:
        config = config.model_copy(update=overrides)
    return config


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Raises:
        ConfigurationError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigurationError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigurationError(f"Unknown credential source format: {source}")

