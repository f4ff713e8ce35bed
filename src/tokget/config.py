"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for tokget:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.tokget/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~tokget.models.GlobalConfig`
  JSON file storing the remote Chrome URL, login defaults and server
  settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables and the global config into the final effective
  configuration.
* **Credential resolution** -- :func:`resolve_credential` reads the
  password from an env var, a file or an interactive prompt, so it never
  has to appear on the command line.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
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

from tokget.errors import ConfigError
from tokget.models import GlobalConfig

_APP_NAME = "tokget"
_CONFIG_FILENAME = "config.json"

_ENV_REMOTE_CHROME = "TOKGET_REMOTE_CHROME"
_ENV_LISTEN = "TOKGET_LISTEN"
_ENV_VERBOSE = "TOKGET_VERBOSE"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform uses XDG Base Directories (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/tokget/`` (default ``~/.config/tokget/``).
    On macOS/Windows: ``~/.tokget/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/tokget/`` (default ``~/.local/share/tokget/``).
    On macOS/Windows: ``~/.tokget/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.
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


# --- Global config ---


def global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~tokget.models.GlobalConfig`, or a default
        instance if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def parse_bool(value: str) -> bool:
    """Parse a boolean written the way people write them in env vars and config.

    Raises:
        ValueError: If *value* is not one of ``1/0``, ``true/false``,
            ``yes/no`` or ``on/off`` (case-insensitive).
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot convert {value!r} to bool")


def resolve_config(
    cli_remote_chrome: Optional[str] = None,
    cli_listen: Optional[str] = None,
    cli_verbose: Optional[bool] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_remote_chrome``, ``cli_listen``, ``cli_verbose``)
        2. Environment variables (``TOKGET_REMOTE_CHROME``, ``TOKGET_LISTEN``,
           ``TOKGET_VERBOSE``)
        3. User config (``~/.config/tokget/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the config file is invalid or ``TOKGET_VERBOSE``
            is not a boolean.
    """
    cfg = load_global_config()

    env_remote = os.environ.get(_ENV_REMOTE_CHROME)
    if env_remote:
        cfg.remote_chrome = env_remote
    env_listen = os.environ.get(_ENV_LISTEN)
    if env_listen:
        cfg.serve.listen = env_listen
    env_verbose = os.environ.get(_ENV_VERBOSE)
    if env_verbose:
        try:
            cfg.serve.verbose = parse_bool(env_verbose)
        except ValueError as exc:
            raise ConfigError(f"Invalid {_ENV_VERBOSE}: {exc}") from exc

    if cli_remote_chrome is not None:
        cfg.remote_chrome = cli_remote_chrome or None
    if cli_listen is not None:
        cfg.serve.listen = cli_listen
    if cli_verbose is not None:
        cfg.serve.verbose = cli_verbose

    return cfg


def split_scopes(scopes: str) -> str:
    """Normalise a comma- or space-separated scope list to the space-delimited form.

    Example::

        >>> split_scopes("openid,profile, email")
        'openid profile email'
    """
    return " ".join(s for s in scopes.replace(",", " ").split() if s)


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Password: ")

    raise ConfigError(f"Unknown credential source format: {source}")
