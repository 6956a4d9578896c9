"""Configuration management with XDG paths, atomic writes, and login URL resolution.

This module handles all persistent configuration for orglogin:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.orglogin/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~orglogin.models.GlobalConfig`
  JSON file storing the default-org pointers and the configured login URL.
* **Environment flags** -- :func:`is_container_mode` and
  :func:`resolve_login_url` read the handful of environment variables the
  login commands honour.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash mid-write never leaves a truncated file
visible to other processes.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from orglogin.exceptions import ConfigError, InvalidUsageError
from orglogin.models import DEFAULT_LOGIN_URL, GlobalConfig

_APP_NAME = "orglogin"
_CONFIG_FILENAME = "config.json"

CONTAINER_MODE_VARS = ("SF_CONTAINER_MODE", "SFDX_CONTAINER_MODE")
INSTANCE_URL_VAR = "ORGLOGIN_INSTANCE_URL"
_TRUTHY = ("true", "1", "yes", "on")


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/orglogin/`` (default ``~/.config/orglogin/``).
    On macOS/Windows: ``~/.orglogin/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (org records, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/orglogin/`` (default ``~/.local/share/orglogin/``).
    On macOS/Windows: ``~/.orglogin/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    When *mode* is given it is applied to the temp file before any content
    is written, so secrets are never readable by others, even momentarily.
    On any failure the temp file is cleaned up.
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
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def write_json(path: Path, data: object, mode: Optional[int] = None) -> None:
    """Serialise *data* as indented JSON and write it with :func:`atomic_write`."""
    atomic_write(path, json.dumps(data, indent=2) + "\n", mode=mode)


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~orglogin.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    write_json(_global_config_path(), config.model_dump(mode="json"))


# --- Environment ---


def _env_bool(environ: Mapping[str, str], name: str) -> Optional[bool]:
    value = environ.get(name)
    if value is None or value.strip() == "":
        return None
    return value.strip().lower() in _TRUTHY


def is_container_mode(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when running headless, where no browser can be opened.

    ``SF_CONTAINER_MODE`` wins when set; ``SFDX_CONTAINER_MODE`` is the
    fallback for older setups.

    Args:
        environ: Environment mapping to read. Defaults to ``os.environ``.
    """
    env = os.environ if environ is None else environ
    for name in CONTAINER_MODE_VARS:
        flag = _env_bool(env, name)
        if flag is not None:
            return flag
    return False


def resolve_login_url(
    cli_url: Optional[str],
    config: Optional[GlobalConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """Resolve the login URL for a web login.

    Precedence (high to low):
        1. ``--instance-url`` flag
        2. ``ORGLOGIN_INSTANCE_URL`` environment variable
        3. ``org_instance_url`` in the global config
        4. :data:`~orglogin.models.DEFAULT_LOGIN_URL`

    Raises:
        InvalidUsageError: If the URL is not an absolute http(s) URL, or if
            it points at a Lightning domain (``*.lightning.force.com``), which
            cannot serve the OAuth endpoints.
    """
    env = os.environ if environ is None else environ
    url = cli_url or env.get(INSTANCE_URL_VAR) or (config.org_instance_url if config else None)
    if not url:
        return DEFAULT_LOGIN_URL

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidUsageError(f"Instance URL must be an absolute http(s) URL: {url}")
    host = parsed.hostname or ""
    if host.endswith(".lightning.force.com"):
        raise InvalidUsageError(
            f"Invalid instance URL {url}: use the My Domain login URL "
            "(ending in .my.salesforce.com), not a Lightning domain."
        )
    return url.rstrip("/")
