"""Where idmauth keeps its files and how the effective context is resolved.

Two files are owned by the package:

* ``config.json`` in :func:`get_config_dir` -- the persisted
  :class:`~idmauth.models.AuthContext` (endpoint, localization flag,
  context fields). Read with :func:`load_auth_context`, written with
  :func:`save_auth_context` or :func:`update_auth_context`.
* ``cookies.json`` in :func:`get_data_dir` -- the cookie jar behind
  :class:`~idmauth.store.hosts.FileCookieHost` (:func:`get_cookie_path`).

Directories follow XDG on Linux/BSD and live under ``~/.idmauth/``
elsewhere. Both files are replaced through :func:`atomic_write`.

:func:`resolve_context` layers the ``--endpoint`` flag and the
``IDMAUTH_*`` environment variables over the stored file and returns
the frozen context the store and the authenticator share.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from idmauth.exceptions import ConfigError
from idmauth.models import AuthContext

_APP_NAME = "idmauth"
_CONFIG_FILENAME = "config.json"
_COOKIE_FILENAME = "cookies.json"

ENV_ENDPOINT = "IDMAUTH_ENDPOINT"
ENV_LOCALIZE = "IDMAUTH_LOCALIZE"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


# --- Directories ---

# kind -> (XDG variable, default under $HOME, sub-directory of ~/.idmauth)
_DIRS = {
    "config": ("XDG_CONFIG_HOME", (".config",), ""),
    "data": ("XDG_DATA_HOME", (".local", "share"), "data"),
}


def _is_xdg_platform() -> bool:
    """Linux and the BSDs follow the XDG base directory layout."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_segments, fallback_sub = _DIRS[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or str(Path.home().joinpath(*home_segments))
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json``; created on demand.

    ``$XDG_CONFIG_HOME/idmauth`` (default ``~/.config/idmauth``) on
    Linux/BSD, ``~/.idmauth`` elsewhere.
    """
    return _app_dir("config")


def get_data_dir() -> Path:
    """Directory holding the cookie jar and crash logs; created on demand.

    ``$XDG_DATA_HOME/idmauth`` (default ``~/.local/share/idmauth``) on
    Linux/BSD, ``~/.idmauth/data`` elsewhere.
    """
    return _app_dir("data")


def get_cookie_path() -> Path:
    return get_data_dir() / _COOKIE_FILENAME


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* so readers see either the old or the new file.

    The content goes to a sibling temp file that is fsynced and then
    renamed over *path*. *mode*, when given, is set on the temp file before
    the first byte is written, so a token jar is never briefly readable by
    others.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        try:
            if mode is not None:
                os.chmod(tmp.name, mode)
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            Path(tmp.name).unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp.name, path)
    except OSError:
        Path(tmp.name).unlink(missing_ok=True)
        raise


# --- Auth context ---


def _config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_auth_context() -> AuthContext:
    """Load the auth context from the config directory.

    Returns:
        The deserialised :class:`~idmauth.models.AuthContext`. If the file
        does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _config_path()
    if not path.is_file():
        return AuthContext()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AuthContext.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_auth_context(context: AuthContext) -> None:
    """Persist the auth context atomically to disk."""
    data = context.model_dump(mode="json")
    atomic_write(_config_path(), json.dumps(data, indent=2, sort_keys=True) + "\n")


def update_auth_context(**changes: Any) -> AuthContext:
    """Load the stored context, apply *changes*, validate, save and return it.

    Raises:
        ConfigError: If the stored file is invalid or the changes fail
            validation.
    """
    current = load_auth_context()
    try:
        updated = AuthContext.model_validate({**current.model_dump(), **changes})
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc
    save_auth_context(updated)
    return updated


# --- Precedence resolution ---


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigError(f"Environment variable {name} must be a boolean, got '{value}'")


def resolve_context(cli_endpoint: Optional[str] = None) -> AuthContext:
    """Resolve the effective auth context.

    Precedence (high to low):
        1. CLI flag (``cli_endpoint``)
        2. Environment variables (``IDMAUTH_ENDPOINT``, ``IDMAUTH_LOCALIZE``)
        3. User config (``~/.config/idmauth/config.json``)
        4. Defaults

    Returns:
        A frozen :class:`~idmauth.models.AuthContext`.

    Raises:
        ConfigError: If the config file is invalid or an environment
            variable cannot be parsed.
    """
    base = load_auth_context()
    overrides: dict[str, Any] = {}

    env_endpoint = os.environ.get(ENV_ENDPOINT)
    if env_endpoint:
        overrides["endpoint"] = env_endpoint
    env_localize = os.environ.get(ENV_LOCALIZE)
    if env_localize:
        overrides["localize"] = _parse_bool(ENV_LOCALIZE, env_localize)

    if cli_endpoint is not None:
        overrides["endpoint"] = cli_endpoint

    if not overrides:
        return base
    try:
        return AuthContext.model_validate({**base.model_dump(), **overrides})
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration override: {exc}") from exc
