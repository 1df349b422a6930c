"""Shared test fixtures for idmauth.

Provides reusable fixtures for isolated config environments, in-memory
cookie hosts and stores, output state management, and running CLI
commands. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from idmauth.models import AuthContext
from idmauth.output import OutputFormat, OutputManager, reset_output, set_output
from idmauth.store import MemoryCookieHost, ScopedStore

COMPS_URL = "https://comps.idmod.org/"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Drop the installed OutputManager once each test finishes.

    A manager built inside a CliRunner invocation keeps Rich consoles bound
    to the runner's temporary streams, which are closed afterwards.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config or the real cookie jar.
    Clears all IDMAUTH_* environment variables and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("idmauth.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["IDMAUTH_ENDPOINT", "IDMAUTH_LOCALIZE"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def context() -> AuthContext:
    """Default context pointed at a COMPS host with localization on."""
    return AuthContext(endpoint=COMPS_URL)


@pytest.fixture
def memory_host() -> MemoryCookieHost:
    """An empty in-memory cookie host serving https://comps.idmod.org/."""
    return MemoryCookieHost(COMPS_URL)


@pytest.fixture
def store(memory_host: MemoryCookieHost, context: AuthContext) -> ScopedStore:
    """A ScopedStore over :func:`memory_host`."""
    return ScopedStore(memory_host, context)


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a PLAIN, no-color, verbose OutputManager so debug lines are printed."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """A Typer CliRunner; combine with :func:`isolated_config` for commands that touch disk."""
    from typer.testing import CliRunner

    return CliRunner()
