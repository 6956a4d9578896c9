"""Shared test fixtures for orglogin.

Provides isolated config/data directories, output state management, a CLI
runner, and small factories for credential records.  These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from orglogin.models import CredentialRecord
from orglogin.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
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
    so that tests never touch real user config, forces the XDG layout, and
    clears the environment variables the login commands read.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("orglogin.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "SF_CONTAINER_MODE",
        "SFDX_CONTAINER_MODE",
        "ORGLOGIN_INSTANCE_URL",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Record factory
# ---------------------------------------------------------------------------


@pytest.fixture
def make_record():
    """Factory for :class:`CredentialRecord` instances with sensible defaults."""

    def _make(username: str = "admin@example.com", **overrides) -> CredentialRecord:
        fields = {
            "username": username,
            "org_id": "00D000000000001AAA",
            "access_token": "00D!access-token-value",
            "refresh_token": "5Aep-refresh-token",
            "instance_url": "https://example.my.salesforce.com",
        }
        fields.update(overrides)
        return CredentialRecord(**fields)

    return _make


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
