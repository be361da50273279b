"""Shared test fixtures for wats tests.

This module provides fixtures for testing the harness without a live
dashboard:
- fake_fly: an executable standing in for the fly CLI
- isolated_config: environment with no wats settings leaking in
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest

# =============================================================================
# Fake fly binary
# =============================================================================

# Logs its argv, drops "-t <target>", then acts on the first word.
FAKE_FLY_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
  echo "7.11.0"
  exit 0
fi
echo "$@" >> "$WATS_FAKE_FLY_LOG"
shift 2
case "$1" in
  fail)
    echo "partial output"
    echo "something went wrong" >&2
    exit 3
    ;;
  slow)
    echo hello
    exec sleep 30
    ;;
  quiet)
    exit 0
    ;;
  home)
    echo "$HOME"
    ;;
  *)
    echo "ok: $*"
    ;;
esac
"""


@dataclass
class FakeFly:
    """A fake fly executable and the log of commands it received."""

    path: Path
    log: Path

    def lines(self) -> list[str]:
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()

    def calls(self) -> list[str]:
        """Commands received so far, without the target flag."""
        return [line.split(" ", 2)[2] for line in self.lines()]

    def targets(self) -> list[str]:
        """Target of each command received so far."""
        return [line.split(" ")[1] for line in self.lines()]


@pytest.fixture
def fake_fly(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeFly:
    """Fixture providing an executable that behaves like a scripted fly."""
    script = tmp_path / "fly"
    script.write_text(FAKE_FLY_SCRIPT)
    script.chmod(0o755)

    log = tmp_path / "fly.log"
    monkeypatch.setenv("WATS_FAKE_FLY_LOG", str(log))
    return FakeFly(path=script, log=log)


# =============================================================================
# Configuration isolation
# =============================================================================

WATS_ENV_VARS = [
    "ATC_URL",
    "FLY_PATH",
    "ATC_ADMIN_USERNAME",
    "ATC_ADMIN_PASSWORD",
    "ATC_GUEST_USERNAME",
    "ATC_GUEST_PASSWORD",
    "WATS_TEAM_NAME",
    "WATS_HEADLESS",
    "WATS_TIMEOUT_MS",
    "WATS_ARTIFACTS_DIR",
    "WATS_LOG_LEVEL",
]


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Clear wats environment variables and point the config file at tmp_path.

    Returns the (not yet existing) config file path.
    """
    for name in WATS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_file = tmp_path / "wats-config.yaml"
    monkeypatch.setenv("WATS_CONFIG", str(config_file))
    return config_file
