"""Unit tests for the wats command-line tool."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from wats.health import HealthCheckResult
from wats.main import cli
from wats.prerequisites import BrowserInfo, FlyInfo


@pytest.fixture
def runner():
    """Create CLI runner."""
    return CliRunner()


def patch_checks(fly: FlyInfo, browser: BrowserInfo, server: HealthCheckResult):
    """Patch the three readiness checks used by `wats check`."""
    fly_detector = MagicMock()
    fly_detector.return_value.detect.return_value = fly
    browser_detector = MagicMock()
    browser_detector.return_value.detect.return_value = browser
    poller = MagicMock()
    poller.return_value.wait_for_ready_sync.return_value = server
    return (
        patch("wats.main.FlyDetector", fly_detector),
        patch("wats.main.BrowserDetector", browser_detector),
        patch("wats.main.AtcPoller", poller),
    )


FLY_OK = FlyInfo(available=True, path="/usr/local/bin/fly", version="7.11.0")
BROWSER_OK = BrowserInfo(available=True, executable="/ms-playwright/chrome")
SERVER_OK = HealthCheckResult(healthy=True, version="7.11.0", attempts=1)


class TestCheck:
    """Tests for wats check."""

    def test_all_ready(self, runner, isolated_config):
        fly_patch, browser_patch, poller_patch = patch_checks(FLY_OK, BROWSER_OK, SERVER_OK)

        with fly_patch, browser_patch, poller_patch as poller:
            result = runner.invoke(cli, ["check"])

        assert result.exit_code == 0
        assert "fly 7.11.0" in result.output
        assert "chromium" in result.output
        poller.assert_called_once_with(max_attempts=1, interval_seconds=2.0)
        poller.return_value.wait_for_ready_sync.assert_called_once_with(
            "http://localhost:8080", cli_version="7.11.0"
        )

    def test_missing_fly_fails(self, runner, isolated_config):
        missing = FlyInfo(available=False, error="fly not found")
        fly_patch, browser_patch, poller_patch = patch_checks(missing, BROWSER_OK, SERVER_OK)

        with fly_patch, browser_patch, poller_patch:
            result = runner.invoke(cli, ["check"])

        assert result.exit_code == 1
        assert "fly not found" in result.output

    def test_version_mismatch_warns(self, runner, isolated_config):
        old_fly = FlyInfo(available=True, path="/usr/local/bin/fly", version="7.10.0")
        server = HealthCheckResult(healthy=True, version="7.11.0", cli_version="7.10.0")
        fly_patch, browser_patch, poller_patch = patch_checks(old_fly, BROWSER_OK, server)

        with fly_patch, browser_patch, poller_patch:
            result = runner.invoke(cli, ["check"])

        assert result.exit_code == 0
        assert "does not match" in result.output

    def test_json(self, runner, isolated_config, monkeypatch):
        monkeypatch.setenv("ATC_URL", "http://atc.test")
        down = HealthCheckResult(healthy=False, attempts=3, error="not ready")
        fly_patch, browser_patch, poller_patch = patch_checks(FLY_OK, BROWSER_OK, down)

        with fly_patch, browser_patch, poller_patch:
            result = runner.invoke(cli, ["--json", "check", "--attempts", "3"])

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["ok"] is False
        assert data["server"]["url"] == "http://atc.test"
        assert data["server"]["error"] == "not ready"
        assert data["fly"]["version"] == "7.11.0"
        assert data["version_mismatch"] is False


class TestConfigShow:
    """Tests for wats config show."""

    def test_table(self, runner, isolated_config):
        isolated_config.write_text("team_name: shared\n")

        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "wats configuration" in result.output
        assert "shared" in result.output

    def test_json_masks_passwords(self, runner, isolated_config, monkeypatch):
        monkeypatch.setenv("ATC_URL", "http://atc.test")

        result = runner.invoke(cli, ["--json", "config", "show"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["values"]["atc_url"] == "http://atc.test"
        assert data["values"]["admin_password"] == "****"
        assert data["sources"]["atc_url"] == "environment"
        assert data["sources"]["team_name"] == "default"

    def test_reveal(self, runner, isolated_config):
        result = runner.invoke(cli, ["--json", "config", "show", "--reveal"])

        assert json.loads(result.output)["values"]["admin_password"] == "test"

    def test_explicit_config_file(self, runner, isolated_config, tmp_path):
        config_file = tmp_path / "ci.yaml"
        config_file.write_text("atc_url: http://ci.test\n")

        result = runner.invoke(cli, ["-c", str(config_file), "--json", "config", "show"])

        assert json.loads(result.output)["sources"]["atc_url"] == "config file"

    def test_invalid_config(self, runner, isolated_config):
        isolated_config.write_text("bogus: 1\n")

        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 1
        assert "Unknown config key" in result.output


class TestVersion:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "wats" in result.output
