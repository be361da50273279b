"""Prerequisite detection.

Locates the fly binary and the Playwright browser install, so a broken
environment is reported up front instead of as a failure in every test.
"""

from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .config import DEFAULT_FLY_BINARY

_VERSION_RE = re.compile(r"\d+\.\d+\.\d+")


@dataclass
class FlyInfo:
    """fly binary detection result."""

    available: bool
    path: str | None = None
    version: str | None = None
    error: str | None = None


@dataclass
class BrowserInfo:
    """Playwright Chromium detection result."""

    available: bool
    executable: str | None = None
    error: str | None = None


class FlyDetector:
    """Detect the fly binary and its version."""

    def __init__(self, binary: str = DEFAULT_FLY_BINARY):
        self.binary = binary

    def detect(self) -> FlyInfo:
        """Check for fly on PATH (or at the configured path)."""
        path = shutil.which(self.binary)
        if not path:
            return FlyInfo(
                available=False,
                error=f"{self.binary} not found. Download it from the dashboard's footer or set FLY_PATH",
            )

        try:
            result = subprocess.run(
                [path, "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except subprocess.TimeoutExpired:
            return FlyInfo(available=False, path=path, error=f"{path} not responding (timeout)")

        if result.returncode != 0:
            return FlyInfo(
                available=False,
                path=path,
                error=f"{path} --version failed: {result.stderr.strip()}",
            )

        match = _VERSION_RE.search(result.stdout)
        return FlyInfo(available=True, path=path, version=match.group(0) if match else None)


class BrowserDetector:
    """Detect the Chromium build Playwright drives."""

    def detect(self) -> BrowserInfo:
        """Check that Playwright's Chromium is installed."""
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        try:
            with sync_playwright() as p:
                executable = p.chromium.executable_path
        except PlaywrightError as e:
            return BrowserInfo(available=False, error=str(e))

        if not executable or not Path(executable).exists():
            return BrowserInfo(
                available=False,
                executable=executable or None,
                error="Chromium not installed. Run: playwright install chromium",
            )
        return BrowserInfo(available=True, executable=executable)
