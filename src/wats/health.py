"""Readiness polling for the dashboard server.

Waits for the server's info endpoint to answer before a test session
starts, so the first test does not fail on a server that is still booting.
When the fly version is known, the result also says whether the CLI
matches the server (a mismatched fly refuses most commands until synced).
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

INFO_PATH = "/api/v1/info"


@dataclass
class HealthCheckResult:
    """Result of a readiness check."""

    healthy: bool
    version: str | None = None
    worker_version: str | None = None
    cli_version: str | None = None
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None

    @property
    def version_mismatch(self) -> bool:
        """Whether fly and the server report different versions.

        False when either version is unknown.
        """
        if not self.healthy or not self.version or not self.cli_version:
            return False
        return self.version != self.cli_version


class AtcPoller:
    """Poll the server's info endpoint."""

    def __init__(
        self,
        max_attempts: int = 30,
        interval_seconds: float = 2.0,
        timeout_seconds: float = 5.0,
    ):
        """Initialize poller.

        Args:
            max_attempts: Maximum number of attempts.
            interval_seconds: Seconds between attempts.
            timeout_seconds: Timeout for each HTTP request.
        """
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds

    async def _attempt(self, client: httpx.AsyncClient, info_url: str) -> dict | str:
        """One request; the info payload, or a description of what went wrong."""
        try:
            response = await client.get(info_url)
        except httpx.ConnectError:
            return "Connection refused"
        except httpx.TimeoutException:
            return "Request timeout"
        except httpx.HTTPError as e:
            return str(e)

        if response.status_code != 200:
            return f"HTTP {response.status_code}"
        try:
            payload = response.json()
        except ValueError as e:
            return f"Invalid info response: {e}"
        if not isinstance(payload, dict):
            return "Invalid info response: not an object"
        return payload

    async def wait_for_ready(
        self,
        url: str,
        on_attempt: Callable[[int, int, str | None], None] | None = None,
        cli_version: str | None = None,
    ) -> HealthCheckResult:
        """Poll the info endpoint until it answers or attempts run out.

        Args:
            url: Base URL of the server.
            on_attempt: Optional callback called with (attempt, max_attempts, error)
                       after each failed attempt.
            cli_version: Version of the fly binary, compared with the server's.

        Returns:
            HealthCheckResult with status information.
        """
        start = time.monotonic()
        info_url = f"{url.rstrip('/')}{INFO_PATH}"
        last_error: str | None = None

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            for attempt in range(1, self.max_attempts + 1):
                outcome = await self._attempt(client, info_url)
                if isinstance(outcome, dict):
                    return HealthCheckResult(
                        healthy=True,
                        version=outcome.get("version"),
                        worker_version=outcome.get("worker_version"),
                        cli_version=cli_version,
                        attempts=attempt,
                        elapsed_seconds=time.monotonic() - start,
                    )

                last_error = outcome
                if on_attempt:
                    on_attempt(attempt, self.max_attempts, last_error)
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.interval_seconds)

        return HealthCheckResult(
            healthy=False,
            cli_version=cli_version,
            attempts=self.max_attempts,
            elapsed_seconds=time.monotonic() - start,
            error=f"{url} did not become ready. Last error: {last_error}",
        )

    def wait_for_ready_sync(
        self,
        url: str,
        on_attempt: Callable[[int, int, str | None], None] | None = None,
        cli_version: str | None = None,
    ) -> HealthCheckResult:
        """Synchronous wrapper for wait_for_ready."""
        return asyncio.run(self.wait_for_ready(url, on_attempt, cli_version))
