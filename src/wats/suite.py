"""Suite: per-test context for dashboard acceptance tests.

A Suite is created for one test, initialized before the body runs and
finished after it, whatever the outcome:

    suite = Suite(config)
    await suite.init("test_shows_pipelines_in_order")
    ...                      # test body uses suite.fly / suite.web
    suite.passed(True)
    await suite.finish("test_shows_pipelines_in_order")

Each Suite gets its own team and guest team, its own fly target and its own
browser, so tests running side by side never touch each other's state.
"""

from __future__ import annotations

import re
import shlex
import uuid
from dataclasses import asdict
from pathlib import Path

import yaml

from .config import HarnessConfig, load_config
from .errors import CommandFailure, TeardownError
from .fly import Fly
from .shared.logging import bind_test_context, clear_test_context, get_logger
from .web import Web

logger = get_logger(__name__)

MAIN_TEAM = "main"
TEAM_PREFIX = "wats-team"
GUEST_TEAM_PREFIX = "wats-guest"


def _artifact_name(test_name: str) -> str:
    return re.sub(r"[^\w.-]+", "_", test_name).strip("_") or "test"


class Suite:
    """Owns the fixtures, CLI handles and browser sessions of one test."""

    def __init__(self, config: HarnessConfig | None = None):
        self.config = config or load_config()
        self.url = self.config.atc_url.rstrip("/")

        suffix = uuid.uuid4().hex[:8]
        self.owns_team = not self.config.team_name
        self.team_name = self.config.team_name or f"{TEAM_PREFIX}-{suffix}"
        self.guest_team_name = f"{GUEST_TEAM_PREFIX}-{suffix}"
        self.guest_username = self.config.guest_username
        self.guest_password = self.config.guest_password

        self.admin: Fly | None = None
        self.fly: Fly | None = None
        self.web: Web | None = None
        self.succeeded = False

        self._flies: list[Fly] = []
        self._webs: list[Web] = []
        self._created_teams: list[str] = []
        self._pipelines: list[str] = []

    def new_fly(self, team_name: str, username: str | None = None, password: str | None = None) -> Fly:
        """Create a fly handle that is cleaned up with the suite."""
        fly = Fly(
            self.url,
            username or self.config.admin_username,
            password or self.config.admin_password,
            team_name,
            binary=self.config.fly_binary,
            output_timeout=self.config.timeout_ms / 1000,
        )
        self._flies.append(fly)
        return fly

    async def build_web(self, username: str | None = None, password: str | None = None) -> Web:
        """Open a browser session that is closed with the suite.

        Without credentials the session stays unauthenticated.
        """
        web = await Web.build(
            self.url,
            username,
            password,
            headless=self.config.headless,
            timeout_ms=self.config.timeout_ms,
        )
        self._webs.append(web)
        return web

    async def _create_team(self, team_name: str, local_user: str) -> None:
        await self.admin.run(
            f"set-team -n {shlex.quote(team_name)} "
            f"--local-user {shlex.quote(local_user)} --non-interactive"
        )
        self._created_teams.append(team_name)

    async def set_pipeline(self, name: str, config_path: str | Path, fly: Fly | None = None) -> None:
        """(Re)create a pipeline from scratch.

        The pipeline is destroyed first, so no builds survive from an earlier
        test; `set-pipeline` alone keeps a pipeline's history. Pipelines set
        in the test's team are remembered for teardown.
        """
        fly = fly or self.fly
        quoted = shlex.quote(name)
        await fly.run(f"destroy-pipeline -n -p {quoted}")
        await fly.run(f"set-pipeline -n -p {quoted} -c {shlex.quote(str(config_path))}")
        if fly.team_name == self.team_name and name not in self._pipelines:
            self._pipelines.append(name)

    async def init(self, test_name: str) -> None:
        """Create the test's teams, log the CLI in and open a browser session."""
        bind_test_context(test_name, self.team_name)
        log = logger.bind(test=test_name, team=self.team_name)
        log.info("initializing suite", url=self.url)

        self.admin = self.new_fly(MAIN_TEAM)
        await self.admin.init()

        if self.owns_team:
            await self._create_team(self.team_name, self.config.admin_username)
        await self._create_team(self.guest_team_name, self.guest_username)

        self.fly = self.new_fly(self.team_name)
        await self.fly.init()

        self.web = await self.build_web(self.config.admin_username, self.config.admin_password)
        log.info("suite ready", guest_team=self.guest_team_name)

    def passed(self, outcome: bool) -> None:
        """Record whether the test body passed."""
        self.succeeded = outcome

    async def finish(self, test_name: str) -> None:
        """Release everything the test acquired.

        Failed tests keep their teams and leave diagnostics under the
        artifacts directory. In a shared team, the pipelines the test set
        are always destroyed, since the team outlives the test. Every step
        runs even if an earlier one fails.

        Raises:
            TeardownError: One or more steps failed
        """
        log = logger.bind(test=test_name, team=self.team_name)
        errors: list[str] = []

        if not self.succeeded and self.config.artifacts_dir:
            errors.extend(await self._save_artifacts(test_name))

        for web in self._webs:
            try:
                await web.close()
            except TeardownError as e:
                errors.extend(e.errors)
            except Exception as e:
                errors.append(f"close browser session: {e}")
        self._webs.clear()

        if not self.owns_team and self.admin is not None:
            team = shlex.quote(self.team_name)
            for pipeline in reversed(self._pipelines):
                try:
                    await self.admin.run(
                        f"destroy-pipeline -n -p {shlex.quote(pipeline)} --team {team}"
                    )
                except CommandFailure as e:
                    errors.append(f"destroy pipeline {pipeline}: {e}")
        self._pipelines.clear()

        if self.succeeded:
            for team_name in reversed(self._created_teams):
                try:
                    await self.admin.run(
                        f"destroy-team -n {shlex.quote(team_name)} --non-interactive"
                    )
                except CommandFailure as e:
                    errors.append(f"destroy team {team_name}: {e}")
        elif self._created_teams:
            log.info("keeping teams of failed test", teams=self._created_teams)
        self._created_teams.clear()

        for fly in self._flies:
            try:
                await fly.cleanup()
            except TeardownError as e:
                errors.extend(e.errors)
            except Exception as e:
                errors.append(f"clean up fly target {fly.target}: {e}")
        self._flies.clear()

        try:
            if errors:
                for error in errors:
                    log.error("teardown step failed", error=error)
                raise TeardownError.from_errors(errors)
            log.info("suite finished", passed=self.succeeded)
        finally:
            clear_test_context()

    async def _save_artifacts(self, test_name: str) -> list[str]:
        """Save screenshots, page HTML and the CLI transcript of a failed test."""
        directory = Path(self.config.artifacts_dir) / _artifact_name(test_name)
        errors: list[str] = []
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return [f"create artifacts directory {directory}: {e}"]

        for index, web in enumerate(self._webs):
            if web.closed:
                continue
            try:
                await web.screenshot(directory / f"page-{index}.png")
                (directory / f"page-{index}.html").write_text(await web.content())
            except Exception as e:
                errors.append(f"capture page {index}: {e}")

        transcript = [
            {
                "target": fly.target,
                "team": fly.team_name,
                "commands": [asdict(invocation) for invocation in fly.history],
            }
            for fly in self._flies
        ]
        try:
            with open(directory / "fly.yaml", "w") as f:
                yaml.safe_dump(transcript, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            errors.append(f"write fly transcript: {e}")

        logger.info("saved failure artifacts", test=test_name, directory=str(directory))
        return errors
