"""Fly: drives the dashboard's command-line client.

Each Fly instance owns its own target name and HOME directory, so the
`.flyrc` written by `login` is never shared between concurrently running
tests. Commands are executed without a shell.

Usage:
    fly = Fly("http://localhost:8080", "test", "test", "wats-team-1234")
    await fly.init()
    await fly.run("set-pipeline -n -p some-pipeline -c states-pipeline.yml")

    run = await fly.spawn("trigger-job -w -j some-pipeline/running")
    await run.wait_for_output("hello")
    ...
    await fly.cleanup()
"""

from __future__ import annotations

import asyncio
import os
import shlex
import shutil
import tempfile
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .config import DEFAULT_FLY_BINARY
from .errors import CommandFailure, TeardownError, WaitTimeoutError
from .shared.logging import get_logger

logger = get_logger(__name__)

TARGET_PREFIX = "wats-target"
DEFAULT_OUTPUT_TIMEOUT = 60.0
READ_CHUNK_SIZE = 4096

# Commands whose -p flag is a password rather than a pipeline name
_PASSWORD_COMMANDS = {"login", "l"}


@dataclass
class CliInvocation:
    """A single finished command execution."""

    command: str
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def redact(command: str) -> str:
    """Mask the password of a login command."""
    try:
        tokens = shlex.split(command)
    except ValueError:
        return command
    if not tokens or tokens[0] not in _PASSWORD_COMMANDS:
        return command

    masked = []
    hide_next = False
    for token in tokens:
        if hide_next:
            masked.append("****")
            hide_next = False
            continue
        if token in ("-p", "--password"):
            hide_next = True
        elif token.startswith("--password="):
            token = "--password=****"
        masked.append(token)
    return " ".join(masked)


class FlyProcess:
    """A command running in the background.

    Output is read as it arrives so callers can react to a specific line
    (e.g. abort a build once it has started). Awaiting the handle waits for
    completion and raises CommandFailure on a non-zero exit.
    """

    def __init__(
        self,
        command: str,
        process: asyncio.subprocess.Process,
        on_finish: Callable[[CliInvocation], None] | None = None,
        output_timeout: float = DEFAULT_OUTPUT_TIMEOUT,
    ):
        self.command = command
        self.process = process
        self.output_timeout = output_timeout
        self._on_finish = on_finish
        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._open_streams = 2
        self._changed = asyncio.Condition()
        self._result: CliInvocation | None = None
        self._readers = [
            asyncio.create_task(self._pump(process.stdout, self._stdout)),
            asyncio.create_task(self._pump(process.stderr, self._stderr)),
        ]

    @property
    def output(self) -> str:
        """Stdout captured so far."""
        return "".join(self._stdout)

    @property
    def errors(self) -> str:
        """Stderr captured so far."""
        return "".join(self._stderr)

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    async def _pump(self, stream: asyncio.StreamReader | None, chunks: list[str]) -> None:
        try:
            if stream is None:
                return
            while True:
                data = await stream.read(READ_CHUNK_SIZE)
                if not data:
                    break
                chunks.append(data.decode(errors="replace"))
                async with self._changed:
                    self._changed.notify_all()
        finally:
            async with self._changed:
                self._open_streams -= 1
                self._changed.notify_all()

    async def wait_for_output(self, substring: str, timeout: float | None = None) -> str:
        """Suspend until `substring` appears in stdout.

        Args:
            substring: Text to look for
            timeout: Seconds to wait; defaults to the handle's output timeout

        Returns:
            Stdout captured so far

        Raises:
            WaitTimeoutError: The text did not appear in time
            CommandFailure: The process closed its output without printing it
        """
        if timeout is None:
            timeout = self.output_timeout

        async def _wait() -> bool:
            async with self._changed:
                while substring not in self.output:
                    if self._open_streams == 0:
                        return False
                    await self._changed.wait()
                return True

        try:
            found = await asyncio.wait_for(_wait(), timeout)
        except asyncio.TimeoutError as e:
            raise WaitTimeoutError(
                message=(
                    f"Timed out after {timeout:.0f}s waiting for {substring!r} "
                    f"in output of '{self.command}'"
                ),
                selector=substring,
                timeout_ms=timeout * 1000,
            ) from e

        if not found:
            invocation = await self._finish()
            raise CommandFailure(
                message=f"'{self.command}' exited before printing {substring!r}",
                command=self.command,
                returncode=invocation.returncode,
                stdout=invocation.stdout,
                stderr=invocation.stderr,
            )
        return self.output

    async def _finish(self) -> CliInvocation:
        if self._result is None:
            returncode = await self.process.wait()
            await asyncio.gather(*self._readers)
            if self._result is None:
                self._result = CliInvocation(self.command, returncode, self.output, self.errors)
                logger.debug(
                    "fly process finished", command=self.command, returncode=returncode
                )
                if self._on_finish:
                    self._on_finish(self._result)
        return self._result

    async def wait(self) -> CliInvocation:
        """Wait for completion.

        Raises:
            CommandFailure: The process exited non-zero (including when killed)
        """
        invocation = await self._finish()
        if not invocation.succeeded:
            raise CommandFailure.from_result(
                self.command, invocation.returncode, invocation.stdout, invocation.stderr
            )
        return invocation

    def __await__(self):
        return self.wait().__await__()

    async def kill(self) -> None:
        """Kill the process if still running and reap it."""
        if self.process.returncode is None:
            logger.info("killing fly process", command=self.command, pid=self.process.pid)
            try:
                self.process.kill()
            except ProcessLookupError:
                pass  # exited between the check and the signal
        await self._finish()


class Fly:
    """Runs fly commands against one target."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        team_name: str,
        binary: str = DEFAULT_FLY_BINARY,
        output_timeout: float = DEFAULT_OUTPUT_TIMEOUT,
    ):
        """Initialize Fly.

        Args:
            url: Base URL of the dashboard server
            username: Local user to log in as
            password: Password of that user
            team_name: Team to target
            binary: fly executable name or path
            output_timeout: Default seconds FlyProcess.wait_for_output waits
        """
        self.url = url
        self.username = username
        self.password = password
        self.team_name = team_name
        self.binary = binary
        self.output_timeout = output_timeout
        self.target = f"{TARGET_PREFIX}-{uuid.uuid4().hex[:12]}"
        self.home = Path(tempfile.mkdtemp(prefix="wats-fly-"))
        self.history: list[CliInvocation] = []
        self._processes: list[FlyProcess] = []

    @property
    def running(self) -> list[FlyProcess]:
        """Spawned processes that have not exited yet."""
        return [p for p in self._processes if p.running]

    def args(self, command: str) -> list[str]:
        """Full argv for a command."""
        return [self.binary, "-t", self.target, *shlex.split(command)]

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["HOME"] = str(self.home)
        return env

    def _record(self, invocation: CliInvocation) -> None:
        self.history.append(invocation)

    async def _start(self, command: str) -> asyncio.subprocess.Process:
        logger.debug("fly command started", target=self.target, command=redact(command))
        try:
            return await asyncio.create_subprocess_exec(
                *self.args(command),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env(),
            )
        except FileNotFoundError as e:
            raise CommandFailure(
                message=f"fly executable not found: {self.binary}",
                command=redact(command),
            ) from e

    async def init(self) -> CliInvocation:
        """Log the target in with the credentials given at construction."""
        return await self.login()

    async def login(
        self,
        username: str | None = None,
        password: str | None = None,
        team_name: str | None = None,
    ) -> CliInvocation:
        """Log the target in, optionally as a different user or team."""
        self.username = username or self.username
        self.password = password or self.password
        self.team_name = team_name or self.team_name
        return await self.run(
            f"login -c {shlex.quote(self.url)} -n {shlex.quote(self.team_name)} "
            f"-u {shlex.quote(self.username)} -p {shlex.quote(self.password)}"
        )

    async def run(self, command: str) -> CliInvocation:
        """Run a command to completion.

        Raises:
            CommandFailure: The command exited non-zero
        """
        process = await self._start(command)
        try:
            stdout, stderr = await process.communicate()
        except BaseException:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        invocation = CliInvocation(
            command=redact(command),
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        self._record(invocation)
        logger.debug(
            "fly command finished",
            target=self.target,
            command=invocation.command,
            returncode=invocation.returncode,
        )

        if not invocation.succeeded:
            raise CommandFailure.from_result(
                invocation.command, invocation.returncode, invocation.stdout, invocation.stderr
            )
        return invocation

    async def spawn(self, command: str) -> FlyProcess:
        """Start a command in the background.

        The process is killed by cleanup() if still running.
        """
        process = await self._start(command)
        handle = FlyProcess(
            redact(command), process, on_finish=self._record, output_timeout=self.output_timeout
        )
        self._processes.append(handle)
        return handle

    async def cleanup(self) -> None:
        """Kill spawned processes and remove the private HOME.

        Raises:
            TeardownError: Any step failed; every step is still attempted
        """
        errors: list[str] = []

        for handle in self._processes:
            try:
                await handle.kill()
            except Exception as e:
                logger.warning("failed to kill fly process", command=handle.command, error=str(e))
                errors.append(f"kill '{handle.command}': {e}")
        self._processes.clear()

        try:
            shutil.rmtree(self.home)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("failed to remove fly home", home=str(self.home), error=str(e))
            errors.append(f"remove {self.home}: {e}")

        if errors:
            raise TeardownError.from_errors(errors)
