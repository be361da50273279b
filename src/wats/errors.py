"""Error types raised by the harness.

Every error is reported to pytest as-is: a failed CLI invocation or a
selector that never appears is a hard test failure, never retried.
"""

from dataclasses import dataclass, field


@dataclass(eq=False)
class HarnessError(Exception):
    """Base error class for harness errors."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class CommandFailure(HarnessError):
    """CLI command exited non-zero."""

    message: str = "Command failed"
    command: str = ""
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""

    @classmethod
    def from_result(cls, command: str, returncode: int | None, stdout: str, stderr: str):
        """Build a failure from a finished command."""
        detail = stderr.strip() or stdout.strip()
        message = f"'{command}' exited with status {returncode}"
        if detail:
            message = f"{message}: {detail.splitlines()[-1]}"
        return cls(
            message=message,
            command=command,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
        )


@dataclass(eq=False)
class WaitTimeoutError(HarnessError):
    """Awaited DOM state or CLI output never appeared within the deadline."""

    message: str = "Timed out waiting"
    selector: str = ""
    timeout_ms: float = 0

    @classmethod
    def for_selector(cls, selector: str, timeout_ms: float):
        return cls(
            message=f"Timed out after {timeout_ms:.0f}ms waiting for {selector!r}",
            selector=selector,
            timeout_ms=timeout_ms,
        )


@dataclass(eq=False)
class TeardownError(HarnessError):
    """One or more teardown steps failed.

    Every step is attempted before this is raised, so `errors` holds one
    entry per failed step.
    """

    message: str = "Teardown failed"
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]):
        return cls(
            message=f"Teardown failed ({len(errors)} errors): " + "; ".join(errors),
            errors=list(errors),
        )


@dataclass(eq=False)
class ConfigError(HarnessError):
    """Configuration file or value is invalid."""

    message: str = "Invalid configuration"
