"""wats - web acceptance tests for the CI dashboard."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("wats")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .errors import CommandFailure, ConfigError, HarnessError, TeardownError, WaitTimeoutError
from .fly import CliInvocation, Fly, FlyProcess
from .palette import Color, palette
from .scenario import expect_failure, shows_pipeline_state, team_group
from .suite import Suite
from .web import Web

__all__ = [
    "__version__",
    # Errors
    "HarnessError",
    "CommandFailure",
    "WaitTimeoutError",
    "TeardownError",
    "ConfigError",
    # Components
    "Fly",
    "FlyProcess",
    "CliInvocation",
    "Web",
    "Suite",
    # Scenarios
    "shows_pipeline_state",
    "expect_failure",
    "team_group",
    # Palette
    "Color",
    "palette",
]
