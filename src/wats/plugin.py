"""pytest plugin for dashboard acceptance tests.

Load with `-p wats.plugin`. Provides:
- harness_config: resolved HarnessConfig (session)
- atc: waits once per session for the server to answer (session)
- suite: a Suite initialized before and finished after each test

Tests marked `scenario` are skipped unless a target URL is configured
explicitly (ATC_URL, config file or --atc-url).
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from .config import HarnessConfig, load_config
from .errors import TeardownError
from .health import AtcPoller, HealthCheckResult
from .prerequisites import FlyDetector
from .shared.logging import configure_logging, get_logger
from .suite import Suite

logger = get_logger(__name__)

_CONFIG_KEY = pytest.StashKey[HarnessConfig]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("wats", "dashboard acceptance tests")
    group.addoption("--atc-url", default=None, help="Base URL of the dashboard under test")
    group.addoption(
        "--wats-headed",
        action="store_true",
        default=False,
        help="Show the browser instead of running headless",
    )
    group.addoption(
        "--wats-artifacts",
        default=None,
        help="Directory for screenshots and CLI transcripts of failed tests",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "scenario: dashboard scenario driven through a live server, browser and fly"
    )

    overrides = {
        "atc_url": config.getoption("--atc-url"),
        "artifacts_dir": config.getoption("--wats-artifacts"),
        "headless": False if config.getoption("--wats-headed") else None,
    }
    harness_config = load_config(overrides=overrides)
    config.stash[_CONFIG_KEY] = harness_config
    configure_logging(harness_config.log_level)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.stash[_CONFIG_KEY].is_explicit_target:
        return
    skip = pytest.mark.skip(reason="no target configured (set ATC_URL or pass --atc-url)")
    for item in items:
        if "scenario" in item.keywords:
            item.add_marker(skip)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    """Expose each phase's report as item.rep_<phase> for fixtures to inspect."""
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)


@pytest.fixture(scope="session")
def harness_config(pytestconfig: pytest.Config) -> HarnessConfig:
    """Resolved harness configuration."""
    return pytestconfig.stash[_CONFIG_KEY]


@pytest.fixture(scope="session")
def atc(harness_config: HarnessConfig) -> HealthCheckResult:
    """Wait for the target server before the first test uses it."""
    fly = FlyDetector(harness_config.fly_binary).detect()
    result = AtcPoller().wait_for_ready_sync(harness_config.atc_url, cli_version=fly.version)
    if not result.healthy:
        pytest.fail(result.error or f"{harness_config.atc_url} is not ready", pytrace=False)
    if result.version_mismatch:
        logger.warning(
            "fly does not match the server; commands may be refused",
            fly_version=result.cli_version,
            server_version=result.version,
        )
    return result


@pytest_asyncio.fixture
async def suite(
    request: pytest.FixtureRequest, harness_config: HarnessConfig, atc: HealthCheckResult
) -> AsyncGenerator[Suite, None]:
    """Per-test Suite; always finished, passed or not."""
    test_name = request.node.name
    context = Suite(harness_config)
    try:
        await context.init(test_name)
    except BaseException:
        # The init failure is what gets reported; teardown errors are already logged
        with contextlib.suppress(TeardownError):
            await context.finish(test_name)
        raise

    yield context

    report = getattr(request.node, "rep_call", None)
    context.passed(report is not None and report.passed)
    await context.finish(test_name)
