"""Scenario runner for dashboard pipeline-card tests.

Most dashboard tests share one shape: put a pipeline into a known state,
let the test push it further, open the dashboard, find the team's card and
check its text and banner color. shows_pipeline_state() runs that shape;
tests supply only the setup and the assertions.
"""

from __future__ import annotations

import shlex
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import CommandFailure
from .palette import Color
from .suite import MAIN_TEAM, Suite

if TYPE_CHECKING:
    from .web import Web

FIXTURES_DIR = Path(__file__).parent / "fixtures"
STATES_PIPELINE = FIXTURES_DIR / "states-pipeline.yml"

DEFAULT_PIPELINE = "some-pipeline"

Setup = Callable[["Suite"], Awaitable[None]]
Assertions = Callable[["Suite", str, "Color | None", str], Awaitable[None]]


def team_group(team_name: str) -> str:
    """Selector of a team's group on the dashboard."""
    return f'.dashboard-team-group[data-team-name="{team_name}"]'


MAIN_TEAM_GROUP = team_group(MAIN_TEAM)


async def banner_color(web: Web, group: str) -> Color | None:
    """Current background color of the first pipeline banner in a group.

    None if the group has no banner.
    """
    banner = await web.query(f"{group} .banner")
    background = await web.computed_style(banner, "backgroundColor")
    if not background:
        return None
    return Color.parse(background)


async def set_states_pipeline(suite: Suite, pipeline: str = DEFAULT_PIPELINE) -> None:
    """Recreate a pipeline from the states fixture, with no builds, and unpause it."""
    await suite.set_pipeline(pipeline, STATES_PIPELINE)
    await suite.fly.run(f"unpause-pipeline -p {shlex.quote(pipeline)}")


async def shows_pipeline_state(
    suite: Suite,
    setup: Setup,
    assertions: Assertions,
    pipeline: str = DEFAULT_PIPELINE,
) -> None:
    """Provision a pipeline, run setup, open the dashboard, run assertions.

    The pipeline is recreated immediately before setup runs, so every
    scenario starts from the same state whatever ran before it. Assertions
    receive the card text, the parsed banner color and the team group
    selector.
    """
    await set_states_pipeline(suite, pipeline)

    await setup(suite)

    await suite.web.goto(suite.web.route("/"))

    group = team_group(suite.team_name)
    await suite.web.wait_for(f"{group} .card")
    card = await suite.web.query(f"{group} .card")
    text = await suite.web.text(card)

    color = await banner_color(suite.web, group)

    await assertions(suite, text, color, group)


async def expect_failure(command: Awaitable) -> CommandFailure:
    """Await a command that is expected to fail.

    Returns:
        The CommandFailure it raised

    Raises:
        AssertionError: The command succeeded
    """
    try:
        result = await command
    except CommandFailure as e:
        return e
    raise AssertionError(f"expected command to fail, but it succeeded: {result!r}")


async def no_setup(suite: Suite) -> None:
    """Setup step that leaves the freshly set pipeline as is."""
