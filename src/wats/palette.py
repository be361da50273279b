"""Dashboard status colors.

Computed styles come back as `rgb(...)`/`rgba(...)` while the palette is
written in hex, so colors are always compared after parsing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType

_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_FUNC_RE = re.compile(r"^rgba?\((.*)\)$", re.IGNORECASE)


@dataclass(frozen=True)
class Color:
    """An RGB color. Alpha is carried but not part of equality."""

    red: int
    green: int
    blue: int
    alpha: float = field(default=1.0, compare=False)

    @classmethod
    def parse(cls, value: str | Color) -> Color:
        """Parse a CSS color.

        Accepts `#rgb`, `#rrggbb`, `#rrggbbaa`, `rgb(r, g, b)`,
        `rgba(r, g, b, a)`, the space-separated `rgb(r g b / a)` form and
        palette names such as `green`.

        Raises:
            ValueError: If the value is not a recognized color.
        """
        if isinstance(value, Color):
            return value

        text = value.strip()
        if text.lower() in palette:
            return palette[text.lower()]

        match = _HEX_RE.match(text)
        if match:
            digits = match.group(1)
            if len(digits) == 3:
                digits = "".join(c * 2 for c in digits)
            alpha = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
            return cls(
                int(digits[0:2], 16),
                int(digits[2:4], 16),
                int(digits[4:6], 16),
                alpha,
            )

        match = _FUNC_RE.match(text)
        if match:
            return cls._from_components(match.group(1), value)

        raise ValueError(f"Unrecognized color: {value!r}")

    @classmethod
    def _from_components(cls, body: str, original: str) -> Color:
        alpha_part = None
        if "/" in body:
            body, alpha_part = body.split("/", 1)
        parts = [p for p in re.split(r"[\s,]+", body.strip()) if p]
        if alpha_part is None and len(parts) == 4:
            alpha_part = parts.pop()
        if len(parts) != 3:
            raise ValueError(f"Unrecognized color: {original!r}")

        channels = [_channel(p, original) for p in parts]
        alpha = _alpha(alpha_part, original) if alpha_part is not None else 1.0
        return cls(channels[0], channels[1], channels[2], alpha)

    @property
    def hex(self) -> str:
        return f"#{self.red:02x}{self.green:02x}{self.blue:02x}"

    def __str__(self) -> str:
        return self.hex


def _channel(part: str, original: str) -> int:
    try:
        if part.endswith("%"):
            value = round(float(part[:-1]) * 255 / 100)
        else:
            value = round(float(part))
    except ValueError as e:
        raise ValueError(f"Unrecognized color: {original!r}") from e
    return max(0, min(255, value))


def _alpha(part: str, original: str) -> float:
    part = part.strip()
    try:
        if part.endswith("%"):
            value = float(part[:-1]) / 100
        else:
            value = float(part)
    except ValueError as e:
        raise ValueError(f"Unrecognized color: {original!r}") from e
    return max(0.0, min(1.0, value))


def _hex(value: str) -> Color:
    digits = value.lstrip("#")
    return Color(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


GREY = _hex("#9b9b9b")
BLUE = _hex("#3498db")
GREEN = _hex("#11c560")
RED = _hex("#ed4b35")
AMBER = _hex("#f5a623")
BROWN = _hex("#8b572a")
YELLOW = _hex("#fad43b")

palette = MappingProxyType(
    {
        "grey": GREY,
        "blue": BLUE,
        "green": GREEN,
        "red": RED,
        "amber": AMBER,
        "brown": BROWN,
        "yellow": YELLOW,
    }
)

# Build/pipeline status -> banner color
STATUS_COLORS = MappingProxyType(
    {
        "pending": GREY,
        "paused": BLUE,
        "succeeded": GREEN,
        "failed": RED,
        "errored": AMBER,
        "aborted": BROWN,
        "started": YELLOW,
    }
)

# Worst first; the first status present among a pipeline's jobs wins
_BANNER_PRECEDENCE = ("failed", "errored", "aborted", "succeeded")


def status_color(status: str) -> Color:
    """Look up the banner color of a single status.

    Raises:
        KeyError: If the status is not part of the palette.
    """
    return STATUS_COLORS[status]


def expected_banner(job_statuses: list[str], paused: bool = False) -> Color:
    """Banner color for a pipeline, given the latest finished build status of each job.

    Jobs with no finished build are passed as "pending" (or omitted).
    """
    if paused:
        return BLUE
    for status in _BANNER_PRECEDENCE:
        if status in job_statuses:
            return STATUS_COLORS[status]
    return GREY
