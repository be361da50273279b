"""Unit tests for dashboard status colors."""

from __future__ import annotations

import pytest

from wats.palette import (
    AMBER,
    BLUE,
    BROWN,
    GREEN,
    GREY,
    RED,
    STATUS_COLORS,
    YELLOW,
    Color,
    expected_banner,
    palette,
    status_color,
)


class TestColorParse:
    """Tests for Color.parse."""

    @pytest.mark.parametrize(
        "value",
        [
            "#11c560",
            "#11C560",
            "rgb(17, 197, 96)",
            "rgb(17 197 96)",
            "rgba(17, 197, 96, 1)",
            "rgb(17 197 96 / 50%)",
            " green ",
        ],
    )
    def test_equivalent_forms(self, value):
        """Test every CSS form of the same color compares equal."""
        assert Color.parse(value) == GREEN

    def test_short_hex(self):
        assert Color.parse("#fff") == Color(255, 255, 255)

    def test_hex_with_alpha(self):
        color = Color.parse("#11c56080")
        assert color == GREEN
        assert color.alpha == pytest.approx(128 / 255)

    def test_rgba_alpha_kept(self):
        assert Color.parse("rgba(0, 0, 0, 0.25)").alpha == 0.25

    def test_percent_channels(self):
        assert Color.parse("rgb(100%, 0%, 50%)") == Color(255, 0, 128)

    def test_color_passes_through(self):
        assert Color.parse(RED) is RED

    @pytest.mark.parametrize("value", ["", "transparent", "#12345", "rgb(1, 2)", "rgb(a, b, c)"])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Unrecognized color"):
            Color.parse(value)

    def test_hex_and_str(self):
        assert BLUE.hex == "#3498db"
        assert str(Color.parse("rgb(52, 152, 219)")) == "#3498db"


class TestPalette:
    """Tests for the palette constants."""

    def test_palette_values(self):
        assert palette["grey"] == Color.parse("#9b9b9b")
        assert palette["amber"] == Color.parse("#f5a623")
        assert palette["brown"] == Color.parse("#8b572a")

    def test_palette_is_read_only(self):
        with pytest.raises(TypeError):
            palette["green"] = RED

    def test_status_colors(self):
        assert status_color("succeeded") == GREEN
        assert status_color("failed") == RED
        assert status_color("errored") == AMBER
        assert status_color("aborted") == BROWN
        assert status_color("paused") == BLUE
        assert status_color("pending") == GREY
        assert status_color("started") == YELLOW
        assert set(STATUS_COLORS) == {
            "pending",
            "paused",
            "succeeded",
            "failed",
            "errored",
            "aborted",
            "started",
        }

    def test_unknown_status(self):
        with pytest.raises(KeyError):
            status_color("bogus")


class TestExpectedBanner:
    """Tests for expected_banner."""

    @pytest.mark.parametrize(
        "statuses,expected",
        [
            ([], GREY),
            (["pending", "pending"], GREY),
            (["succeeded", "pending"], GREEN),
            (["succeeded", "failed"], RED),
            (["succeeded", "errored"], AMBER),
            (["aborted", "succeeded"], BROWN),
            (["errored", "failed"], RED),
            (["aborted", "errored"], AMBER),
        ],
    )
    def test_worst_status_wins(self, statuses, expected):
        assert expected_banner(statuses) == expected

    def test_paused_overrides_everything(self):
        assert expected_banner(["failed"], paused=True) == BLUE
