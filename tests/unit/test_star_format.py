"""Tests for STAR text rendering and parsing.

The rendered layout is a fixed contract:
SITUATION:\\n{s}\\n\\nTASK:\\n{t}\\n\\nACTION:\\n{a}\\n\\nRESULT:\\n{r}
"""

import pytest

from pathfinder.core.errors import ValidationError
from pathfinder.services.star_format import (
    StarSections,
    parse_star_text,
    render_checked,
    render_star_text,
    validate_sections,
)

SECTIONS = StarSections(
    situation="Quarter-end close was late.",
    task="Fix the reconciliation backlog.",
    action="Automated bank reconciliations.",
    result="Close finished two days earlier.",
)


class TestRenderStarText:
    """Tests for render_star_text."""

    def test_renders_exact_layout(self) -> None:
        """Headers, newlines and order must match byte for byte."""
        assert render_star_text(SECTIONS) == (
            "SITUATION:\nQuarter-end close was late.\n\n"
            "TASK:\nFix the reconciliation backlog.\n\n"
            "ACTION:\nAutomated bank reconciliations.\n\n"
            "RESULT:\nClose finished two days earlier."
        )

    def test_round_trips_through_parse(self) -> None:
        """Parsing the rendered text recovers the original sections."""
        assert parse_star_text(render_star_text(SECTIONS)) == SECTIONS

    def test_round_trips_multiline_sections(self) -> None:
        """Single newlines inside a section survive the round trip."""
        sections = StarSections(
            situation="Line one\nline two",
            task="Task",
            action="Step 1\nStep 2",
            result="Done",
        )

        assert parse_star_text(render_star_text(sections)) == sections


class TestParseStarText:
    """Tests for parse_star_text."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "Just a paragraph of prose.",
            "SITUATION:\nA\n\nACTION:\nB\n\nTASK:\nC\n\nRESULT:\nD",
            "situation:\nA\n\ntask:\nB\n\naction:\nC\n\nresult:\nD",
        ],
    )
    def test_rejects_malformed_text(self, text: str) -> None:
        """Missing, reordered or lowercase headers are a validation error."""
        with pytest.raises(ValidationError):
            parse_star_text(text)


class TestValidateSections:
    """Tests for validate_sections."""

    def test_names_every_blank_section(self) -> None:
        """Details list one entry per empty section."""
        sections = StarSections(situation="S", task=" ", action="", result="R")

        with pytest.raises(ValidationError) as exc_info:
            validate_sections(sections)

        assert exc_info.value.details == [
            {"field": "task", "error": "EMPTY"},
            {"field": "action", "error": "EMPTY"},
        ]


class TestRenderChecked:
    """Tests for render_checked."""

    def test_returns_text_and_length(self) -> None:
        """Character count equals the rendered length."""
        text, count = render_checked(SECTIONS)

        assert text == render_star_text(SECTIONS)
        assert count == len(text)

    def test_accepts_exactly_the_ceiling(self) -> None:
        """A response of exactly 5000 characters is allowed."""
        overhead = len(render_star_text(StarSections("", "", "", "")))
        sections = StarSections("S", "T", "A", "R" * (5000 - overhead - 3))

        _text, count = render_checked(sections)

        assert count == 5000

    def test_rejects_one_over_the_ceiling(self) -> None:
        """5001 characters is rejected, not truncated."""
        overhead = len(render_star_text(StarSections("", "", "", "")))
        sections = StarSections("S", "T", "A", "R" * (5001 - overhead - 3))

        with pytest.raises(ValidationError) as exc_info:
            render_checked(sections)

        detail = exc_info.value.details[0]
        assert detail["error"] == "TOO_LONG"
        assert detail["character_count"] == 5001
        assert detail["max_characters"] == 5000

    def test_honours_lower_configured_ceiling(self) -> None:
        """A lower ceiling applies when passed explicitly."""
        with pytest.raises(ValidationError):
            render_checked(SECTIONS, max_characters=50)
