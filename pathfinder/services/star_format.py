"""STAR text rendering and parsing.

The rendered form is relied on by exports and reports and must be
reproduced byte for byte:

    SITUATION:\\n{s}\\n\\nTASK:\\n{t}\\n\\nACTION:\\n{a}\\n\\nRESULT:\\n{r}

render_star_text and parse_star_text are inverses for any sections that do
not themselves contain the header lines.
"""

import re
from dataclasses import dataclass

from pathfinder.core.errors import ValidationError
from pathfinder.models.pert_response import MAX_RESPONSE_CHARACTERS

_STAR_TEMPLATE = (
    "SITUATION:\n{situation}\n\n"
    "TASK:\n{task}\n\n"
    "ACTION:\n{action}\n\n"
    "RESULT:\n{result}"
)

_STAR_PATTERN = re.compile(
    r"^SITUATION:\n(.*?)\n\nTASK:\n(.*?)\n\nACTION:\n(.*?)\n\nRESULT:\n(.*)$",
    re.DOTALL,
)

SECTION_NAMES = ("situation", "task", "action", "result")


@dataclass(frozen=True)
class StarSections:
    """The four sections of a STAR narrative."""

    situation: str
    task: str
    action: str
    result: str

    def as_dict(self) -> dict[str, str]:
        return {
            "situation": self.situation,
            "task": self.task,
            "action": self.action,
            "result": self.result,
        }


def render_star_text(sections: StarSections) -> str:
    """Concatenate sections under their literal headers."""
    return _STAR_TEMPLATE.format(**sections.as_dict())


def parse_star_text(text: str) -> StarSections:
    """Split rendered STAR text back into sections.

    Raises:
        ValidationError: If ``text`` is not in the rendered format.
    """
    match = _STAR_PATTERN.match(text)
    if match is None:
        raise ValidationError(
            "Response text must contain SITUATION, TASK, ACTION and RESULT sections"
        )
    return StarSections(*match.groups())


def validate_sections(sections: StarSections) -> None:
    """Reject empty sections.

    Raises:
        ValidationError: Naming every blank section.
    """
    blank = [name for name, value in sections.as_dict().items() if not value.strip()]
    if blank:
        raise ValidationError(
            "STAR sections must not be empty",
            details=[{"field": name, "error": "EMPTY"} for name in blank],
        )


def render_checked(
    sections: StarSections,
    *,
    max_characters: int = MAX_RESPONSE_CHARACTERS,
) -> tuple[str, int]:
    """Render sections and enforce the character ceiling.

    Over-long text is rejected, never truncated.

    Returns:
        Tuple of (response_text, character_count).

    Raises:
        ValidationError: If a section is empty or the rendered text exceeds
            ``max_characters``.
    """
    validate_sections(sections)
    text = render_star_text(sections)
    count = len(text)
    if count > max_characters:
        raise ValidationError(
            f"Response is {count} characters; the maximum is {max_characters}. "
            "Shorten the sections or request a lower proficiency level.",
            details=[
                {
                    "field": "response_text",
                    "error": "TOO_LONG",
                    "character_count": count,
                    "max_characters": max_characters,
                }
            ],
        )
    return text, count
