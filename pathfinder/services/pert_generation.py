"""PERT STAR generation through the completion provider.

Async service that:
1. Builds LLM messages from the PERT prompt templates
2. Calls the provider (TaskType.PERT_GENERATION) under an overall deadline
3. Parses the XML reply (<situation>, <task>, <action>, <result>,
   <quantified_impact>)
4. Returns a GeneratedPert dataclass

Unlike the mapper, generation never degrades: a provider failure, timeout,
or reply missing a STAR section fails the request. A partial narrative is
not a usable compliance response.
"""

import logging
import re
from dataclasses import dataclass

from pathfinder.core.config import settings
from pathfinder.core.errors import APIError
from pathfinder.models.competency import Competency
from pathfinder.models.experience import Experience
from pathfinder.prompts.pert import build_pert_prompt, build_pert_system_prompt
from pathfinder.providers import ProviderError, factory
from pathfinder.providers.llm.base import LLMMessage, LLMProvider, TaskType
from pathfinder.providers.retry import complete_with_deadline
from pathfinder.services.star_format import SECTION_NAMES, StarSections

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================


class PertGenerationError(APIError):
    """Error during PERT generation.

    Raised when the provider fails, times out, or returns a reply without
    all four STAR sections.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="PERT_GENERATION_ERROR",
            message=message,
            status_code=502,
        )


@dataclass
class GeneratedPert:
    """Parsed model output.

    Attributes:
        sections: The four STAR sections, stripped.
        quantified_impact: Measurable outcomes, "; "-separated, or None.
    """

    sections: StarSections
    quantified_impact: str | None


# =============================================================================
# XML Parsing
# =============================================================================

_SECTION_PATTERNS = {
    name: re.compile(rf"<{name}>(.*?)</{name}>", re.DOTALL) for name in SECTION_NAMES
}
_IMPACT_PATTERN = re.compile(
    r"<quantified_impact>(.*?)</quantified_impact>", re.DOTALL
)


def parse_pert_output(content: str) -> GeneratedPert:
    """Parse the tagged reply into STAR sections.

    Raises:
        PertGenerationError: If any section is missing or blank.
    """
    values: dict[str, str] = {}
    missing: list[str] = []
    for name, pattern in _SECTION_PATTERNS.items():
        match = pattern.search(content)
        text = match.group(1).strip() if match else ""
        if not text:
            missing.append(name)
        values[name] = text

    if missing:
        raise PertGenerationError(
            f"Generated response is missing STAR sections: {', '.join(missing)}"
        )

    impact_match = _IMPACT_PATTERN.search(content)
    impact = impact_match.group(1).strip() if impact_match else ""
    return GeneratedPert(
        sections=StarSections(**values), quantified_impact=impact or None
    )


# =============================================================================
# Quantified Impact
# =============================================================================

_IMPACT_TEXT_PATTERNS = (
    re.compile(r"(\d+%)\s*(increase|decrease|improvement|reduction)", re.IGNORECASE),
    re.compile(r"\$[\d,]+\s*(saved|generated|reduced)", re.IGNORECASE),
    re.compile(r"(\d+)\s*(hours|days|weeks)\s*(saved|reduced)", re.IGNORECASE),
)
_MAX_IMPACTS = 3


def extract_quantified_impact(text: str) -> str | None:
    """Pull measurable outcomes out of free text.

    Percent changes, dollar amounts saved/generated/reduced, and time saved,
    in pattern order, at most three, joined with "; ".
    """
    found: list[str] = []
    for pattern in _IMPACT_TEXT_PATTERNS:
        found.extend(m.group(0) for m in pattern.finditer(text))
    return "; ".join(found[:_MAX_IMPACTS]) or None


# =============================================================================
# Service Function
# =============================================================================


async def generate_star_sections(
    *,
    experience: Experience,
    competency: Competency,
    proficiency_level: int,
    evidence: list[str],
    provider: LLMProvider | None = None,
    timeout_seconds: float | None = None,
) -> GeneratedPert:
    """Generate STAR sections for an experience and competency.

    Args:
        experience: Source experience (title, organization, description).
        competency: Target competency.
        proficiency_level: Requested level (0, 1 or 2).
        evidence: Verbatim fragments from the competency mapping.
        provider: Completion provider. Defaults to the factory singleton.
        timeout_seconds: Overall deadline. Defaults to settings.

    Returns:
        GeneratedPert with sections and quantified impact.

    Raises:
        PertGenerationError: If the provider fails or times out, or the
            reply is empty or incomplete.
    """
    messages = [
        LLMMessage(
            role="system",
            content=build_pert_system_prompt(settings.pert_max_characters),
        ),
        LLMMessage(  # sanitized inside build_pert_prompt()
            role="user",
            content=build_pert_prompt(
                title=experience.title,
                organization=experience.organization,
                experience_text=experience.description,
                competency_id=competency.competency_id,
                sub_name=competency.sub_name,
                proficiency_level=proficiency_level,
                criteria=competency.criteria_for_level(proficiency_level),
                evidence=evidence,
            ),
        ),
    ]

    if timeout_seconds is None:
        timeout_seconds = settings.llm_timeout_seconds

    try:
        llm = provider or factory.get_llm_provider()
        response = await complete_with_deadline(
            llm,
            messages=messages,
            task=TaskType.PERT_GENERATION,
            timeout_seconds=timeout_seconds,
        )
    except ProviderError as e:
        logger.error("PERT generation failed for %s: %s", competency.competency_id, e)
        raise PertGenerationError("PERT generation failed. Please try again.") from e

    if not response.content:
        raise PertGenerationError("LLM returned empty response for PERT generation")

    generated = parse_pert_output(response.content)
    if generated.quantified_impact is None:
        combined = f"{generated.sections.action}\n{generated.sections.result}"
        generated.quantified_impact = extract_quantified_impact(combined)
    return generated
