"""Proficiency assessor: derives current vs. target level per competency.

The assessment is a cache over two signals:
- CompetencyMappings with relevance at or above the level 1 threshold
- Current PertResponses for the competency

current_level is the highest level claimed by a current, compliant
response; failing that, the highest suggested level among validated
mappings; failing that, 0. Recomputing with unchanged inputs yields the
same row, and the stored row (assessment_date included) is left untouched.
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.core.errors import ValidationError
from pathfinder.models.competency import Competency
from pathfinder.models.competency_mapping import CompetencyMapping
from pathfinder.models.pert_response import PertResponse
from pathfinder.models.proficiency import ProficiencyAssessment
from pathfinder.repositories.competency_repository import CompetencyRepository
from pathfinder.repositories.mapping_repository import MappingRepository
from pathfinder.repositories.pert_response_repository import PertResponseRepository
from pathfinder.repositories.proficiency_repository import ProficiencyRepository
from pathfinder.services.competency_catalog import get_competency
from pathfinder.services.scoring import ScoringPolicy

logger = logging.getLogger(__name__)

_VALID_LEVELS = (0, 1, 2)


@dataclass(frozen=True)
class AssessmentValues:
    """Computed assessment, before persistence."""

    current_level: int
    target_level: int
    evidence_count: int
    development_notes: str
    next_steps: list[str]

    def as_columns(self) -> dict:
        return {
            "current_level": self.current_level,
            "target_level": self.target_level,
            "evidence_count": self.evidence_count,
            "development_notes": self.development_notes,
            "next_steps": list(self.next_steps),
        }


def default_target_level(competency: Competency) -> int:
    """EVR-implied requirement: level 2 for HIGH Technical, else level 1."""
    if competency.category == "Technical" and competency.evr_relevance == "HIGH":
        return 2
    return 1


def development_notes(
    current_level: int, target_level: int, competency: Competency
) -> list[str]:
    """Development areas for closing the gap to the next level."""
    notes: list[str] = []
    if current_level >= target_level:
        notes.append(f"Target level {target_level} met")
    if current_level < 2:
        next_level = current_level + 1
        criteria = competency.criteria_for_level(next_level)
        notes.append(f"Progress to Level {next_level}: {criteria}")
    if current_level == 0:
        notes.append("Gain hands-on experience with this competency")
        notes.append("Seek mentorship or training opportunities")
    return notes


def next_steps(current_level: int) -> list[str]:
    """Concrete actions for the current level."""
    steps: list[str] = []
    if current_level == 0:
        steps.append("Identify projects or tasks that involve this competency")
        steps.append("Request involvement in relevant initiatives")
    elif current_level == 1:
        steps.append("Take on leadership roles in this competency area")
        steps.append("Mentor others to demonstrate advanced proficiency")
    steps.append("Document specific examples and quantified impacts")
    return steps


def compute_assessment(
    competency: Competency,
    mappings: Sequence[CompetencyMapping],
    responses: Sequence[PertResponse],
    *,
    target_level: int | None = None,
) -> AssessmentValues:
    """Derive assessment values from already-filtered signals.

    Args:
        competency: Competency being assessed.
        mappings: Mappings for the pair at or above the evidence threshold.
        responses: Current responses for the pair.
        target_level: Caller override; defaults to the EVR requirement.

    Returns:
        AssessmentValues. Pure function of its inputs.
    """
    compliant_levels = [r.proficiency_level for r in responses if r.is_compliant]
    validated_levels = [m.suggested_proficiency for m in mappings if m.is_validated]
    if compliant_levels:
        current = max(compliant_levels)
    elif validated_levels:
        current = max(validated_levels)
    else:
        current = 0

    if target_level is None:
        target_level = default_target_level(competency)
    experiences = {m.experience_id for m in mappings}
    experiences.update(r.experience_id for r in responses)

    notes = development_notes(current, target_level, competency)
    return AssessmentValues(
        current_level=current,
        target_level=target_level,
        evidence_count=len(experiences),
        development_notes="\n".join(notes),
        next_steps=next_steps(current),
    )


async def assess_proficiency(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    competency_id: str,
    target_level: int | None = None,
    policy: ScoringPolicy | None = None,
) -> ProficiencyAssessment:
    """Recompute and store the assessment for one (user, competency) pair.

    Without ``target_level`` a previously stored target is kept; a first
    assessment starts from the EVR default.

    Raises:
        NotFoundError: If the competency does not exist.
        ValidationError: If target_level is not 0, 1 or 2.
    """
    if target_level is not None and target_level not in _VALID_LEVELS:
        raise ValidationError("target_level must be 0, 1 or 2")

    competency = await get_competency(db, competency_id)
    return await _assess(
        db,
        user_id=user_id,
        competency=competency,
        target_level=target_level,
        policy=policy or ScoringPolicy.from_settings(),
    )


async def assess_all(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    policy: ScoringPolicy | None = None,
) -> list[ProficiencyAssessment]:
    """Recompute assessments for every active competency, in catalog order.

    Stored targets are kept.
    """
    policy = policy or ScoringPolicy.from_settings()
    competencies = await CompetencyRepository.list_all(db)
    return [
        await _assess(
            db, user_id=user_id, competency=c, target_level=None, policy=policy
        )
        for c in competencies
    ]


async def list_assessments(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
) -> list[ProficiencyAssessment]:
    """Stored assessments for a user, by competency identifier."""
    return await ProficiencyRepository.list_for_user(db, user_id=user_id)


async def _assess(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    competency: Competency,
    target_level: int | None,
    policy: ScoringPolicy,
) -> ProficiencyAssessment:
    if target_level is None:
        stored = await ProficiencyRepository.get(
            db, user_id=user_id, competency_id=competency.competency_id
        )
        if stored is not None:
            target_level = stored.target_level
    mappings = await MappingRepository.list_for_user(
        db,
        user_id=user_id,
        competency_id=competency.competency_id,
        min_relevance=policy.level1_threshold,
    )
    responses = await PertResponseRepository.list_current_for_user(
        db, user_id=user_id, competency_id=competency.competency_id
    )
    values = compute_assessment(
        competency, mappings, responses, target_level=target_level
    )
    logger.debug(
        "Assessed %s for user %s: level %d of %d",
        competency.competency_id,
        user_id,
        values.current_level,
        values.target_level,
    )
    return await ProficiencyRepository.save(
        db,
        user_id=user_id,
        competency_id=competency.competency_id,
        values=values.as_columns(),
    )
