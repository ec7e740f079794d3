"""EVR compliance checker.

Evaluates a user's stored proficiency assessments and supporting
experiences against the Experience Verification Route rules:

(a) at least 8 HIGH/MEDIUM competencies at level 1 or above
(b) at least 2 of those at level 2
(c) the supporting experiences span at least 30 months
(d) a supporting experience is ongoing or ended within the last 12 months

Supporting experiences are those behind mappings (relevance at or above the
level 1 threshold) or current responses for the qualifying competencies.
Spans and recency are measured on experience dates.

Each run inserts a new immutable ComplianceCheck. Failing is a normal
result, not an error. Mappings, responses and assessments are only read.
"""

import calendar
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.core.config import Settings, settings
from pathfinder.core.errors import ValidationError
from pathfinder.models.compliance import CHECK_TYPES, ComplianceCheck
from pathfinder.models.experience import Experience
from pathfinder.repositories.competency_repository import CompetencyRepository
from pathfinder.repositories.compliance_repository import ComplianceRepository
from pathfinder.repositories.experience_repository import ExperienceRepository
from pathfinder.repositories.mapping_repository import MappingRepository
from pathfinder.repositories.pert_response_repository import PertResponseRepository
from pathfinder.repositories.proficiency_repository import ProficiencyRepository

logger = logging.getLogger(__name__)

_EVR_RELEVANT = ("HIGH", "MEDIUM")

# A check result stays valid for this long
_VALIDITY_MONTHS = 12


# =============================================================================
# Rules
# =============================================================================


@dataclass(frozen=True)
class EvrRules:
    """Thresholds for the EVR rules."""

    min_competencies: int = 8
    min_level2: int = 2
    span_months: int = 30
    recency_months: int = 12
    evidence_relevance: float = 0.7

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "EvrRules":
        config = config or settings
        return cls(
            min_competencies=config.evr_min_competencies,
            min_level2=config.evr_min_level2,
            span_months=config.evr_span_months,
            recency_months=config.evr_recency_months,
            evidence_relevance=config.pert_level1_threshold,
        )


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by whole months, clamping to the end of short months."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def months_between(start: date, end: date) -> int:
    """Whole months from ``start`` to ``end`` (0 if end precedes start)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day and add_months(start, months) > end:
        months -= 1
    return max(months, 0)


@dataclass
class ComplianceEvaluation:
    """Outcome of the EVR rules before persistence."""

    is_compliant: bool
    total_competencies: int
    competencies_met: int
    level2_count: int
    missing_competencies: list[str]
    thirty_month_start: date | None
    thirty_month_end: date | None
    thirty_month_rule_met: bool
    twelve_month_rule_met: bool
    recommendations: list[str] = field(default_factory=list)


def evaluate(
    *,
    relevant_ids: Sequence[str],
    levels: dict[str, int],
    experiences: Sequence[Experience],
    as_of: date,
    rules: EvrRules,
) -> ComplianceEvaluation:
    """Apply the EVR rules.

    Args:
        relevant_ids: HIGH/MEDIUM competency identifiers in catalog order.
        levels: Current level per competency (missing means 0).
        experiences: Supporting experiences for the qualifying competencies.
        as_of: Evaluation date.
        rules: Thresholds.

    Returns:
        ComplianceEvaluation with every rule's result.
    """
    qualifying = [cid for cid in relevant_ids if levels.get(cid, 0) >= 1]
    level2 = [cid for cid in qualifying if levels[cid] >= 2]
    missing = [cid for cid in relevant_ids if levels.get(cid, 0) < 1]

    span_start: date | None = None
    span_end: date | None = None
    if experiences:
        span_start = min(e.start_date for e in experiences)
        span_end = max(min(e.end_date or as_of, as_of) for e in experiences)

    span_met = (
        span_start is not None
        and span_end is not None
        and months_between(span_start, span_end) >= rules.span_months
    )
    recency_cutoff = add_months(as_of, -rules.recency_months)
    recency_met = any(
        e.end_date is None or e.end_date >= recency_cutoff for e in experiences
    )

    evaluation = ComplianceEvaluation(
        is_compliant=(
            len(qualifying) >= rules.min_competencies
            and len(level2) >= rules.min_level2
            and span_met
            and recency_met
        ),
        total_competencies=len(relevant_ids),
        competencies_met=len(qualifying),
        level2_count=len(level2),
        missing_competencies=missing,
        thirty_month_start=span_start,
        thirty_month_end=span_end,
        thirty_month_rule_met=span_met,
        twelve_month_rule_met=recency_met,
    )
    evaluation.recommendations = recommendations(evaluation, rules)
    return evaluation


def recommendations(evaluation: ComplianceEvaluation, rules: EvrRules) -> list[str]:
    """Next steps derived from the rules that failed."""
    items: list[str] = []
    if evaluation.level2_count < rules.min_level2:
        needed = rules.min_level2 - evaluation.level2_count
        items.append(
            f"Focus on advancing {needed} competencies from Level 1 to Level 2"
        )
    if evaluation.competencies_met < rules.min_competencies:
        needed = rules.min_competencies - evaluation.competencies_met
        items.append(f"Gain experience in {needed} additional competency areas")
    if evaluation.missing_competencies:
        items.append(
            "Develop practical experience in "
            f"{len(evaluation.missing_competencies)} competencies currently at "
            "Level 0"
        )
    if not evaluation.thirty_month_rule_met:
        items.append(
            f"Accumulate at least {rules.span_months} months of supporting "
            "experience"
        )
    if not evaluation.twelve_month_rule_met:
        items.append(
            f"Record relevant experience from the last {rules.recency_months} months"
        )
    return items


# =============================================================================
# Service Functions
# =============================================================================


async def check_compliance(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    check_type: str,
    as_of: date | None = None,
    rules: EvrRules | None = None,
) -> ComplianceCheck:
    """Evaluate the EVR rules and record the outcome.

    Uses the stored proficiency assessments as they are; callers that want
    fresh levels run the assessor first.

    Args:
        db: Async database session. The caller commits.
        user_id: User to check.
        check_type: "initial", "annual" or "final".
        as_of: Evaluation date, also recorded as the check date. Defaults to
            today (UTC).
        rules: Thresholds. Defaults to settings.

    Returns:
        The new ComplianceCheck row.

    Raises:
        ValidationError: Unknown check type.
    """
    if check_type not in CHECK_TYPES:
        raise ValidationError(f"check_type must be one of: {', '.join(CHECK_TYPES)}")
    rules = rules or EvrRules.from_settings()
    now = datetime.now(UTC)
    as_of = as_of or now.date()

    competencies = await CompetencyRepository.list_all(db)
    relevant_ids = [
        c.competency_id for c in competencies if c.evr_relevance in _EVR_RELEVANT
    ]
    assessments = await ProficiencyRepository.list_for_user(db, user_id=user_id)
    levels = {a.competency_id: a.current_level for a in assessments}
    qualifying = {cid for cid in relevant_ids if levels.get(cid, 0) >= 1}

    experience_ids: set[uuid.UUID] = set()
    mappings = await MappingRepository.list_for_user(
        db, user_id=user_id, min_relevance=rules.evidence_relevance
    )
    experience_ids.update(
        m.experience_id for m in mappings if m.competency_id in qualifying
    )
    responses = await PertResponseRepository.list_current_for_user(db, user_id=user_id)
    experience_ids.update(
        r.experience_id for r in responses if r.competency_id in qualifying
    )
    experiences = await ExperienceRepository.get_many_for_user(
        db, experience_ids, user_id=user_id
    )

    evaluation = evaluate(
        relevant_ids=relevant_ids,
        levels=levels,
        experiences=experiences,
        as_of=as_of,
        rules=rules,
    )
    check = await ComplianceRepository.create(
        db,
        ComplianceCheck(
            user_id=user_id,
            check_type=check_type,
            # as_of date at the current time of day
            check_date=datetime.combine(as_of, now.timetz()),
            is_compliant=evaluation.is_compliant,
            total_competencies=evaluation.total_competencies,
            competencies_met=evaluation.competencies_met,
            level2_count=evaluation.level2_count,
            missing_competencies=evaluation.missing_competencies,
            recommendations=evaluation.recommendations,
            thirty_month_start=evaluation.thirty_month_start,
            thirty_month_end=evaluation.thirty_month_end,
            thirty_month_rule_met=evaluation.thirty_month_rule_met,
            twelve_month_rule_met=evaluation.twelve_month_rule_met,
            expiry_date=add_months(as_of, _VALIDITY_MONTHS),
        ),
    )
    logger.info(
        "EVR %s check for user %s: compliant=%s (%d/%d met, %d at level 2)",
        check_type,
        user_id,
        evaluation.is_compliant,
        evaluation.competencies_met,
        evaluation.total_competencies,
        evaluation.level2_count,
    )
    return check


async def get_latest_check(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
) -> ComplianceCheck | None:
    """Most recent check for a user, or None."""
    checks = await ComplianceRepository.list_for_user(db, user_id=user_id, limit=1)
    return checks[0] if checks else None


async def list_checks(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
) -> list[ComplianceCheck]:
    """All checks for a user, newest first."""
    return await ComplianceRepository.list_for_user(db, user_id=user_id)
