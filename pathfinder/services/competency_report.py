"""Competency report: summary and development plan for one user.

Built from the stored assessments, the current PERT responses and the
latest compliance check. Read-only.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.models.proficiency import ProficiencyAssessment
from pathfinder.repositories.competency_repository import CompetencyRepository
from pathfinder.repositories.pert_response_repository import PertResponseRepository
from pathfinder.repositories.proficiency_repository import ProficiencyRepository
from pathfinder.schemas.cpa_pert import (
    CompetencyDetail,
    CompetencyReportRead,
    ComplianceCheckRead,
    DevelopmentItem,
    DevelopmentPlan,
    ReportSummary,
)
from pathfinder.services.compliance_checker import get_latest_check

# Level 1 competencies with less supporting evidence than this go in the
# short-term plan
_SHORT_TERM_EVIDENCE = 3


def development_plan(assessments: list[ProficiencyAssessment]) -> DevelopmentPlan:
    """Bucket assessments by urgency."""
    immediate: list[DevelopmentItem] = []
    short_term: list[DevelopmentItem] = []
    for assessment in assessments:
        if assessment.current_level == 0:
            immediate.append(
                DevelopmentItem(
                    competency_id=assessment.competency_id,
                    action="Gain initial experience",
                    target="Level 1",
                )
            )
        elif (
            assessment.current_level == 1
            and assessment.evidence_count < _SHORT_TERM_EVIDENCE
        ):
            short_term.append(
                DevelopmentItem(
                    competency_id=assessment.competency_id,
                    action="Build additional evidence",
                    target="Level 2",
                )
            )
    return DevelopmentPlan(immediate=immediate, short_term=short_term)


async def build_competency_report(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
) -> CompetencyReportRead:
    """Assemble the competency report for a user.

    Competencies that have never been assessed are left out; run the
    assessor first for a complete picture.
    """
    assessments = await ProficiencyRepository.list_for_user(db, user_id=user_id)
    responses = await PertResponseRepository.list_current_for_user(db, user_id=user_id)
    latest = await get_latest_check(db, user_id=user_id)
    catalog = {
        c.competency_id: c
        for c in await CompetencyRepository.list_all(db, include_inactive=True)
    }

    details = [
        CompetencyDetail(
            competency_id=a.competency_id,
            sub_name=catalog[a.competency_id].sub_name,
            category=catalog[a.competency_id].category,
            current_level=a.current_level,
            target_level=a.target_level,
            evidence_count=a.evidence_count,
        )
        for a in assessments
        if a.competency_id in catalog
    ]

    return CompetencyReportRead(
        generated_at=datetime.now(UTC),
        summary=ReportSummary(
            total_competencies=len(assessments),
            level2_achieved=sum(1 for a in assessments if a.current_level == 2),
            level1_achieved=sum(1 for a in assessments if a.current_level == 1),
            level0_only=sum(1 for a in assessments if a.current_level == 0),
            total_pert_responses=len(responses),
            evr_compliant=bool(latest and latest.is_compliant),
        ),
        competency_details=details,
        development_plan=development_plan(assessments),
        latest_check=ComplianceCheckRead.model_validate(latest) if latest else None,
    )
