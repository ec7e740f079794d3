"""CPA/PERT API router.

Competency catalog, experience mapping, proficiency assessment, PERT
response versioning, EVR compliance checks and the competency report.
All user-owned resources are filtered by the current user; a resource
belonging to someone else is reported as not found.

Endpoints:
- /competencies - Catalog (read-only)
- /experiences/{id}/mappings - Map an experience / list its mappings
- /mappings - Batch mapping and manual validation
- /proficiency - Assessments
- /responses - PERT generation and edits
- /competencies/{id}/responses - Current version and history
- /compliance-checks - EVR checks
- /report - Competency report
"""

import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from pathfinder.api.deps import CurrentUserId, DbSession
from pathfinder.core.config import settings
from pathfinder.core.errors import NotFoundError
from pathfinder.core.rate_limiting import limiter
from pathfinder.core.responses import DataResponse
from pathfinder.repositories.experience_repository import ExperienceRepository
from pathfinder.schemas.cpa_pert import (
    CompetencyMappingRead,
    CompetencyRead,
    CompetencyReportRead,
    ComplianceCheckRead,
    PertResponseRead,
    ProficiencyAssessmentRead,
)
from pathfinder.services import (
    competency_catalog,
    competency_mapper,
    compliance_checker,
    pert_response_service,
    proficiency_assessor,
)
from pathfinder.services.competency_report import build_competency_report
from pathfinder.services.scoring import LLMScorer
from pathfinder.services.star_format import StarSections, parse_star_text

_MAX_SECTION_LENGTH = 5000
"""No single section can exceed the rendered response ceiling."""

_MAX_BATCH_SIZE = 50
"""Upper bound on experiences mapped in one request."""

_MAX_EVIDENCE_ITEM_LENGTH = 1000

SectionStr = Annotated[str, StringConstraints(max_length=_MAX_SECTION_LENGTH)]
EvidenceStr = Annotated[str, StringConstraints(max_length=_MAX_EVIDENCE_ITEM_LENGTH)]

router = APIRouter()


# =============================================================================
# Request Schemas
# =============================================================================


class BatchMappingRequest(BaseModel):
    """Request body for mapping several experiences at once."""

    model_config = ConfigDict(extra="forbid")

    experience_ids: list[uuid.UUID] = Field(
        ..., min_length=1, max_length=_MAX_BATCH_SIZE
    )


class ValidateMappingRequest(BaseModel):
    """Request body for a manual mapping review."""

    model_config = ConfigDict(extra="forbid")

    is_validated: bool
    mapping_method: Literal["AI_ASSISTED", "USER_EDITED", "MENTOR_VALIDATED"] = (
        "USER_EDITED"
    )
    validated_by: str | None = Field(default=None, max_length=255)
    relevance_score: float | None = Field(default=None, ge=0.0, le=1.0)
    evidence_extracted: list[EvidenceStr] | None = Field(default=None, max_length=5)


class AssessProficiencyRequest(BaseModel):
    """Request body for assessing a single competency."""

    model_config = ConfigDict(extra="forbid")

    target_level: int | None = Field(default=None, ge=0, le=2)


class GenerateResponseRequest(BaseModel):
    """Request body for generating a PERT response."""

    model_config = ConfigDict(extra="forbid")

    experience_id: uuid.UUID
    competency_id: str = Field(..., min_length=1, max_length=10)
    proficiency_level: int = Field(..., ge=0, le=2)
    changed_by: str | None = Field(default=None, max_length=255)


class UpdateResponseRequest(BaseModel):
    """Request body for editing a PERT response.

    Either all four sections, or the full rendered ``response_text`` with
    SITUATION/TASK/ACTION/RESULT headers.
    """

    model_config = ConfigDict(extra="forbid")

    situation: SectionStr | None = None
    task: SectionStr | None = None
    action: SectionStr | None = None
    result: SectionStr | None = None
    response_text: str | None = Field(default=None, max_length=_MAX_SECTION_LENGTH)
    quantified_impact: str | None = Field(default=None, max_length=1000)
    changed_by: str | None = Field(default=None, max_length=255)
    change_reason: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_one_form(self) -> "UpdateResponseRequest":
        sections = (self.situation, self.task, self.action, self.result)
        provided = [s is not None for s in sections]
        if self.response_text is not None:
            if any(provided):
                raise ValueError("Provide either response_text or sections, not both")
        elif not all(provided):
            raise ValueError(
                "situation, task, action and result are all required "
                "when response_text is omitted"
            )
        return self

    def to_sections(self) -> StarSections:
        if self.response_text is not None:
            return parse_star_text(self.response_text)
        # check_one_form guarantees all four are set
        return StarSections(
            situation=self.situation or "",
            task=self.task or "",
            action=self.action or "",
            result=self.result or "",
        )


class ComplianceCheckRequest(BaseModel):
    """Request body for running an EVR compliance check."""

    model_config = ConfigDict(extra="forbid")

    check_type: Literal["initial", "annual", "final"] = "initial"


# =============================================================================
# Competencies
# =============================================================================


@router.get("/competencies")
async def list_competencies(
    db: DbSession,
    category: Literal["Technical", "Enabling"] | None = None,
    evr_relevance: Literal["HIGH", "MEDIUM", "LOW"] | None = None,
) -> DataResponse[list[CompetencyRead]]:
    """List active competencies in catalog order.

    Args:
        db: Database session.
        category: Optional category filter.
        evr_relevance: Optional EVR relevance filter.

    Returns:
        Competencies ordered by category, area code and sub-code.
    """
    competencies = await competency_catalog.list_competencies(
        db, category=category, evr_relevance=evr_relevance
    )
    return DataResponse(data=[CompetencyRead.model_validate(c) for c in competencies])


@router.get("/competencies/{competency_id}")
async def get_competency(
    competency_id: str,
    db: DbSession,
) -> DataResponse[CompetencyRead]:
    """Get one competency.

    Raises:
        NotFoundError: If the competency is not in the catalog.
    """
    competency = await competency_catalog.get_competency(db, competency_id)
    return DataResponse(data=CompetencyRead.model_validate(competency))


# =============================================================================
# Mappings
# =============================================================================


@router.post("/experiences/{experience_id}/mappings")
@limiter.limit(settings.rate_limit_llm)
async def map_experience(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    experience_id: uuid.UUID,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[list[CompetencyMappingRead]]:
    """Score an experience against the catalog and store strong matches.

    Security: Rate limited to prevent LLM cost abuse. Falls back to
    keyword scoring when the AI provider is unavailable.

    Args:
        request: HTTP request (required by rate limiter).
        experience_id: Experience to map.
        user_id: Current user ID from auth.
        db: Database session.

    Returns:
        Stored mappings, strongest first.

    Raises:
        NotFoundError: If the experience does not exist for this user.
    """
    experience = await ExperienceRepository.get_for_user(
        db, experience_id, user_id=user_id
    )
    if experience is None:
        raise NotFoundError("Experience", str(experience_id))

    mappings = await competency_mapper.map_experience_to_competencies(
        db,
        experience_text=experience.full_text,
        user_id=user_id,
        experience_id=experience_id,
        semantic_scorer=LLMScorer(),
    )
    return DataResponse(
        data=[CompetencyMappingRead.model_validate(m) for m in mappings]
    )


@router.get("/experiences/{experience_id}/mappings")
async def list_experience_mappings(
    experience_id: uuid.UUID,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[list[CompetencyMappingRead]]:
    """List stored mappings for one experience, strongest first."""
    mappings = await competency_mapper.list_mappings_for_experience(
        db, user_id=user_id, experience_id=experience_id
    )
    return DataResponse(
        data=[CompetencyMappingRead.model_validate(m) for m in mappings]
    )


@router.post("/mappings/batch")
@limiter.limit(settings.rate_limit_llm)
async def map_experiences_batch(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    body: BatchMappingRequest,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[dict[str, list[CompetencyMappingRead]]]:
    """Map several experiences in one request.

    Raises:
        NotFoundError: If any experience does not exist for this user.
    """
    results = await competency_mapper.map_experiences_batch(
        db,
        user_id=user_id,
        experience_ids=body.experience_ids,
        semantic_scorer=LLMScorer(),
    )
    return DataResponse(
        data={
            str(experience_id): [
                CompetencyMappingRead.model_validate(m) for m in mappings
            ]
            for experience_id, mappings in results.items()
        }
    )


@router.patch("/mappings/{mapping_id}")
async def validate_mapping(
    mapping_id: uuid.UUID,
    body: ValidateMappingRequest,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[CompetencyMappingRead]:
    """Record a manual review of a mapping.

    Raises:
        NotFoundError: If the mapping does not exist for this user.
        ValidationError: If the evidence list is empty after trimming.
    """
    mapping = await competency_mapper.validate_mapping(
        db,
        mapping_id,
        user_id=user_id,
        is_validated=body.is_validated,
        method=body.mapping_method,
        validated_by=body.validated_by,
        relevance_score=body.relevance_score,
        evidence=body.evidence_extracted,
    )
    return DataResponse(data=CompetencyMappingRead.model_validate(mapping))


# =============================================================================
# Proficiency
# =============================================================================


@router.post("/proficiency/{competency_id}")
async def assess_competency(
    competency_id: str,
    user_id: CurrentUserId,
    db: DbSession,
    body: AssessProficiencyRequest | None = None,
) -> DataResponse[ProficiencyAssessmentRead]:
    """Recompute the assessment for one competency."""
    assessment = await proficiency_assessor.assess_proficiency(
        db,
        user_id=user_id,
        competency_id=competency_id,
        target_level=body.target_level if body else None,
    )
    return DataResponse(data=ProficiencyAssessmentRead.model_validate(assessment))


@router.post("/proficiency")
async def assess_all_competencies(
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[list[ProficiencyAssessmentRead]]:
    """Recompute assessments for every active competency."""
    assessments = await proficiency_assessor.assess_all(db, user_id=user_id)
    return DataResponse(
        data=[ProficiencyAssessmentRead.model_validate(a) for a in assessments]
    )


@router.get("/proficiency")
async def list_assessments(
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[list[ProficiencyAssessmentRead]]:
    """List stored assessments by competency identifier."""
    assessments = await proficiency_assessor.list_assessments(db, user_id=user_id)
    return DataResponse(
        data=[ProficiencyAssessmentRead.model_validate(a) for a in assessments]
    )


# =============================================================================
# PERT Responses
# =============================================================================


@router.post("/responses", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_llm)
async def generate_response(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    body: GenerateResponseRequest,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[PertResponseRead]:
    """Generate a STAR response and store it as the new current version.

    Security: Rate limited to prevent LLM cost abuse.

    Args:
        request: HTTP request (required by rate limiter).
        body: Experience, competency and requested level.
        user_id: Current user ID from auth.
        db: Database session.

    Returns:
        The new current version.

    Raises:
        ValidationError: No sufficiently relevant mapping, or the text is
            over the character ceiling (400).
        NotFoundError: Unknown experience or competency (404).
        PertGenerationError: Provider failure (502).
        ConcurrencyConflictError: Lost the version race (409).
    """
    response = await pert_response_service.generate(
        db,
        user_id=user_id,
        experience_id=body.experience_id,
        competency_id=body.competency_id,
        proficiency_level=body.proficiency_level,
        changed_by=body.changed_by,
    )
    return DataResponse(data=PertResponseRead.model_validate(response))


@router.get("/responses")
async def list_current_responses(
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[list[PertResponseRead]]:
    """List the current version for each competency."""
    responses = await pert_response_service.list_current_responses(
        db, user_id=user_id
    )
    return DataResponse(data=[PertResponseRead.model_validate(r) for r in responses])


@router.put("/responses/{response_id}")
async def update_response(
    response_id: uuid.UUID,
    body: UpdateResponseRequest,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[PertResponseRead]:
    """Save an edit as a new version superseding ``response_id``.

    Raises:
        NotFoundError: Unknown response (404).
        ConcurrencyConflictError: ``response_id`` is no longer current (409).
        ValidationError: Empty section, bad format, or too long (400).
    """
    response = await pert_response_service.update(
        db,
        user_id=user_id,
        response_id=response_id,
        sections=body.to_sections(),
        quantified_impact=body.quantified_impact,
        changed_by=body.changed_by,
        change_reason=body.change_reason,
    )
    return DataResponse(data=PertResponseRead.model_validate(response))


@router.get("/competencies/{competency_id}/responses/current")
async def get_current_response(
    competency_id: str,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[PertResponseRead]:
    """Get the current version for a competency.

    Raises:
        NotFoundError: If no response exists yet.
    """
    response = await pert_response_service.get_current(
        db, user_id=user_id, competency_id=competency_id
    )
    if response is None:
        raise NotFoundError("PertResponse")
    return DataResponse(data=PertResponseRead.model_validate(response))


@router.get("/competencies/{competency_id}/responses/history")
async def get_response_history(
    competency_id: str,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[list[PertResponseRead]]:
    """List every version for a competency, oldest first."""
    versions = await pert_response_service.get_history(
        db, user_id=user_id, competency_id=competency_id
    )
    return DataResponse(data=[PertResponseRead.model_validate(v) for v in versions])


# =============================================================================
# Compliance
# =============================================================================


@router.post("/compliance-checks", status_code=status.HTTP_201_CREATED)
async def run_compliance_check(
    user_id: CurrentUserId,
    db: DbSession,
    body: ComplianceCheckRequest | None = None,
) -> DataResponse[ComplianceCheckRead]:
    """Refresh assessments, then evaluate and record the EVR rules."""
    await proficiency_assessor.assess_all(db, user_id=user_id)
    check = await compliance_checker.check_compliance(
        db,
        user_id=user_id,
        check_type=body.check_type if body else "initial",
    )
    return DataResponse(data=ComplianceCheckRead.model_validate(check))


@router.get("/compliance-checks")
async def list_compliance_checks(
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[list[ComplianceCheckRead]]:
    """List checks, newest first."""
    checks = await compliance_checker.list_checks(db, user_id=user_id)
    return DataResponse(data=[ComplianceCheckRead.model_validate(c) for c in checks])


@router.get("/compliance-checks/latest")
async def get_latest_compliance_check(
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[ComplianceCheckRead]:
    """Get the most recent check.

    Raises:
        NotFoundError: If no check has been run.
    """
    check = await compliance_checker.get_latest_check(db, user_id=user_id)
    if check is None:
        raise NotFoundError("ComplianceCheck")
    return DataResponse(data=ComplianceCheckRead.model_validate(check))


# =============================================================================
# Report
# =============================================================================


@router.get("/report")
async def get_report(
    user_id: CurrentUserId,
    db: DbSession,
    refresh: Annotated[bool, Query()] = False,
) -> DataResponse[CompetencyReportRead]:
    """Competency summary and development plan.

    Args:
        user_id: Current user ID from auth.
        db: Database session.
        refresh: Recompute every assessment before reporting.
    """
    if refresh:
        await proficiency_assessor.assess_all(db, user_id=user_id)
    report = await build_competency_report(db, user_id=user_id)
    return DataResponse(data=report)
