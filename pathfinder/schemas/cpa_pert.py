"""Response schemas for the CPA/PERT API.

Read models are built from ORM rows via ``model_validate`` (from_attributes).
Request bodies live beside their endpoints in api/v1/cpa_pert.py.
"""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class CompetencyRead(BaseModel):
    """One catalog competency.

    Attributes:
        competency_id: Short identifier such as "AA1".
        category: Technical or Enabling.
        evr_relevance: HIGH, MEDIUM or LOW.
        level_1_criteria: What a level 1 response must demonstrate.
        level_2_criteria: What a level 2 response must demonstrate.
    """

    model_config = ConfigDict(extra="forbid", from_attributes=True)

    competency_id: str
    category: str
    area_code: str
    area_name: str
    sub_code: str
    sub_name: str
    description: str
    evr_relevance: str
    level_1_criteria: str
    level_2_criteria: str
    guiding_questions: str
    is_active: bool


class CompetencyMappingRead(BaseModel):
    """A scored experience-to-competency link."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: uuid.UUID
    experience_id: uuid.UUID
    competency_id: str
    relevance_score: float
    evidence_extracted: list[str]
    mapping_method: str
    suggested_proficiency: int
    is_validated: bool
    validated_by: str | None = None
    validated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ProficiencyAssessmentRead(BaseModel):
    """Cached proficiency for one competency."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)

    competency_id: str
    current_level: int
    target_level: int
    evidence_count: int
    development_notes: str
    next_steps: list[str]
    assessment_date: datetime


class PertResponseRead(BaseModel):
    """One version of a PERT response.

    Attributes:
        response_text: Rendered STAR text with SITUATION/TASK/ACTION/RESULT
            headers.
        character_count: Length of response_text (never above 5000).
        version: Version number, contiguous from 1 per competency.
        is_current: True for exactly one version per competency.
    """

    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: uuid.UUID
    experience_id: uuid.UUID
    competency_id: str
    proficiency_level: int
    situation_text: str
    task_text: str
    action_text: str
    result_text: str
    response_text: str
    character_count: int
    quantified_impact: str | None = None
    is_compliant: bool
    version: int
    is_current: bool
    created_at: datetime


class ComplianceCheckRead(BaseModel):
    """Immutable EVR compliance snapshot."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: uuid.UUID
    check_type: str
    check_date: datetime
    is_compliant: bool
    total_competencies: int
    competencies_met: int
    level2_count: int
    missing_competencies: list[str]
    recommendations: list[str]
    thirty_month_start: date | None = None
    thirty_month_end: date | None = None
    thirty_month_rule_met: bool
    twelve_month_rule_met: bool
    expiry_date: date


class ReportSummary(BaseModel):
    """Headline counts for the competency report."""

    model_config = ConfigDict(extra="forbid")

    total_competencies: int
    level2_achieved: int
    level1_achieved: int
    level0_only: int
    total_pert_responses: int
    evr_compliant: bool


class CompetencyDetail(BaseModel):
    """Assessment enriched with catalog names."""

    model_config = ConfigDict(extra="forbid")

    competency_id: str
    sub_name: str
    category: str
    current_level: int
    target_level: int
    evidence_count: int


class DevelopmentItem(BaseModel):
    """One development plan entry."""

    model_config = ConfigDict(extra="forbid")

    competency_id: str
    action: str
    target: str


class DevelopmentPlan(BaseModel):
    """Development plan bucketed by urgency."""

    model_config = ConfigDict(extra="forbid")

    immediate: list[DevelopmentItem]
    short_term: list[DevelopmentItem]


class CompetencyReportRead(BaseModel):
    """Per-user competency report."""

    model_config = ConfigDict(extra="forbid")

    generated_at: datetime
    summary: ReportSummary
    competency_details: list[CompetencyDetail]
    development_plan: DevelopmentPlan
    latest_check: ComplianceCheckRead | None = None
