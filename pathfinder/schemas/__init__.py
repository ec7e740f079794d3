"""Pydantic response schemas for API endpoints."""

from pathfinder.schemas.cpa_pert import (
    CompetencyMappingRead,
    CompetencyRead,
    CompetencyReportRead,
    ComplianceCheckRead,
    PertResponseRead,
    ProficiencyAssessmentRead,
)

__all__ = [
    "CompetencyMappingRead",
    "CompetencyRead",
    "CompetencyReportRead",
    "ComplianceCheckRead",
    "PertResponseRead",
    "ProficiencyAssessmentRead",
]
