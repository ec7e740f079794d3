"""SQLAlchemy ORM models for the Pathfinder CPA/PERT service.

All models are exported from this module for convenient imports:
    from pathfinder.models import Competency, PertResponse, ...

Models are organized by domain:
- competency.py: Competency (reference data)
- experience.py: Experience (read-only, owned by the profile system)
- competency_mapping.py: CompetencyMapping
- proficiency.py: ProficiencyAssessment (derived cache)
- pert_response.py: PertResponse, PertResponseHistory
- compliance.py: ComplianceCheck (immutable snapshots)
"""

from pathfinder.models.base import Base, TimestampMixin
from pathfinder.models.competency import Competency
from pathfinder.models.competency_mapping import CompetencyMapping
from pathfinder.models.compliance import ComplianceCheck
from pathfinder.models.experience import Experience
from pathfinder.models.pert_response import PertResponse, PertResponseHistory
from pathfinder.models.proficiency import ProficiencyAssessment

__all__ = [
    "Base",
    "TimestampMixin",
    "Competency",
    "CompetencyMapping",
    "ComplianceCheck",
    "Experience",
    "PertResponse",
    "PertResponseHistory",
    "ProficiencyAssessment",
]
