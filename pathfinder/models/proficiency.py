"""ProficiencyAssessment model - cached per-(user, competency) proficiency.

Derived from mappings and current PERT responses by the proficiency
assessor. Overwritten on every run; never a source of truth.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from pathfinder.models.base import Base, JSONType


class ProficiencyAssessment(Base):
    """Current vs. target proficiency level for one competency."""

    __tablename__ = "cpa_proficiency_assessments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    competency_id: Mapped[str] = mapped_column(
        String(10),
        ForeignKey("cpa_competencies.competency_id", ondelete="RESTRICT"),
        nullable=False,
    )
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_level: Mapped[int] = mapped_column(Integer, nullable=False)
    evidence_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    development_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    next_steps: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    assessment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "competency_id", name="uq_assessment_user_competency"
        ),
        CheckConstraint(
            "current_level IN (0, 1, 2)", name="ck_assessment_current_level"
        ),
        CheckConstraint("target_level IN (0, 1, 2)", name="ck_assessment_target_level"),
    )
