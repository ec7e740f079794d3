"""CompetencyMapping model - links one experience to one competency for a user.

At most one row per (experience, competency, user). Re-mapping overwrites the
row; rows are never hard-deleted (validation is a soft toggle).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from pathfinder.models.base import Base, JSONType, TimestampMixin

MAPPING_METHODS = ("AI_ASSISTED", "USER_EDITED", "MENTOR_VALIDATED")


class CompetencyMapping(TimestampMixin, Base):
    """Scored link between an experience and a competency."""

    __tablename__ = "cpa_competency_mappings"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    experience_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("experiences.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    competency_id: Mapped[str] = mapped_column(
        String(10),
        ForeignKey("cpa_competencies.competency_id", ondelete="RESTRICT"),
        nullable=False,
    )
    relevance_score: Mapped[float] = mapped_column(Float, nullable=False)
    # Ordered list of verbatim fragments quoted from the experience text
    evidence_extracted: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )
    mapping_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default="AI_ASSISTED"
    )
    suggested_proficiency: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    is_validated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    validated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "experience_id",
            "competency_id",
            "user_id",
            name="uq_mapping_experience_competency_user",
        ),
        CheckConstraint(
            "relevance_score >= 0 AND relevance_score <= 1",
            name="ck_mapping_relevance_range",
        ),
        CheckConstraint(
            "suggested_proficiency IN (0, 1, 2)",
            name="ck_mapping_suggested_proficiency",
        ),
        CheckConstraint(
            "mapping_method IN ('AI_ASSISTED', 'USER_EDITED', 'MENTOR_VALIDATED')",
            name="ck_mapping_method",
        ),
    )
