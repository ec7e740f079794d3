"""Competency model - CPA Canada competency framework reference data.

Seeded from pathfinder.services.competency_catalog and never mutated by user
action. Updated in place by the administrative reseed, which retires rather
than deletes competencies that user data still refers to.
"""

from sqlalchemy import Boolean, CheckConstraint, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pathfinder.models.base import Base, JSONType


class Competency(Base):
    """One CPA competency (e.g. AA1 Internal Control)."""

    __tablename__ = "cpa_competencies"

    # Short identifier such as "FR1" or "AA1"
    competency_id: Mapped[str] = mapped_column(String(10), primary_key=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    area_code: Mapped[str] = mapped_column(String(10), nullable=False)
    area_name: Mapped[str] = mapped_column(String(100), nullable=False)
    sub_code: Mapped[str] = mapped_column(String(10), nullable=False)
    sub_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    evr_relevance: Mapped[str] = mapped_column(String(10), nullable=False)
    level_1_criteria: Mapped[str] = mapped_column(Text, nullable=False)
    level_2_criteria: Mapped[str] = mapped_column(Text, nullable=False)
    guiding_questions: Mapped[str] = mapped_column(Text, nullable=False)
    # Keyword phrases drawn from the guiding questions, used by keyword scoring
    keywords: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("area_code", "sub_code", name="uq_competency_area_sub"),
        CheckConstraint(
            "category IN ('Technical', 'Enabling')",
            name="ck_competency_category",
        ),
        CheckConstraint(
            "evr_relevance IN ('HIGH', 'MEDIUM', 'LOW')",
            name="ck_competency_evr_relevance",
        ),
    )

    def criteria_for_level(self, level: int) -> str:
        """Return the criteria text a response at ``level`` must demonstrate.

        Level 0 makes no claim, so it reuses the level 1 criteria as the
        target to work toward.
        """
        return self.level_2_criteria if level >= 2 else self.level_1_criteria
