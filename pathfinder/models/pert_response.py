"""PERT response models - versioned STAR narratives and their audit mirror.

PertResponse holds every version. Exactly one row per (user, competency) has
is_current=true, enforced by a partial unique index; (user, competency,
version) is unique so two writers can never claim the same version number.

PertResponseHistory mirrors each archived version for audit.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from pathfinder.models.base import Base, TimestampMixin

# Hard ceiling on rendered response length
MAX_RESPONSE_CHARACTERS = 5000


class PertResponse(TimestampMixin, Base):
    """One version of a user's PERT response for a competency."""

    __tablename__ = "cpa_pert_responses"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    experience_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("experiences.id", ondelete="CASCADE"),
        nullable=False,
    )
    competency_id: Mapped[str] = mapped_column(
        String(10),
        ForeignKey("cpa_competencies.competency_id", ondelete="RESTRICT"),
        nullable=False,
    )
    proficiency_level: Mapped[int] = mapped_column(Integer, nullable=False)

    # STAR sections
    situation_text: Mapped[str] = mapped_column(Text, nullable=False)
    task_text: Mapped[str] = mapped_column(Text, nullable=False)
    action_text: Mapped[str] = mapped_column(Text, nullable=False)
    result_text: Mapped[str] = mapped_column(Text, nullable=False)

    # Rendered full text (see services.star_format) and its length
    response_text: Mapped[str] = mapped_column(Text, nullable=False)
    character_count: Mapped[int] = mapped_column(Integer, nullable=False)

    quantified_impact: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_compliant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "competency_id",
            "version",
            name="uq_pert_user_competency_version",
        ),
        Index(
            "uq_pert_one_current",
            "user_id",
            "competency_id",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current = 1"),
        ),
        CheckConstraint(
            f"character_count <= {MAX_RESPONSE_CHARACTERS}",
            name="ck_pert_character_count",
        ),
        CheckConstraint("proficiency_level IN (0, 1, 2)", name="ck_pert_level"),
        CheckConstraint("version >= 1", name="ck_pert_version_positive"),
    )

    @property
    def sections(self) -> dict[str, str]:
        """STAR sections keyed by name."""
        return {
            "situation": self.situation_text,
            "task": self.task_text,
            "action": self.action_text,
            "result": self.result_text,
        }


class PertResponseHistory(Base):
    """Audit copy of a PERT response version at the moment it was superseded."""

    __tablename__ = "cpa_pert_history"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    response_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cpa_pert_responses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    experience_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    competency_id: Mapped[str] = mapped_column(String(10), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    proficiency_level: Mapped[int] = mapped_column(Integer, nullable=False)
    situation_text: Mapped[str] = mapped_column(Text, nullable=False)
    task_text: Mapped[str] = mapped_column(Text, nullable=False)
    action_text: Mapped[str] = mapped_column(Text, nullable=False)
    result_text: Mapped[str] = mapped_column(Text, nullable=False)
    response_text: Mapped[str] = mapped_column(Text, nullable=False)
    character_count: Mapped[int] = mapped_column(Integer, nullable=False)
    quantified_impact: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
