"""ComplianceCheck model - immutable EVR compliance snapshot.

Each run of the compliance checker inserts a new row. Rows are never updated.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from pathfinder.models.base import Base, JSONType

CHECK_TYPES = ("initial", "annual", "final")


class ComplianceCheck(Base):
    """Point-in-time result of evaluating a user against the EVR rules."""

    __tablename__ = "cpa_compliance_checks"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    check_type: Mapped[str] = mapped_column(String(10), nullable=False)
    check_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    is_compliant: Mapped[bool] = mapped_column(Boolean, nullable=False)
    total_competencies: Mapped[int] = mapped_column(Integer, nullable=False)
    competencies_met: Mapped[int] = mapped_column(Integer, nullable=False)
    level2_count: Mapped[int] = mapped_column(Integer, nullable=False)
    missing_competencies: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )
    recommendations: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )
    thirty_month_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    thirty_month_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    thirty_month_rule_met: Mapped[bool] = mapped_column(Boolean, nullable=False)
    twelve_month_rule_met: Mapped[bool] = mapped_column(Boolean, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "check_type IN ('initial', 'annual', 'final')",
            name="ck_compliance_check_type",
        ),
    )
