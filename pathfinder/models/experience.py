"""Experience model - professional experience owned by the profile system.

The CPA/PERT subsystem reads experiences but never writes them. The table is
declared here so mappings and responses can reference it.
"""

import uuid
from datetime import date

from sqlalchemy import Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pathfinder.models.base import Base, TimestampMixin


class Experience(TimestampMixin, Base):
    """A user's professional experience record."""

    __tablename__ = "experiences"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    organization: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    # None while the experience is ongoing
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    experience_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default="work"
    )

    @property
    def full_text(self) -> str:
        """Title and description joined, as scored by the competency mapper."""
        return f"{self.title}. {self.description}"
