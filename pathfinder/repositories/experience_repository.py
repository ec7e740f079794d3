"""Repository for Experience reads.

Experiences belong to the profile system; this repository only reads them,
always scoped to the owning user.
"""

import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.models.experience import Experience


class ExperienceRepository:
    """Stateless, read-only repository for Experience rows."""

    @staticmethod
    async def get_for_user(
        db: AsyncSession,
        experience_id: uuid.UUID,
        *,
        user_id: uuid.UUID,
    ) -> Experience | None:
        """Fetch an experience by ID, scoped to user.

        Args:
            db: Async database session.
            experience_id: UUID primary key.
            user_id: Owner's UUID (ownership check).

        Returns:
            Experience if found and owned by user, None otherwise.
        """
        result = await db.execute(
            select(Experience).where(
                Experience.id == experience_id, Experience.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_many_for_user(
        db: AsyncSession,
        experience_ids: Iterable[uuid.UUID],
        *,
        user_id: uuid.UUID,
    ) -> list[Experience]:
        """Fetch several owned experiences, oldest start date first.

        IDs not owned by the user are silently skipped.
        """
        ids = list(experience_ids)
        if not ids:
            return []
        result = await db.execute(
            select(Experience)
            .where(Experience.id.in_(ids), Experience.user_id == user_id)
            .order_by(Experience.start_date, Experience.id)
        )
        return list(result.scalars().all())
