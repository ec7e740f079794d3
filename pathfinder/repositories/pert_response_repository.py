"""Repository for PertResponse versions and their history mirror.

Versions are append-only. The only in-place change ever made to a version
row is clearing is_current when it is superseded (archive_current).
"""

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.models.pert_response import PertResponse, PertResponseHistory


class PertResponseRepository:
    """Stateless repository for PertResponse rows."""

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        response_id: uuid.UUID,
        *,
        user_id: uuid.UUID,
    ) -> PertResponse | None:
        """Fetch a response version by ID, scoped to user."""
        result = await db.execute(
            select(PertResponse).where(
                PertResponse.id == response_id, PertResponse.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_current(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str,
        for_update: bool = False,
    ) -> PertResponse | None:
        """Fetch the current version for a (user, competency) pair.

        Args:
            db: Async database session.
            user_id: Owner's UUID.
            competency_id: Competency identifier.
            for_update: Lock the row (SELECT ... FOR UPDATE) until the
                transaction ends. Ignored by SQLite, whose writers are
                already serialized.

        Returns:
            The current version, or None if no response exists yet.
        """
        stmt = select(PertResponse).where(
            PertResponse.user_id == user_id,
            PertResponse.competency_id == competency_id,
            PertResponse.is_current.is_(True),
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def max_version(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str,
    ) -> int:
        """Highest version number for the pair, 0 if none exist."""
        result = await db.execute(
            select(func.coalesce(func.max(PertResponse.version), 0)).where(
                PertResponse.user_id == user_id,
                PertResponse.competency_id == competency_id,
            )
        )
        return int(result.scalar_one())

    @staticmethod
    async def list_versions(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str,
    ) -> list[PertResponse]:
        """All versions for the pair, oldest first."""
        result = await db.execute(
            select(PertResponse)
            .where(
                PertResponse.user_id == user_id,
                PertResponse.competency_id == competency_id,
            )
            .order_by(PertResponse.version)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_current_for_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str | None = None,
    ) -> list[PertResponse]:
        """Current versions across a user's competencies."""
        stmt = select(PertResponse).where(
            PertResponse.user_id == user_id, PertResponse.is_current.is_(True)
        )
        if competency_id is not None:
            stmt = stmt.where(PertResponse.competency_id == competency_id)
        result = await db.execute(stmt.order_by(PertResponse.competency_id))
        return list(result.scalars().all())

    @staticmethod
    async def archive_current(
        db: AsyncSession,
        current: PertResponse,
        *,
        changed_by: str | None,
        change_reason: str | None,
    ) -> PertResponseHistory:
        """Copy ``current`` into history and clear its is_current flag.

        Flushes so the partial unique index is free before the caller
        inserts the next version.
        """
        history = PertResponseHistory(
            response_id=current.id,
            user_id=current.user_id,
            experience_id=current.experience_id,
            competency_id=current.competency_id,
            version=current.version,
            proficiency_level=current.proficiency_level,
            situation_text=current.situation_text,
            task_text=current.task_text,
            action_text=current.action_text,
            result_text=current.result_text,
            response_text=current.response_text,
            character_count=current.character_count,
            quantified_impact=current.quantified_impact,
            changed_by=changed_by,
            change_reason=change_reason,
        )
        db.add(history)
        current.is_current = False
        await db.flush()
        return history

    @staticmethod
    async def insert_version(db: AsyncSession, response: PertResponse) -> PertResponse:
        """Insert a new version row and load server-generated columns."""
        db.add(response)
        await db.flush()
        await db.refresh(response)
        return response

    @staticmethod
    async def list_history(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str,
    ) -> list[PertResponseHistory]:
        """Archived-version audit rows for the pair, oldest first."""
        result = await db.execute(
            select(PertResponseHistory)
            .where(
                PertResponseHistory.user_id == user_id,
                PertResponseHistory.competency_id == competency_id,
            )
            .order_by(PertResponseHistory.version)
        )
        return list(result.scalars().all())
