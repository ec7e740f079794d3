"""Repository for CompetencyMapping operations.

All reads and writes are scoped to user_id. Mappings are upserted per
(experience, competency, user) and never deleted.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.models.competency_mapping import CompetencyMapping

# Fields that may be changed by manual validation.
# Security: Never allow changing experience_id, competency_id, user_id, or
# timestamps. Those define the mapping's identity and ownership.
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "relevance_score",
        "evidence_extracted",
        "suggested_proficiency",
        "mapping_method",
        "is_validated",
        "validated_by",
        "validated_at",
    }
)


class MappingRepository:
    """Stateless repository for CompetencyMapping rows."""

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        mapping_id: uuid.UUID,
        *,
        user_id: uuid.UUID,
    ) -> CompetencyMapping | None:
        """Fetch a mapping by ID, scoped to user."""
        result = await db.execute(
            select(CompetencyMapping).where(
                CompetencyMapping.id == mapping_id,
                CompetencyMapping.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_for_pair(
        db: AsyncSession,
        *,
        experience_id: uuid.UUID,
        competency_id: str,
        user_id: uuid.UUID,
    ) -> CompetencyMapping | None:
        """Fetch the mapping for one (experience, competency, user) tuple."""
        result = await db.execute(
            select(CompetencyMapping).where(
                CompetencyMapping.experience_id == experience_id,
                CompetencyMapping.competency_id == competency_id,
                CompetencyMapping.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_experience(
        db: AsyncSession,
        *,
        experience_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> list[CompetencyMapping]:
        """List an experience's mappings, strongest first."""
        result = await db.execute(
            select(CompetencyMapping)
            .where(
                CompetencyMapping.experience_id == experience_id,
                CompetencyMapping.user_id == user_id,
            )
            .order_by(
                CompetencyMapping.relevance_score.desc(),
                CompetencyMapping.competency_id,
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str | None = None,
        min_relevance: float | None = None,
    ) -> list[CompetencyMapping]:
        """List a user's mappings with optional competency/relevance filters.

        Returns:
            Mappings ordered by competency, then relevance descending.
        """
        stmt = select(CompetencyMapping).where(CompetencyMapping.user_id == user_id)
        if competency_id is not None:
            stmt = stmt.where(CompetencyMapping.competency_id == competency_id)
        if min_relevance is not None:
            stmt = stmt.where(CompetencyMapping.relevance_score >= min_relevance)
        stmt = stmt.order_by(
            CompetencyMapping.competency_id,
            CompetencyMapping.relevance_score.desc(),
            CompetencyMapping.experience_id,
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def upsert(
        db: AsyncSession,
        *,
        experience_id: uuid.UUID,
        competency_id: str,
        user_id: uuid.UUID,
        relevance_score: float,
        evidence: list[str],
        suggested_proficiency: int,
        mapping_method: str = "AI_ASSISTED",
    ) -> CompetencyMapping:
        """Create or overwrite the mapping for one tuple.

        Overwriting resets validation: a re-scored mapping has not been
        reviewed yet. A concurrent insert of the same tuple loses to the
        unique constraint; the savepoint is rolled back and the winner's row
        is overwritten instead.

        Returns:
            The persisted mapping.
        """
        values = {
            "relevance_score": relevance_score,
            "evidence_extracted": list(evidence),
            "suggested_proficiency": suggested_proficiency,
            "mapping_method": mapping_method,
            "is_validated": False,
            "validated_by": None,
            "validated_at": None,
        }

        mapping = await MappingRepository.get_for_pair(
            db,
            experience_id=experience_id,
            competency_id=competency_id,
            user_id=user_id,
        )
        if mapping is None:
            try:
                async with db.begin_nested():
                    mapping = CompetencyMapping(
                        experience_id=experience_id,
                        competency_id=competency_id,
                        user_id=user_id,
                        **values,
                    )
                    db.add(mapping)
                    await db.flush()
            except IntegrityError:
                mapping = await MappingRepository.get_for_pair(
                    db,
                    experience_id=experience_id,
                    competency_id=competency_id,
                    user_id=user_id,
                )
                if mapping is None:
                    raise

        for field, value in values.items():
            setattr(mapping, field, value)
        await db.flush()
        await db.refresh(mapping)
        return mapping

    @staticmethod
    async def update(
        db: AsyncSession,
        mapping_id: uuid.UUID,
        *,
        user_id: uuid.UUID,
        **kwargs: str | int | float | bool | datetime | list | None,
    ) -> CompetencyMapping | None:
        """Update mapping fields, scoped to user.

        Only fields in _UPDATABLE_FIELDS are allowed.

        Returns:
            Updated mapping if found and owned, None otherwise.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        mapping = await MappingRepository.get_by_id(db, mapping_id, user_id=user_id)
        if mapping is None:
            return None

        for field, value in kwargs.items():
            setattr(mapping, field, value)

        await db.flush()
        await db.refresh(mapping)
        return mapping
