"""Repository for ProficiencyAssessment cache rows."""

import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.models.proficiency import ProficiencyAssessment

# Columns written by the assessor; compared to decide whether a rerun
# changed anything.
_ASSESSED_FIELDS: tuple[str, ...] = (
    "current_level",
    "target_level",
    "evidence_count",
    "development_notes",
    "next_steps",
)


class ProficiencyRepository:
    """Stateless repository for ProficiencyAssessment rows."""

    @staticmethod
    async def get(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str,
    ) -> ProficiencyAssessment | None:
        """Fetch the cached assessment for one (user, competency) pair."""
        result = await db.execute(
            select(ProficiencyAssessment).where(
                ProficiencyAssessment.user_id == user_id,
                ProficiencyAssessment.competency_id == competency_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
    ) -> list[ProficiencyAssessment]:
        """List a user's assessments ordered by competency identifier."""
        result = await db.execute(
            select(ProficiencyAssessment)
            .where(ProficiencyAssessment.user_id == user_id)
            .order_by(ProficiencyAssessment.competency_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def save(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        competency_id: str,
        values: dict,
    ) -> ProficiencyAssessment:
        """Insert or overwrite the assessment for one pair.

        The row (including assessment_date) is left untouched when the
        computed values equal what is already stored.

        Args:
            db: Async database session.
            user_id: Owner's UUID.
            competency_id: Competency identifier.
            values: Column values keyed by the names in _ASSESSED_FIELDS.

        Returns:
            The stored assessment.
        """
        assessment = await ProficiencyRepository.get(
            db, user_id=user_id, competency_id=competency_id
        )
        if assessment is None:
            try:
                async with db.begin_nested():
                    assessment = ProficiencyAssessment(
                        user_id=user_id, competency_id=competency_id, **values
                    )
                    db.add(assessment)
                    await db.flush()
                await db.refresh(assessment)
                return assessment
            except IntegrityError:
                assessment = await ProficiencyRepository.get(
                    db, user_id=user_id, competency_id=competency_id
                )
                if assessment is None:
                    raise

        if all(getattr(assessment, f) == values[f] for f in _ASSESSED_FIELDS):
            return assessment

        for field in _ASSESSED_FIELDS:
            setattr(assessment, field, values[field])
        assessment.assessment_date = func.now()
        await db.flush()
        await db.refresh(assessment)
        return assessment
