"""Repository for Competency reference data.

Read access for everyone; the only write path is upsert_all, used by the
administrative reseed.
"""

from collections.abc import Sequence

from sqlalchemy import delete, insert, select, union, update
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.models.competency import Competency
from pathfinder.models.competency_mapping import CompetencyMapping
from pathfinder.models.pert_response import PertResponse
from pathfinder.models.proficiency import ProficiencyAssessment


class CompetencyRepository:
    """Stateless repository for Competency rows.

    All methods are static. Pass an AsyncSession for every call so the
    caller controls transaction boundaries.
    """

    @staticmethod
    async def list_all(
        db: AsyncSession,
        *,
        category: str | None = None,
        evr_relevance: str | None = None,
        include_inactive: bool = False,
    ) -> list[Competency]:
        """List competencies in stable catalog order.

        Args:
            db: Async database session.
            category: Optional filter ("Technical" or "Enabling").
            evr_relevance: Optional filter ("HIGH", "MEDIUM", "LOW").
            include_inactive: Include rows with is_active=False.

        Returns:
            Competencies ordered by category, area_code, sub_code.
        """
        stmt = select(Competency)
        if not include_inactive:
            stmt = stmt.where(Competency.is_active.is_(True))
        if category is not None:
            stmt = stmt.where(Competency.category == category)
        if evr_relevance is not None:
            stmt = stmt.where(Competency.evr_relevance == evr_relevance)
        stmt = stmt.order_by(
            Competency.category, Competency.area_code, Competency.sub_code
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_by_id(db: AsyncSession, competency_id: str) -> Competency | None:
        """Fetch a competency by identifier.

        Args:
            db: Async database session.
            competency_id: Identifier such as "AA1".

        Returns:
            Competency if found, None otherwise.
        """
        result = await db.execute(
            select(Competency).where(Competency.competency_id == competency_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert_all(db: AsyncSession, rows: Sequence[dict]) -> int:
        """Make the catalog match ``rows`` without breaking references.

        Rows whose identifier is already stored are updated in place, new
        identifiers are inserted. Stored competencies missing from ``rows``
        are deleted when nothing references them and deactivated otherwise,
        so mappings, responses and assessments survive a reseed.

        Runs inside a savepoint: if any statement fails every change is
        undone and the error propagates.

        Args:
            db: Async database session.
            rows: Column dicts, one per competency.

        Returns:
            Number of rows inserted or updated.

        Raises:
            ValueError: ``rows`` repeats a competency identifier.
            sqlalchemy.exc.IntegrityError: An (area_code, sub_code) pair
                collides with another competency.
        """
        ids = [row["competency_id"] for row in rows]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate competency_id in catalog entries")

        async with db.begin_nested():
            existing = set(
                (await db.execute(select(Competency.competency_id))).scalars()
            )
            dropped = existing - set(ids)
            if dropped:
                referenced = set(
                    (
                        await db.execute(
                            union(
                                select(CompetencyMapping.competency_id),
                                select(PertResponse.competency_id),
                                select(ProficiencyAssessment.competency_id),
                            )
                        )
                    ).scalars()
                )
                removable = dropped - referenced
                retired = dropped & referenced
                if removable:
                    await db.execute(
                        delete(Competency).where(
                            Competency.competency_id.in_(removable)
                        )
                    )
                if retired:
                    await db.execute(
                        update(Competency)
                        .where(Competency.competency_id.in_(retired))
                        .values(is_active=False)
                    )

            new_rows = []
            for row in rows:
                if row["competency_id"] in existing:
                    await db.execute(
                        update(Competency)
                        .where(Competency.competency_id == row["competency_id"])
                        .values(
                            {k: v for k, v in row.items() if k != "competency_id"}
                        )
                        .execution_options(synchronize_session=False)
                    )
                else:
                    new_rows.append(row)
            if new_rows:
                await db.execute(insert(Competency), new_rows)
        # Drop identity-map copies of the changed rows
        db.expire_all()
        return len(rows)
