"""Repository for ComplianceCheck snapshots. Insert and read only."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.models.compliance import ComplianceCheck


class ComplianceRepository:
    """Stateless repository for ComplianceCheck rows."""

    @staticmethod
    async def create(db: AsyncSession, check: ComplianceCheck) -> ComplianceCheck:
        """Persist a new snapshot."""
        db.add(check)
        await db.flush()
        await db.refresh(check)
        return check

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        limit: int | None = None,
    ) -> list[ComplianceCheck]:
        """List a user's checks, newest first."""
        stmt = (
            select(ComplianceCheck)
            .where(ComplianceCheck.user_id == user_id)
            .order_by(ComplianceCheck.check_date.desc(), ComplianceCheck.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())
