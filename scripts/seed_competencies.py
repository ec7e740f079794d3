"""Reseed the CPA competency catalog.

Standalone administrative script. Replaces every row in cpa_competencies
with the built-in catalog in one transaction; on failure the existing
catalog is left untouched.

Usage:
    python -m scripts.seed_competencies
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pathfinder.core.config import settings
from pathfinder.core.database import build_engine
from pathfinder.services.competency_catalog import reseed_catalog

logger = logging.getLogger(__name__)


async def main() -> None:
    """CLI entry point: reseed against the configured database."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = build_engine(settings.database_url)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with factory() as session:
            count = await reseed_catalog(session)
            await session.commit()
    finally:
        await engine.dispose()

    logger.info("Catalog now holds %d competencies", count)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
