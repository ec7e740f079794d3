"""Competency mapper: scores an experience against every active competency.

For each competency the keyword score is always computed; when a semantic
scorer is supplied its score is blended in (AI dominant). Competencies that
reach the policy's minimum relevance are upserted as CompetencyMapping rows
with quoted evidence and a suggested proficiency level. Lower scores are not
recorded.

If the semantic scorer fails or times out, the rest of the run continues on
keyword scores alone.
"""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.core.errors import NotFoundError, ValidationError
from pathfinder.models.competency_mapping import MAPPING_METHODS, CompetencyMapping
from pathfinder.providers import ProviderError
from pathfinder.repositories.competency_repository import CompetencyRepository
from pathfinder.repositories.experience_repository import ExperienceRepository
from pathfinder.repositories.mapping_repository import MappingRepository
from pathfinder.services.scoring import (
    MAX_EVIDENCE_FRAGMENTS,
    KeywordScorer,
    ScoringPolicy,
    ScoringStrategy,
    extract_evidence,
)

logger = logging.getLogger(__name__)


async def map_experience_to_competencies(
    db: AsyncSession,
    *,
    experience_text: str,
    user_id: uuid.UUID,
    experience_id: uuid.UUID,
    scorer: ScoringStrategy | None = None,
    semantic_scorer: ScoringStrategy | None = None,
    policy: ScoringPolicy | None = None,
) -> list[CompetencyMapping]:
    """Score an experience against the catalog and persist strong matches.

    Args:
        db: Async database session. The caller commits.
        experience_text: Free text to score (usually title and description).
        user_id: Owner of the experience.
        experience_id: Experience being mapped.
        scorer: Baseline strategy. Defaults to a KeywordScorer using the
            policy's saturation.
        semantic_scorer: Optional AI strategy blended over the baseline.
        policy: Thresholds and weights. Defaults to settings.

    Returns:
        Persisted mappings, strongest first.

    Raises:
        NotFoundError: If the experience does not exist for this user.
    """
    experience = await ExperienceRepository.get_for_user(
        db, experience_id, user_id=user_id
    )
    if experience is None:
        raise NotFoundError("Experience", str(experience_id))

    policy = policy or ScoringPolicy.from_settings()
    scorer = scorer or KeywordScorer(saturation=policy.keyword_saturation)

    competencies = await CompetencyRepository.list_all(db)
    mappings: list[CompetencyMapping] = []

    for competency in competencies:
        base_score = await scorer.score(experience_text, competency)

        ai_score: float | None = None
        if semantic_scorer is not None:
            try:
                ai_score = await semantic_scorer.score(experience_text, competency)
            except (ProviderError, asyncio.TimeoutError) as e:
                logger.warning(
                    "Semantic scoring unavailable for experience %s, "
                    "continuing with keyword scores: %s",
                    experience_id,
                    e,
                )
                semantic_scorer = None

        relevance = policy.blend(base_score, ai_score)
        if not policy.should_persist(relevance):
            continue

        mapping = await MappingRepository.upsert(
            db,
            experience_id=experience_id,
            competency_id=competency.competency_id,
            user_id=user_id,
            relevance_score=relevance,
            evidence=extract_evidence(experience_text, competency),
            suggested_proficiency=policy.suggested_level(relevance),
        )
        mappings.append(mapping)

    mappings.sort(key=lambda m: (-m.relevance_score, m.competency_id))
    logger.info(
        "Mapped experience %s to %d competencies", experience_id, len(mappings)
    )
    return mappings


async def map_experiences_batch(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    experience_ids: Sequence[uuid.UUID],
    semantic_scorer: ScoringStrategy | None = None,
    policy: ScoringPolicy | None = None,
) -> dict[uuid.UUID, list[CompetencyMapping]]:
    """Map several experiences in turn.

    Every ID is checked for ownership before anything is scored, so a bad
    ID fails the whole batch.

    Returns:
        Persisted mappings keyed by experience ID, in request order.

    Raises:
        NotFoundError: If any experience does not exist for this user.
    """
    unique_ids = list(dict.fromkeys(experience_ids))
    experiences = await ExperienceRepository.get_many_for_user(
        db, unique_ids, user_id=user_id
    )
    by_id = {e.id: e for e in experiences}
    for experience_id in unique_ids:
        if experience_id not in by_id:
            raise NotFoundError("Experience", str(experience_id))

    results: dict[uuid.UUID, list[CompetencyMapping]] = {}
    for experience_id in unique_ids:
        results[experience_id] = await map_experience_to_competencies(
            db,
            experience_text=by_id[experience_id].full_text,
            user_id=user_id,
            experience_id=experience_id,
            semantic_scorer=semantic_scorer,
            policy=policy,
        )
    return results


async def validate_mapping(
    db: AsyncSession,
    mapping_id: uuid.UUID,
    *,
    user_id: uuid.UUID,
    is_validated: bool,
    method: str,
    validated_by: str | None = None,
    relevance_score: float | None = None,
    evidence: list[str] | None = None,
    policy: ScoringPolicy | None = None,
) -> CompetencyMapping:
    """Record a manual review of a mapping.

    A changed relevance score re-derives the suggested proficiency.

    Args:
        db: Async database session.
        mapping_id: Mapping to review.
        user_id: Owner (ownership check).
        is_validated: New validation flag.
        method: USER_EDITED or MENTOR_VALIDATED (AI_ASSISTED is accepted
            for un-validating).
        validated_by: Reviewer name, stored when validated.
        relevance_score: Corrected score in [0, 1].
        evidence: Replacement evidence, 1-5 non-empty quotes.
        policy: Thresholds. Defaults to settings.

    Returns:
        The updated mapping.

    Raises:
        NotFoundError: If the mapping does not exist for this user.
        ValidationError: If method, score or evidence is invalid.
    """
    if method not in MAPPING_METHODS:
        raise ValidationError(f"Unknown mapping method: {method}")
    if relevance_score is not None and not 0.0 <= relevance_score <= 1.0:
        raise ValidationError("relevance_score must be between 0 and 1")
    if evidence is not None:
        evidence = [e.strip() for e in evidence if e and e.strip()]
        if not 1 <= len(evidence) <= MAX_EVIDENCE_FRAGMENTS:
            raise ValidationError(
                f"evidence must contain 1 to {MAX_EVIDENCE_FRAGMENTS} quotes"
            )

    policy = policy or ScoringPolicy.from_settings()
    changes: dict = {
        "is_validated": is_validated,
        "mapping_method": method,
        "validated_by": validated_by if is_validated else None,
        "validated_at": datetime.now(UTC) if is_validated else None,
    }
    if relevance_score is not None:
        changes["relevance_score"] = relevance_score
        changes["suggested_proficiency"] = policy.suggested_level(relevance_score)
    if evidence is not None:
        changes["evidence_extracted"] = evidence

    mapping = await MappingRepository.update(db, mapping_id, user_id=user_id, **changes)
    if mapping is None:
        raise NotFoundError("CompetencyMapping", str(mapping_id))
    return mapping


async def list_mappings_for_experience(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    experience_id: uuid.UUID,
) -> list[CompetencyMapping]:
    """List an owned experience's mappings, strongest first.

    Raises:
        NotFoundError: If the experience does not exist for this user.
    """
    experience = await ExperienceRepository.get_for_user(
        db, experience_id, user_id=user_id
    )
    if experience is None:
        raise NotFoundError("Experience", str(experience_id))
    return await MappingRepository.list_for_experience(
        db, experience_id=experience_id, user_id=user_id
    )


async def list_mappings_for_user(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    competency_id: str | None = None,
    min_relevance: float | None = None,
) -> list[CompetencyMapping]:
    """List a user's mappings, optionally for one competency."""
    return await MappingRepository.list_for_user(
        db, user_id=user_id, competency_id=competency_id, min_relevance=min_relevance
    )
