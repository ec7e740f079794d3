"""PERT response generation, editing and version history.

Every save creates a new version; rows are never edited in place apart
from clearing is_current on the version being superseded. Per
(user, competency) the state moves from no response, to version 1 current,
to version N current with N-1 archived, and never reaches a terminal state.

Save protocol, inside one savepoint:
1. SELECT the current row FOR UPDATE
2. Copy it into cpa_pert_history and set is_current=false (flushed)
3. INSERT version max+1 with is_current=true

A concurrent writer that slips past the lock trips the unique constraints
on (user, competency, version) or the one-current partial index; the
savepoint is rolled back, so the loser writes nothing and gets
ConcurrencyConflictError.
"""

import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.core.config import settings
from pathfinder.core.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from pathfinder.models.pert_response import PertResponse
from pathfinder.providers.llm.base import LLMProvider
from pathfinder.repositories.experience_repository import ExperienceRepository
from pathfinder.repositories.mapping_repository import MappingRepository
from pathfinder.repositories.pert_response_repository import PertResponseRepository
from pathfinder.services.competency_catalog import get_competency
from pathfinder.services.pert_generation import (
    extract_quantified_impact,
    generate_star_sections,
)
from pathfinder.services.scoring import ScoringPolicy
from pathfinder.services.star_format import StarSections, render_checked

logger = logging.getLogger(__name__)

_VALID_LEVELS = (0, 1, 2)

# generate() may lose a version race to a concurrent save; it re-reads the
# current row and tries again this many times in total.
_MAX_SAVE_ATTEMPTS = 3


# =============================================================================
# Generate
# =============================================================================


async def generate(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    experience_id: uuid.UUID,
    competency_id: str,
    proficiency_level: int,
    changed_by: str | None = None,
    provider: LLMProvider | None = None,
    policy: ScoringPolicy | None = None,
) -> PertResponse:
    """Generate a STAR response and store it as the new current version.

    Args:
        db: Async database session. The caller commits.
        user_id: Owner.
        experience_id: Source experience (must belong to the user).
        competency_id: Target competency.
        proficiency_level: Level to claim (0, 1 or 2).
        changed_by: Recorded on the archived previous version, if any.
        provider: Completion provider override.
        policy: Thresholds. Defaults to settings.

    Returns:
        The new current version.

    Raises:
        ValidationError: Bad level, no sufficiently relevant mapping, or
            rendered text over the character ceiling.
        NotFoundError: Unknown competency or experience.
        PertGenerationError: Provider failure, timeout or unusable reply.
        ConcurrencyConflictError: Lost the version race on every attempt.
    """
    if proficiency_level not in _VALID_LEVELS:
        raise ValidationError("proficiency_level must be 0, 1 or 2")

    policy = policy or ScoringPolicy.from_settings()
    competency = await get_competency(db, competency_id)
    experience = await ExperienceRepository.get_for_user(
        db, experience_id, user_id=user_id
    )
    if experience is None:
        raise NotFoundError("Experience", str(experience_id))

    mapping = await MappingRepository.get_for_pair(
        db,
        experience_id=experience_id,
        competency_id=competency_id,
        user_id=user_id,
    )
    if mapping is None or mapping.relevance_score < policy.min_relevance:
        raise ValidationError(
            f"No competency mapping for {competency_id} with relevance of at "
            f"least {policy.min_relevance}. Map the experience first."
        )

    generated = await generate_star_sections(
        experience=experience,
        competency=competency,
        proficiency_level=proficiency_level,
        evidence=list(mapping.evidence_extracted),
        provider=provider,
    )
    response_text, character_count = render_checked(
        generated.sections, max_characters=settings.pert_max_characters
    )

    for attempt in range(1, _MAX_SAVE_ATTEMPTS + 1):
        try:
            response = await _save_new_version(
                db,
                user_id=user_id,
                experience_id=experience_id,
                competency_id=competency_id,
                proficiency_level=proficiency_level,
                sections=generated.sections,
                response_text=response_text,
                character_count=character_count,
                quantified_impact=generated.quantified_impact,
                changed_by=changed_by,
                change_reason="Regenerated",
            )
        except ConcurrencyConflictError:
            if attempt == _MAX_SAVE_ATTEMPTS:
                raise
            logger.warning(
                "Version race on %s for user %s (attempt %d/%d), retrying",
                competency_id,
                user_id,
                attempt,
                _MAX_SAVE_ATTEMPTS,
            )
            continue
        logger.info(
            "Generated PERT %s v%d for user %s (%d chars)",
            competency_id,
            response.version,
            user_id,
            character_count,
        )
        return response

    raise RuntimeError("Save loop exited without result")


# =============================================================================
# Update
# =============================================================================


async def update(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    response_id: uuid.UUID,
    sections: StarSections,
    quantified_impact: str | None = None,
    changed_by: str | None = None,
    change_reason: str | None = None,
) -> PertResponse:
    """Save edited sections as a new version superseding ``response_id``.

    The edit applies only if ``response_id`` is still the current version;
    if another save got there first the caller must reload and retry.

    Args:
        db: Async database session. The caller commits.
        user_id: Owner.
        response_id: Version being edited (must be current).
        sections: Full replacement STAR sections.
        quantified_impact: Explicit impact summary. Extracted from the new
            text when omitted.
        changed_by: Editor, recorded on the archived version.
        change_reason: Free-text reason, recorded on the archived version.

    Returns:
        The new current version.

    Raises:
        NotFoundError: No such response for this user.
        ConcurrencyConflictError: ``response_id`` is no longer current.
        ValidationError: Empty section or text over the character ceiling.
    """
    existing = await PertResponseRepository.get_by_id(db, response_id, user_id=user_id)
    if existing is None:
        raise NotFoundError("PertResponse", str(response_id))
    if not existing.is_current:
        raise ConcurrencyConflictError(
            "This response has been superseded. Reload the current version and "
            "retry.",
            details=[{"response_id": str(response_id), "version": existing.version}],
        )

    response_text, character_count = render_checked(
        sections, max_characters=settings.pert_max_characters
    )
    if quantified_impact is None:
        quantified_impact = extract_quantified_impact(
            f"{sections.action}\n{sections.result}"
        )

    response = await _save_new_version(
        db,
        user_id=user_id,
        experience_id=existing.experience_id,
        competency_id=existing.competency_id,
        proficiency_level=existing.proficiency_level,
        sections=sections,
        response_text=response_text,
        character_count=character_count,
        quantified_impact=quantified_impact,
        changed_by=changed_by,
        change_reason=change_reason or "Edited",
        expected_current_id=existing.id,
    )
    logger.info(
        "Saved PERT %s v%d for user %s",
        response.competency_id,
        response.version,
        user_id,
    )
    return response


# =============================================================================
# Reads
# =============================================================================


async def get_current(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    competency_id: str,
) -> PertResponse | None:
    """The current version for the pair, or None."""
    return await PertResponseRepository.get_current(
        db, user_id=user_id, competency_id=competency_id
    )


async def get_history(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    competency_id: str,
) -> list[PertResponse]:
    """Every version for the pair, oldest first."""
    return await PertResponseRepository.list_versions(
        db, user_id=user_id, competency_id=competency_id
    )


async def list_current_responses(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
) -> list[PertResponse]:
    """Current versions across all of a user's competencies."""
    return await PertResponseRepository.list_current_for_user(db, user_id=user_id)


# =============================================================================
# Versioning
# =============================================================================


async def _save_new_version(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    experience_id: uuid.UUID,
    competency_id: str,
    proficiency_level: int,
    sections: StarSections,
    response_text: str,
    character_count: int,
    quantified_impact: str | None,
    changed_by: str | None,
    change_reason: str | None,
    expected_current_id: uuid.UUID | None = None,
) -> PertResponse:
    """Archive the current version and insert the next one atomically.

    Raises:
        ConcurrencyConflictError: The current row is not
            ``expected_current_id``, or a unique constraint rejected the
            write. Nothing is written in either case.
    """
    try:
        async with db.begin_nested():
            current = await PertResponseRepository.get_current(
                db, user_id=user_id, competency_id=competency_id, for_update=True
            )
            if expected_current_id is not None and (
                current is None or current.id != expected_current_id
            ):
                raise ConcurrencyConflictError(
                    "This response has been superseded. Reload the current "
                    "version and retry."
                )
            if current is not None:
                await PertResponseRepository.archive_current(
                    db, current, changed_by=changed_by, change_reason=change_reason
                )

            version = (
                await PertResponseRepository.max_version(
                    db, user_id=user_id, competency_id=competency_id
                )
                + 1
            )
            response = await PertResponseRepository.insert_version(
                db,
                PertResponse(
                    user_id=user_id,
                    experience_id=experience_id,
                    competency_id=competency_id,
                    proficiency_level=proficiency_level,
                    situation_text=sections.situation,
                    task_text=sections.task,
                    action_text=sections.action,
                    result_text=sections.result,
                    response_text=response_text,
                    character_count=character_count,
                    quantified_impact=quantified_impact,
                    # Only text within the ceiling with all four sections
                    # reaches this point
                    is_compliant=True,
                    version=version,
                    is_current=True,
                ),
            )
    except IntegrityError as e:
        logger.warning(
            "Concurrent PERT save rejected for %s, user %s: %s",
            competency_id,
            user_id,
            e.orig,
        )
        raise ConcurrencyConflictError(
            "Another save for this competency completed first. Reload the "
            "current version and retry."
        ) from e
    return response
