"""Tests for the competency mapper.

Covers keyword-only mapping, AI blending, the degrade-to-keywords path on
provider failure, upsert-on-remap, batch mapping and manual validation.
"""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.core.errors import NotFoundError, ValidationError
from pathfinder.models.competency import Competency
from pathfinder.models.experience import Experience
from pathfinder.providers import ProviderError, ProviderTimeoutError, TransientError
from pathfinder.providers.llm.base import TaskType
from pathfinder.providers.llm.mock_adapter import MockLLMProvider
from pathfinder.repositories.mapping_repository import MappingRepository
from pathfinder.services.competency_mapper import (
    list_mappings_for_experience,
    list_mappings_for_user,
    map_experience_to_competencies,
    map_experiences_batch,
    validate_mapping,
)
from pathfinder.services.competency_catalog import CPA_COMPETENCIES
from pathfinder.services.scoring import LLMScorer, ScoringStrategy
from tests.conftest import (
    AA1_EXPERIENCE_TEXT,
    AUDIT_FIELDWORK_TEXT,
    TEST_USER_ID,
    USER_B_ID,
    make_experience,
)


class _FixedScorer(ScoringStrategy):
    """Returns a preset score per competency (0 for the rest)."""

    def __init__(self, scores: dict[str, float]) -> None:
        self.scores = scores

    async def score(self, text: str, competency: Competency) -> float:  # noqa: ARG002
        return self.scores.get(competency.competency_id, 0.0)


# =============================================================================
# Mapping
# =============================================================================


class TestMapExperience:
    """Tests for map_experience_to_competencies."""

    @pytest.mark.asyncio
    async def test_keyword_mapping_finds_aa1_not_tx1(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Control testing text maps to AA1 at level 1+ and skips TX1."""
        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
        )

        by_id = {m.competency_id: m for m in mappings}
        assert "AA1" in by_id
        assert by_id["AA1"].relevance_score >= 0.7
        assert by_id["AA1"].suggested_proficiency >= 1
        assert "TX1" not in by_id

    @pytest.mark.asyncio
    async def test_audit_fieldwork_sentence_maps_to_aa1_only(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """The audit fieldwork example persists AA1 at level 1+ and drops TX1."""
        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AUDIT_FIELDWORK_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
        )

        by_id = {m.competency_id: m for m in mappings}
        assert by_id["AA1"].relevance_score >= 0.7
        assert by_id["AA1"].suggested_proficiency >= 1
        assert "TX1" not in by_id

    @pytest.mark.asyncio
    async def test_results_sorted_by_relevance_then_id(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Strongest first; ties broken by competency ID."""
        scorer = _FixedScorer({"FR1": 0.6, "AA1": 0.8, "AA2": 0.6, "TX1": 0.2})

        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
            scorer=scorer,
        )

        assert [m.competency_id for m in mappings] == ["AA1", "AA2", "FR1"]

    @pytest.mark.asyncio
    async def test_evidence_is_verbatim(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Stored evidence quotes the experience text exactly."""
        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
        )

        for mapping in mappings:
            assert 1 <= len(mapping.evidence_extracted) <= 5
            assert all(e in AA1_EXPERIENCE_TEXT for e in mapping.evidence_extracted)

    @pytest.mark.asyncio
    async def test_remap_overwrites_instead_of_duplicating(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """A second run updates the same rows."""
        first = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
            scorer=_FixedScorer({"AA1": 0.6}),
        )
        second = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
            scorer=_FixedScorer({"AA1": 0.95}),
        )

        assert first[0].id == second[0].id
        stored = await list_mappings_for_experience(
            db_session, user_id=TEST_USER_ID, experience_id=experience.id
        )
        assert len(stored) == 1
        assert stored[0].relevance_score == 0.95
        assert stored[0].suggested_proficiency == 2

    @pytest.mark.asyncio
    async def test_ai_score_is_blended(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """0.7 * AI + 0.3 * keyword."""
        mock = MockLLMProvider({TaskType.COMPETENCY_SCORING: "<score>1.0</score>"})

        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
            scorer=_FixedScorer({"AA1": 0.5}),
            semantic_scorer=LLMScorer(mock),
        )

        by_id = {m.competency_id: m for m in mappings}
        assert by_id["AA1"].relevance_score == pytest.approx(0.85)
        # Every other competency blends 0.7 * 1.0 + 0.3 * 0 = 0.7
        assert len(mappings) == len(CPA_COMPETENCIES)

    @pytest.mark.asyncio
    async def test_provider_failure_degrades_to_keywords(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """A failing AI provider still yields keyword-based mappings."""
        mock = MockLLMProvider()
        mock.set_error(TaskType.COMPETENCY_SCORING, TransientError("503"))

        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
            semantic_scorer=LLMScorer(mock),
        )

        assert "AA1" in {m.competency_id for m in mappings}
        # Gave up on the provider after the first failure
        assert len(mock.calls) == 1

    @pytest.mark.asyncio
    async def test_provider_timeout_degrades_to_keywords(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """A hung provider is abandoned at the deadline."""
        mock = MockLLMProvider({TaskType.COMPETENCY_SCORING: "<score>0.9</score>"})
        mock.delay_seconds = 1.0

        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
            semantic_scorer=LLMScorer(mock, timeout_seconds=0.05),
        )

        assert "AA1" in {m.competency_id for m in mappings}

    def test_timeout_error_is_a_provider_error(self) -> None:
        """Deadline failures take the same fallback path as provider errors."""
        assert issubclass(ProviderTimeoutError, ProviderError)

    @pytest.mark.asyncio
    async def test_unowned_experience_raises_not_found(
        self, db_session: AsyncSession
    ) -> None:
        """Another user's experience looks nonexistent."""
        other = make_experience(USER_B_ID)
        db_session.add(other)
        await db_session.flush()

        with pytest.raises(NotFoundError):
            await map_experience_to_competencies(
                db_session,
                experience_text="anything",
                user_id=TEST_USER_ID,
                experience_id=other.id,
            )


# =============================================================================
# Batch
# =============================================================================


class TestMapExperiencesBatch:
    """Tests for map_experiences_batch."""

    @pytest.mark.asyncio
    async def test_maps_each_experience(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Results are keyed by experience ID."""
        tax = make_experience(
            title="Tax Associate",
            description="Prepared T2 corporate tax returns and tax provisions.",
        )
        db_session.add(tax)
        await db_session.flush()

        results = await map_experiences_batch(
            db_session,
            user_id=TEST_USER_ID,
            experience_ids=[experience.id, tax.id, experience.id],
        )

        assert list(results) == [experience.id, tax.id]
        assert "AA1" in {m.competency_id for m in results[experience.id]}
        assert "TX1" in {m.competency_id for m in results[tax.id]}

    @pytest.mark.asyncio
    async def test_unknown_id_fails_whole_batch(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Nothing is mapped when any ID is missing."""
        with pytest.raises(NotFoundError):
            await map_experiences_batch(
                db_session,
                user_id=TEST_USER_ID,
                experience_ids=[experience.id, uuid.uuid4()],
            )

        stored = await list_mappings_for_user(db_session, user_id=TEST_USER_ID)
        assert stored == []


# =============================================================================
# Validation
# =============================================================================


class TestValidateMapping:
    """Tests for validate_mapping."""

    @pytest.mark.asyncio
    async def test_validation_sets_reviewer_and_timestamp(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Validated mappings record who reviewed them and when."""
        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
        )

        updated = await validate_mapping(
            db_session,
            mappings[0].id,
            user_id=TEST_USER_ID,
            is_validated=True,
            method="MENTOR_VALIDATED",
            validated_by="J. Mentor, CPA",
        )

        assert updated.is_validated is True
        assert updated.mapping_method == "MENTOR_VALIDATED"
        assert updated.validated_by == "J. Mentor, CPA"
        assert updated.validated_at is not None

    @pytest.mark.asyncio
    async def test_score_change_rederives_suggested_level(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Lowering the score lowers the suggested proficiency."""
        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
            scorer=_FixedScorer({"AA1": 0.95}),
        )

        updated = await validate_mapping(
            db_session,
            mappings[0].id,
            user_id=TEST_USER_ID,
            is_validated=True,
            method="USER_EDITED",
            relevance_score=0.6,
            evidence=["  identified control deficiencies  "],
        )

        assert updated.relevance_score == 0.6
        assert updated.suggested_proficiency == 0
        assert updated.evidence_extracted == ["identified control deficiencies"]

    @pytest.mark.asyncio
    async def test_rejects_blank_evidence(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """Evidence must keep at least one non-blank quote."""
        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
        )

        with pytest.raises(ValidationError):
            await validate_mapping(
                db_session,
                mappings[0].id,
                user_id=TEST_USER_ID,
                is_validated=True,
                method="USER_EDITED",
                evidence=["   "],
            )

    @pytest.mark.asyncio
    async def test_rejects_unknown_method(self, db_session: AsyncSession) -> None:
        """Only the three mapping methods are accepted."""
        with pytest.raises(ValidationError):
            await validate_mapping(
                db_session,
                uuid.uuid4(),
                user_id=TEST_USER_ID,
                is_validated=True,
                method="GUESSED",
            )

    @pytest.mark.asyncio
    async def test_other_users_mapping_is_not_found(
        self, db_session: AsyncSession, experience: Experience
    ) -> None:
        """User B cannot validate User A's mapping."""
        mappings = await map_experience_to_competencies(
            db_session,
            experience_text=AA1_EXPERIENCE_TEXT,
            user_id=TEST_USER_ID,
            experience_id=experience.id,
        )

        with pytest.raises(NotFoundError):
            await validate_mapping(
                db_session,
                mappings[0].id,
                user_id=USER_B_ID,
                is_validated=True,
                method="USER_EDITED",
            )

    @pytest.mark.asyncio
    async def test_mapping_repository_rejects_identity_fields(
        self, db_session: AsyncSession
    ) -> None:
        """Identity columns are not updatable."""
        with pytest.raises(ValueError):
            await MappingRepository.update(
                db_session,
                uuid.uuid4(),
                user_id=TEST_USER_ID,
                experience_id=uuid.uuid4(),
            )
