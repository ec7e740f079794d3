"""Competency relevance scoring.

Scoring strategies share one interface, ``score(text, competency) -> float``,
so the competency mapper can run with keyword matching alone, with an AI
semantic score blended in, or with a stub in tests.

KeywordScorer:
    Counts distinct catalog keyword phrases found in the text (stem-prefix
    match at word boundaries, acronyms matched exactly), plus level-criteria
    terms at half weight, and saturates: score = 1 - exp(-hits / saturation).
    Adding matches never lowers the score.

LLMScorer:
    Asks the completion provider for a 0-1 score (TaskType.COMPETENCY_SCORING)
    under an overall deadline.

ScoringPolicy:
    Thresholds and blend weight, loaded from settings.
"""

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache

from pathfinder.core.config import Settings, settings
from pathfinder.models.competency import Competency
from pathfinder.prompts.pert import SCORING_SYSTEM_PROMPT, build_scoring_prompt
from pathfinder.providers import ProviderError, factory
from pathfinder.providers.llm.base import LLMMessage, LLMProvider, TaskType
from pathfinder.providers.retry import complete_with_deadline

_MIN_CRITERIA_TERM_LENGTH = 5
_CRITERIA_TERM_WEIGHT = 0.5

# Frequent long words in criteria text that say nothing about the competency
_CRITERIA_STOPWORDS = frozenset(
    {
        "about",
        "across",
        "appropriate",
        "different",
        "including",
        "other",
        "their",
        "there",
        "these",
        "those",
        "which",
        "while",
        "within",
        "without",
    }
)

_WORD_PATTERN = re.compile(r"[a-z][a-z'&-]*")


# =============================================================================
# Policy
# =============================================================================


@dataclass(frozen=True)
class ScoringPolicy:
    """Thresholds that turn scores into persistence and level decisions.

    Attributes:
        min_relevance: Mappings scoring below this are not persisted.
        level1_threshold: Score at which level 1 is suggested.
        level2_threshold: Score at which level 2 is suggested.
        ai_weight: Weight of the AI score in the blend (keyword gets the rest).
        keyword_saturation: Hits needed for the keyword score to reach
            1 - 1/e.
    """

    min_relevance: float = 0.5
    level1_threshold: float = 0.7
    level2_threshold: float = 0.9
    ai_weight: float = 0.7
    keyword_saturation: float = 3.0

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "ScoringPolicy":
        """Build a policy from application settings."""
        config = config or settings
        return cls(
            min_relevance=config.pert_min_relevance,
            level1_threshold=config.pert_level1_threshold,
            level2_threshold=config.pert_level2_threshold,
            ai_weight=config.pert_ai_weight,
            keyword_saturation=config.pert_keyword_saturation,
        )

    def blend(self, keyword_score: float, ai_score: float | None) -> float:
        """Combine keyword and AI scores; AI dominates when present."""
        if ai_score is None:
            return keyword_score
        blended = self.ai_weight * ai_score + (1 - self.ai_weight) * keyword_score
        return round(min(1.0, max(0.0, blended)), 4)

    def suggested_level(self, score: float) -> int:
        """Map a relevance score to a suggested proficiency level."""
        if score >= self.level2_threshold:
            return 2
        if score >= self.level1_threshold:
            return 1
        return 0

    def should_persist(self, score: float) -> bool:
        """Whether a mapping with this score is worth recording."""
        return score >= self.min_relevance


# =============================================================================
# Strategy Interface
# =============================================================================


class ScoringStrategy(ABC):
    """Scores experience text against one competency."""

    @abstractmethod
    async def score(self, text: str, competency: Competency) -> float:
        """Return a relevance score in [0, 1]."""
        ...


# =============================================================================
# Keyword Scoring
# =============================================================================


@lru_cache(maxsize=256)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Compile a keyword phrase into a word-boundary stem pattern.

    Every token of a phrase matches as a prefix ("control testing" matches
    "controls tested"); all-caps tokens such as "ITA" or "COSO" are
    acronyms and match exactly, with an optional plural "s".
    """
    if keyword.isupper():
        return re.compile(r"(?<![\w&])" + re.escape(keyword) + r"s?(?![\w&])")
    tokens = keyword.lower().split()
    body = r"\s+".join(re.escape(token) + r"[\w'-]*" for token in tokens)
    return re.compile(r"(?<![\w&])" + body, re.IGNORECASE)


def criteria_terms(competency: Competency) -> frozenset[str]:
    """Distinctive words from a competency's level criteria."""
    text = f"{competency.level_1_criteria} {competency.level_2_criteria}".lower()
    return frozenset(
        word
        for word in _WORD_PATTERN.findall(text)
        if len(word) >= _MIN_CRITERIA_TERM_LENGTH and word not in _CRITERIA_STOPWORDS
    )


def matched_keywords(text: str, competency: Competency) -> list[str]:
    """Catalog keywords of ``competency`` that occur in ``text``, in catalog order."""
    return [kw for kw in competency.keywords if _keyword_pattern(kw).search(text)]


class KeywordScorer(ScoringStrategy):
    """Deterministic keyword and criteria-term overlap score."""

    def __init__(self, saturation: float = 3.0) -> None:
        if saturation <= 0:
            raise ValueError("saturation must be positive")
        self.saturation = saturation

    def hits(self, text: str, competency: Competency) -> float:
        """Weighted match count: keywords count 1, criteria terms 0.5."""
        keyword_hits = len(matched_keywords(text, competency))
        words = set(_WORD_PATTERN.findall(text.lower()))
        term_hits = len(criteria_terms(competency) & words)
        return keyword_hits + _CRITERIA_TERM_WEIGHT * term_hits

    async def score(self, text: str, competency: Competency) -> float:
        hits = self.hits(text, competency)
        return round(1 - math.exp(-hits / self.saturation), 4)


# =============================================================================
# AI Scoring
# =============================================================================

_SCORE_PATTERN = re.compile(r"<score>\s*([01](?:\.\d+)?|\.\d+)\s*</score>")


def _parse_score(content: str | None) -> float:
    """Extract the score from ``<score>`` tags.

    Raises:
        ProviderError: If the reply has no parseable score in [0, 1].
    """
    match = _SCORE_PATTERN.search(content or "")
    if match is None:
        raise ProviderError("Competency score missing from model output")
    value = float(match.group(1))
    if not 0.0 <= value <= 1.0:
        raise ProviderError(f"Competency score out of range: {value}")
    return value


class LLMScorer(ScoringStrategy):
    """Semantic score from the completion provider.

    Any failure surfaces as ProviderError (timeouts as ProviderTimeoutError)
    so the caller can fall back to keyword scoring.
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._provider = provider
        if timeout_seconds is None:
            timeout_seconds = settings.llm_timeout_seconds
        self.timeout_seconds = timeout_seconds

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = factory.get_llm_provider()
        return self._provider

    async def score(self, text: str, competency: Competency) -> float:
        messages = [
            LLMMessage(role="system", content=SCORING_SYSTEM_PROMPT),
            LLMMessage(  # sanitized inside build_scoring_prompt()
                role="user",
                content=build_scoring_prompt(
                    competency_id=competency.competency_id,
                    sub_name=competency.sub_name,
                    area_name=competency.area_name,
                    description=competency.description,
                    level_1_criteria=competency.level_1_criteria,
                    level_2_criteria=competency.level_2_criteria,
                    guiding_questions=competency.guiding_questions,
                    experience_text=text,
                ),
            ),
        ]
        response = await complete_with_deadline(
            self.provider,
            messages=messages,
            task=TaskType.COMPETENCY_SCORING,
            timeout_seconds=self.timeout_seconds,
            max_tokens=16,
            temperature=0.0,
        )
        return _parse_score(response.content)


# =============================================================================
# Evidence Extraction
# =============================================================================

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")
_CLAUSE_SPLIT = re.compile(r"[,;]\s*")

MAX_EVIDENCE_FRAGMENTS = 5


def _fragments(text: str) -> list[str]:
    """Split text into sentences, or into clauses when it is one sentence."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    if len(sentences) >= 2:
        return sentences
    return [c.strip() for c in _CLAUSE_SPLIT.split(text) if c.strip()]


def extract_evidence(
    text: str,
    competency: Competency,
    *,
    limit: int = MAX_EVIDENCE_FRAGMENTS,
) -> list[str]:
    """Pick 1-5 verbatim fragments of ``text`` that support ``competency``.

    Fragments containing a catalog keyword come first, in text order. When
    none match, the opening fragment is returned so a mapping always carries
    at least one quote.

    Returns:
        Verbatim (whitespace-stripped) substrings of ``text``. Empty only
        when ``text`` is blank.
    """
    fragments = _fragments(text)
    if not fragments:
        return []
    patterns = [_keyword_pattern(kw) for kw in competency.keywords]
    supporting = [f for f in fragments if any(p.search(f) for p in patterns)]
    if not supporting:
        supporting = fragments[:1]
    return supporting[:limit]
