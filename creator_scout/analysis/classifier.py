"""Content classifier seam.

The pipeline only talks to a :class:`ContentClassifier`. LLM-backed adapters
live outside this package; :class:`KeywordClassifier` is the built-in
deterministic implementation. Every classifier is used through
:class:`GuardedClassifier`, which bounds the sample sent to it and turns any
failure into a low-confidence default.
"""

import logging
import re
from typing import Any, Awaitable, Callable, List, Protocol, Sequence, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from creator_scout.analysis.aggregator import DEFAULT_CATEGORY, categorize
from creator_scout.errors import ClassifierUnavailable

logger = logging.getLogger(__name__)

RELEVANCE_PATTERN = re.compile(
    r"\b(?:machine learning|deep learning|neural networks?|llms?|gpt|ai|ml|data science|"
    r"nlp|computer vision|transformers?|pytorch|tensorflow|datasets?|models?)\b",
    re.IGNORECASE,
)


class ContentAnalysis(BaseModel):
    """Topical tags for a creator's content. Confidence is 0-100."""

    tags: List[str] = Field(default_factory=list)
    summary: str = ""
    confidence: float = Field(default=0.0, ge=0, le=100)


class RelevanceAnalysis(BaseModel):
    """Whether a single post is on-topic. Confidence is 0-1."""

    is_relevant: bool = True
    category: str = DEFAULT_CATEGORY
    keywords: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0, le=1)


FALLBACK_CONTENT = ContentAnalysis(tags=["Data Science"], summary="Analysis unavailable", confidence=10)
FALLBACK_RELEVANCE = RelevanceAnalysis(is_relevant=True, category="General", keywords=[], confidence=0.0)

AnalysisT = TypeVar("AnalysisT", bound=BaseModel)


class ContentClassifier(Protocol):
    """A protocol for content classification backends."""

    async def analyze_content(self, posts: Sequence[str], comments: Sequence[str]) -> ContentAnalysis:
        """Tag a creator from samples of their posts and comments."""
        ...

    async def analyze_relevance(self, title: str, body: str) -> RelevanceAnalysis:
        """Judge whether a post is relevant to AI/ML/data science."""
        ...


class KeywordClassifier:
    """Deterministic classifier built on the aggregator's keyword categories."""

    async def analyze_content(self, posts: Sequence[str], comments: Sequence[str]) -> ContentAnalysis:
        texts = list(posts) + list(comments)
        if not texts:
            return ContentAnalysis(tags=[DEFAULT_CATEGORY], summary="No content", confidence=0)

        counts = {}
        for text in texts:
            for category in categorize(text):
                counts[category] = counts.get(category, 0) + 1

        tags = sorted(counts, key=lambda tag: (-counts[tag], tag))
        if len(tags) > 1 and DEFAULT_CATEGORY in tags:
            tags.remove(DEFAULT_CATEGORY)
        matched = sum(1 for text in texts if categorize(text) != {DEFAULT_CATEGORY})
        return ContentAnalysis(
            tags=tags[:3],
            summary=f"Posts mostly about {', '.join(tags[:3])}",
            confidence=round(100 * matched / len(texts), 1),
        )

    async def analyze_relevance(self, title: str, body: str) -> RelevanceAnalysis:
        text = f"{title} {body}"
        keywords = sorted({match.lower() for match in RELEVANCE_PATTERN.findall(text)})
        categories = categorize(text) - {DEFAULT_CATEGORY}
        return RelevanceAnalysis(
            is_relevant=bool(keywords or categories),
            category=sorted(categories)[0] if categories else DEFAULT_CATEGORY,
            keywords=keywords,
            confidence=min(0.5 + 0.1 * len(keywords), 0.95) if keywords else 0.75,
        )


class GuardedClassifier:
    """
    Wraps a classifier with sampling limits and failure absorption.

    Args:
        inner: Classifier doing the actual work
        max_samples: Maximum posts and comments passed per call
        max_chars: Maximum characters kept from each text
    """

    def __init__(self, inner: ContentClassifier, max_samples: int = 3, max_chars: int = 2000):
        self.inner = inner
        self.max_samples = max_samples
        self.max_chars = max_chars

    def _sample(self, texts: Sequence[str]) -> List[str]:
        return [text[:self.max_chars] for text in list(texts)[:self.max_samples]]

    async def _checked(self, model: Type[AnalysisT], func: Callable[..., Awaitable[Any]], *args: Any) -> AnalysisT:
        """
        Await a classifier call and validate its answer.

        Raises:
            ClassifierUnavailable: If the call fails or the answer does not
                fit ``model``
        """
        try:
            analysis = await func(*args)
        except ClassifierUnavailable:
            raise
        except Exception as e:
            raise ClassifierUnavailable(f"classifier call failed: {e}") from e

        try:
            return model.model_validate(analysis, from_attributes=True)
        except ValidationError as e:
            raise ClassifierUnavailable(f"malformed classifier response: {e}") from e

    async def analyze_content(self, posts: Sequence[str], comments: Sequence[str] = ()) -> ContentAnalysis:
        try:
            return await self._checked(
                ContentAnalysis, self.inner.analyze_content, self._sample(posts), self._sample(comments)
            )
        except ClassifierUnavailable as e:
            logger.warning(f"Content classifier unavailable, using default analysis: {e}")
            return FALLBACK_CONTENT.model_copy(deep=True)

    async def analyze_relevance(self, title: str, body: str) -> RelevanceAnalysis:
        try:
            return await self._checked(
                RelevanceAnalysis, self.inner.analyze_relevance, title[:self.max_chars], body[:self.max_chars]
            )
        except ClassifierUnavailable as e:
            logger.warning(f"Relevance classifier unavailable, keeping post: {e}")
            return FALLBACK_RELEVANCE.model_copy(deep=True)
