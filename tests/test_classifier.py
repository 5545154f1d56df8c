"""Tests for the content classifier seam."""

import logging
from unittest.mock import AsyncMock

import pytest

from creator_scout.analysis.classifier import (
    FALLBACK_CONTENT,
    ContentAnalysis,
    GuardedClassifier,
    KeywordClassifier,
    RelevanceAnalysis,
)
from creator_scout.errors import ClassifierUnavailable


@pytest.mark.asyncio
async def test_keyword_classifier_content_tags():
    classifier = KeywordClassifier()

    analysis = await classifier.analyze_content(
        ["Training a new ML model", "Python tricks for ML pipelines", "Random chat"], []
    )

    assert analysis.tags[0] == "Machine Learning"
    assert "Programming" in analysis.tags
    assert "Discussion" not in analysis.tags
    assert analysis.confidence == pytest.approx(66.7)


@pytest.mark.asyncio
async def test_keyword_classifier_relevance():
    classifier = KeywordClassifier()

    relevant = await classifier.analyze_relevance("Fine-tuning LLMs with PyTorch", "")
    off_topic = await classifier.analyze_relevance("My cat photos", "so fluffy")

    assert relevant.is_relevant
    assert relevant.keywords == ["llms", "pytorch"]
    assert not off_topic.is_relevant
    assert off_topic.confidence >= 0.7


@pytest.mark.asyncio
async def test_guarded_classifier_falls_back_on_failure():
    inner = AsyncMock()
    inner.analyze_content.side_effect = TimeoutError("upstream LLM down")
    inner.analyze_relevance.side_effect = RuntimeError("quota exceeded")
    guarded = GuardedClassifier(inner)

    content = await guarded.analyze_content(["post"], [])
    relevance = await guarded.analyze_relevance("title", "body")

    assert content == FALLBACK_CONTENT
    assert content is not FALLBACK_CONTENT
    assert content.confidence == 10
    assert relevance.is_relevant
    assert relevance.confidence == 0.0


@pytest.mark.asyncio
async def test_guarded_classifier_rejects_out_of_range_confidence():
    inner = AsyncMock()
    inner.analyze_content.return_value = {"tags": ["AI"], "summary": "x", "confidence": 250}
    guarded = GuardedClassifier(inner)

    content = await guarded.analyze_content(["post"])

    assert content == FALLBACK_CONTENT


@pytest.mark.asyncio
async def test_guarded_classifier_bounds_samples():
    inner = AsyncMock()
    inner.analyze_content.return_value = ContentAnalysis(tags=["AI"], summary="ok", confidence=80)
    inner.analyze_relevance.return_value = RelevanceAnalysis(is_relevant=False, confidence=0.9)
    guarded = GuardedClassifier(inner, max_samples=2, max_chars=5)

    content = await guarded.analyze_content(["abcdefgh", "ijklmnop", "qrstuvwx"], ["comment text"])
    await guarded.analyze_relevance("long title here", "long body here")

    inner.analyze_content.assert_awaited_once_with(["abcde", "ijklm"], ["comme"])
    inner.analyze_relevance.assert_awaited_once_with("long ", "long ")
    assert content.tags == ["AI"]
    assert content.confidence == 80


@pytest.mark.asyncio
async def test_guard_reports_failures_as_classifier_unavailable():
    inner = AsyncMock()
    inner.analyze_relevance.side_effect = ConnectionError("reset by peer")
    inner.analyze_content.return_value = "not an analysis"
    guarded = GuardedClassifier(inner)

    with pytest.raises(ClassifierUnavailable, match="classifier call failed: reset by peer"):
        await guarded._checked(RelevanceAnalysis, inner.analyze_relevance, "title", "body")
    with pytest.raises(ClassifierUnavailable, match="malformed classifier response"):
        await guarded._checked(ContentAnalysis, inner.analyze_content, ["post"], [])


@pytest.mark.asyncio
async def test_adapter_raised_classifier_unavailable_is_absorbed(caplog):
    inner = AsyncMock()
    inner.analyze_content.side_effect = ClassifierUnavailable("no API key configured")
    guarded = GuardedClassifier(inner)

    with caplog.at_level(logging.WARNING, logger="creator_scout.analysis.classifier"):
        content = await guarded.analyze_content(["post"])

    assert content == FALLBACK_CONTENT
    assert "no API key configured" in caplog.text
