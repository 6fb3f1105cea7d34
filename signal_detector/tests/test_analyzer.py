"""Tests for the risk analysis pipeline: ranking, caching and degradation paths."""

import json

import pytest
from sqlalchemy.exc import OperationalError

from signal_detector.models.risk import AnalysisResult, Sentiment, Trend
from signal_detector.nlp.sentiment import TextClassifier
from signal_detector.observability.metrics import metrics
from signal_detector.risk.analyzer import (
    ANALYSIS_CACHE_KEY,
    ANALYSIS_CACHE_TTL_SECONDS,
    NO_CRITICAL_ISSUES,
    RiskAnalyzer,
    top_risks_view,
)
from signal_detector.risk.recommendations import DEFAULT_RECOMMENDATION
from signal_detector.services.cache import AnalysisCache, InMemoryCache
from signal_detector.store import FeedbackStore


class RuleClassifier(TextClassifier):
    """Replies by the first rule whose marker appears in the prompt."""

    def __init__(self, rules=None, default="neutral", fail_on=()):
        self.rules = rules or {}
        self.default = default
        self.fail_on = fail_on
        self.calls = 0

    @property
    def name(self) -> str:
        return "rules"

    async def complete(self, messages):
        self.calls += 1
        prompt = messages[-1]["content"]
        for marker in self.fail_on:
            if marker in prompt:
                raise TimeoutError(f"classifier timed out on {marker}")
        for marker, label in self.rules.items():
            if marker in prompt:
                return json.dumps({"sentiment": label, "confidence": 90})
        return json.dumps({"sentiment": self.default, "confidence": 50})


class RecordingCache(InMemoryCache):
    def __init__(self):
        super().__init__()
        self.writes = []

    async def set_json(self, key, value, ttl_seconds):
        self.writes.append((key, ttl_seconds))
        await super().set_json(key, value, ttl_seconds)


class BrokenCache(AnalysisCache):
    async def get_json(self, key):
        raise ConnectionError("cache down")

    async def set_json(self, key, value, ttl_seconds):
        raise ConnectionError("cache down")


class BrokenStore:
    async def cohort_rows(self, now):
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))


def make_analyzer(classifier=None, cache=None, concurrency=1):
    return RiskAnalyzer(
        classifier=classifier or RuleClassifier(),
        cache=cache if cache is not None else InMemoryCache(),
        concurrency=concurrency,
        sentiment_timeout=1,
    )


class TestRiskAnalyzer:
    @pytest.mark.asyncio
    async def test_reference_cohort_score(self, db_session, add_feedback, now):
        await add_feedback("performance", "enterprise", count=3, age_days=0.5, content="Inference timeout")
        analyzer = make_analyzer(RuleClassifier(default="critical"))

        result = await analyzer.run(FeedbackStore(db_session), now=now)

        risk = result.all_risks[0]
        assert risk.severity_score == 491
        assert risk.sentiment == Sentiment.CRITICAL
        assert risk.trend == Trend.ACCELERATING
        assert risk.velocity == 6.0
        assert risk.complaint_count == 3
        assert risk.recommendation.startswith("URGENT")
        assert len(risk.sample_feedback) == 3

    @pytest.mark.asyncio
    async def test_all_risks_sorted_and_top_risks_is_prefix(self, db_session, add_feedback, now):
        await add_feedback("dx", "developer", count=1, age_days=30)
        await add_feedback("security", "enterprise", count=2, age_days=3)
        await add_feedback("billing", "developer", count=4, age_days=10)
        await add_feedback("performance", "enterprise", count=1, age_days=0.2)
        await add_feedback("documentation", "developer", count=2, age_days=20)
        await add_feedback("reliability", "enterprise", count=3, age_days=5)
        await add_feedback("quality", "developer", count=6, age_days=8)

        result = await make_analyzer().run(FeedbackStore(db_session), now=now)

        scores = [r.severity_score for r in result.all_risks]
        assert scores == sorted(scores, reverse=True)
        assert result.total_risks == 7
        assert len(result.top_risks) == 5
        assert result.top_risks == result.all_risks[:5]
        assert result.critical_count == sum(1 for s in scores if s > 100)
        assert result.cached is False

    @pytest.mark.asyncio
    async def test_fewer_than_five_risks(self, db_session, add_feedback, now):
        await add_feedback("dx", "developer", count=1)
        await add_feedback("billing", "enterprise", count=1)

        result = await make_analyzer().run(FeedbackStore(db_session), now=now)
        assert result.total_risks == 2
        assert result.top_risks == result.all_risks

    @pytest.mark.asyncio
    async def test_equal_scores_keep_discovery_order(self, db_session, add_feedback, now):
        await add_feedback("alpha", "developer", count=2, age_days=10)
        await add_feedback("beta", "developer", count=2, age_days=10)
        await add_feedback("gamma", "developer", count=2, age_days=10)

        result = await make_analyzer().run(FeedbackStore(db_session), now=now)
        assert [r.category for r in result.all_risks] == ["alpha", "beta", "gamma"]
        assert {r.severity_score for r in result.all_risks} == {20}

    @pytest.mark.asyncio
    async def test_critical_count_uses_strict_threshold(self, db_session, add_feedback, now):
        # 10 × 10 = 100 exactly, not critical
        await add_feedback("other", "developer", count=10, age_days=30)
        await add_feedback("other", "enterprise", count=10, age_days=30)

        result = await make_analyzer().run(FeedbackStore(db_session), now=now)
        by_segment = {r.user_type: r.severity_score for r in result.all_risks}
        assert by_segment == {"enterprise": 300, "developer": 100}
        assert result.critical_count == 1

    @pytest.mark.asyncio
    async def test_classifier_failure_is_isolated_to_one_cohort(self, db_session, add_feedback, now):
        await add_feedback("billing", "enterprise", count=2, age_days=10, content="Invoice doubled")
        await add_feedback("dx", "developer", count=2, age_days=10, content="Deploy hangs")
        classifier = RuleClassifier(default="critical", fail_on=("Invoice",))
        failures_before = metrics.snapshot()["analysis"]["classifier_failures"]

        result = await make_analyzer(classifier).run(FeedbackStore(db_session), now=now)

        by_category = {r.category: r for r in result.all_risks}
        billing = by_category["billing"]
        assert billing.sentiment == Sentiment.NEUTRAL
        # 20 × 3.0 × 1.7, no sentiment multiplier
        assert billing.severity_score == 102
        assert billing.recommendation
        assert by_category["dx"].sentiment == Sentiment.CRITICAL
        assert by_category["dx"].severity_score == 28
        assert classifier.calls == 2
        assert metrics.snapshot()["analysis"]["classifier_failures"] == failures_before + 1

    @pytest.mark.asyncio
    async def test_concurrent_sentiment_matches_sequential(self, db_session, add_feedback, now):
        await add_feedback("billing", "enterprise", count=2, content="Invoice doubled")
        await add_feedback("dx", "developer", count=3, content="Deploy hangs")
        await add_feedback("security", "enterprise", count=1, content="Token leaked")
        rules = {"Invoice": "negative", "Token": "critical"}

        sequential = await make_analyzer(RuleClassifier(rules)).run(FeedbackStore(db_session), now=now)
        concurrent = await make_analyzer(RuleClassifier(rules), concurrency=3).run(FeedbackStore(db_session), now=now)

        assert [r.model_dump() for r in concurrent.all_risks] == [r.model_dump() for r in sequential.all_risks]

    @pytest.mark.asyncio
    async def test_second_run_within_ttl_is_served_from_cache(self, db_session, add_feedback, now):
        await add_feedback("performance", "enterprise", count=3, content="Slow uploads")
        await add_feedback("dx", "developer", count=1, content="Docs")
        classifier = RuleClassifier({"Slow": "negative"})
        cache = RecordingCache()
        analyzer = make_analyzer(classifier, cache)

        first = await analyzer.run(FeedbackStore(db_session), now=now)
        second = await analyzer.run(FeedbackStore(db_session), now=now)

        assert first.cached is False
        assert second.cached is True
        assert classifier.calls == 2
        assert cache.writes == [(ANALYSIS_CACHE_KEY, ANALYSIS_CACHE_TTL_SECONDS)]
        assert json.dumps(second.model_dump(mode="json")["all_risks"]) == json.dumps(
            first.model_dump(mode="json")["all_risks"]
        )
        assert json.dumps(second.model_dump(mode="json")["top_risks"]) == json.dumps(
            first.model_dump(mode="json")["top_risks"]
        )
        assert second.analysis_time == first.analysis_time

    @pytest.mark.asyncio
    async def test_cache_hit_skips_store(self, now):
        cache = InMemoryCache()
        cached = AnalysisResult(
            analysis_time=now, total_risks=0, critical_count=0, top_risks=[], all_risks=[], cached=False
        )
        await cache.set_json(ANALYSIS_CACHE_KEY, cached.model_dump(mode="json"), 300)

        result = await make_analyzer(cache=cache).run(BrokenStore(), now=now)
        assert result.cached is True
        assert result.total_risks == 0

    @pytest.mark.asyncio
    async def test_malformed_cache_payload_is_a_miss(self, db_session, add_feedback, now):
        await add_feedback("dx", "developer")
        cache = InMemoryCache()
        await cache.set_json(ANALYSIS_CACHE_KEY, {"unexpected": True}, 300)

        result = await make_analyzer(cache=cache).run(FeedbackStore(db_session), now=now)
        assert result.cached is False
        assert result.total_risks == 1

    @pytest.mark.asyncio
    async def test_cache_failures_are_ignored(self, db_session, add_feedback, now):
        await add_feedback("dx", "developer", count=2)

        result = await make_analyzer(cache=BrokenCache()).run(FeedbackStore(db_session), now=now)
        assert result.cached is False
        assert result.total_risks == 1

    @pytest.mark.asyncio
    async def test_store_failure_propagates_without_caching(self, now):
        cache = RecordingCache()
        with pytest.raises(OperationalError):
            await make_analyzer(cache=cache).run(BrokenStore(), now=now)
        assert cache.writes == []

    @pytest.mark.asyncio
    async def test_empty_store(self, db_session, now):
        result = await make_analyzer().run(FeedbackStore(db_session), now=now)
        assert result.total_risks == 0
        assert result.critical_count == 0
        assert result.top_risks == []
        assert result.all_risks == []


class TestTopRisksView:
    @pytest.mark.asyncio
    async def test_first_three_with_headline(self, db_session, add_feedback, now):
        for i, category in enumerate(["performance", "billing", "security", "dx", "quality"]):
            await add_feedback(category, "enterprise", count=i + 1, age_days=10)

        result = await make_analyzer().run(FeedbackStore(db_session), now=now)
        view = top_risks_view(result, now=now)

        assert view.critical_alerts == result.top_risks[:3]
        assert view.summary.total_critical == result.critical_count
        assert view.summary.recommendation == result.top_risks[0].recommendation
        assert view.timestamp == now

    def test_no_risks(self, now):
        empty = AnalysisResult(analysis_time=now, total_risks=0, critical_count=0, top_risks=[], all_risks=[])
        view = top_risks_view(empty)
        assert view.critical_alerts == []
        assert view.summary.recommendation == NO_CRITICAL_ISSUES
        assert view.summary.total_critical == 0

    def test_generic_recommendation_is_available(self):
        assert DEFAULT_RECOMMENDATION.startswith("Monitor")
