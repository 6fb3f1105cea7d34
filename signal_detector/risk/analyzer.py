"""Risk analyzer — runs the severity pipeline and assembles the ranked result."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from signal_detector.models.risk import (
    AnalysisResult,
    RiskAssessment,
    RiskSummary,
    TopRisksResponse,
)
from signal_detector.nlp.sentiment import SentimentJudgment, SentimentService, TextClassifier
from signal_detector.observability.metrics import metrics
from signal_detector.risk.aggregator import Cohort, CohortAggregator
from signal_detector.risk.recommendations import recommend
from signal_detector.risk.scorer import SeverityScorer
from signal_detector.risk.trend import analyze_trend
from signal_detector.services.cache import AnalysisCache
from signal_detector.store import FeedbackStore
from signal_detector.utils.time import utc_now

logger = logging.getLogger("signaldetector.analyzer")

ANALYSIS_CACHE_KEY = "analysis:latest"
ANALYSIS_CACHE_TTL_SECONDS = 300
CRITICAL_SCORE_THRESHOLD = 100
TOP_RISKS_LIMIT = 5
CRITICAL_ALERTS_LIMIT = 3
SAMPLE_FEEDBACK_LIMIT = 3
NO_CRITICAL_ISSUES = "No critical issues detected"


class RiskAnalyzer:
    """Orchestrates one analysis run.

    Pipeline per invocation:
      1. Return the cached result if `analysis:latest` is still live
      2. Aggregate feedback into (category, user_type) cohorts
      3. Per cohort: sentiment, trend, severity score, recommendation
      4. Stable sort by score descending, take the top 5
      5. Cache the result for 5 minutes (best-effort)
    """

    def __init__(
        self,
        classifier: TextClassifier,
        cache: AnalysisCache,
        concurrency: int = 1,
        aggregator: CohortAggregator | None = None,
        scorer: SeverityScorer | None = None,
        sentiment_timeout: float | None = None,
    ) -> None:
        self.sentiment = SentimentService(classifier, timeout=sentiment_timeout)
        self.cache = cache
        self.concurrency = max(1, concurrency)
        self.aggregator = aggregator or CohortAggregator()
        self.scorer = scorer or SeverityScorer()

    async def run(self, store: FeedbackStore, now: Optional[datetime] = None) -> AnalysisResult:
        cached = await self._read_cache()
        if cached is not None:
            metrics.observe_analysis(cached=True)
            return cached

        now = now or utc_now()
        cohorts = await self.aggregator.aggregate(store, now)
        judgments = await self._assess_sentiments(cohorts)

        risks = [self.assess(cohort, judgment) for cohort, judgment in zip(cohorts, judgments)]
        # sorted() is stable: equal scores keep cohort discovery order.
        risks = sorted(risks, key=lambda r: r.severity_score, reverse=True)

        result = AnalysisResult(
            analysis_time=now,
            total_risks=len(risks),
            critical_count=sum(1 for r in risks if r.severity_score > CRITICAL_SCORE_THRESHOLD),
            top_risks=risks[:TOP_RISKS_LIMIT],
            all_risks=risks,
            cached=False,
        )

        await self._write_cache(result)
        metrics.observe_analysis(cached=False)
        logger.info(
            f"Analysis complete: {result.total_risks} cohorts, {result.critical_count} critical"
        )
        return result

    def assess(self, cohort: Cohort, judgment: SentimentJudgment) -> RiskAssessment:
        """Combine trend, score and recommendation for one cohort."""
        reading = analyze_trend(cohort)
        breakdown = self.scorer.breakdown(cohort, judgment.label, reading.trend)
        logger.debug(
            f"score={breakdown.severity_score} base={breakdown.base} "
            f"user={breakdown.user_multiplier} category={breakdown.category_multiplier} "
            f"recency={breakdown.recency_multiplier} sentiment={breakdown.sentiment_multiplier} "
            f"trend={breakdown.trend_multiplier}",
            extra={"cohort": f"{cohort.category}/{cohort.user_type}"},
        )

        return RiskAssessment(
            category=cohort.category,
            user_type=cohort.user_type,
            complaint_count=cohort.count,
            severity_score=breakdown.severity_score,
            sentiment=judgment.label,
            trend=reading.trend,
            velocity=reading.rounded_velocity(),
            sample_feedback=list(cohort.sample_texts[:SAMPLE_FEEDBACK_LIMIT]),
            recommendation=recommend(cohort.category, cohort.user_type, reading.trend, judgment.label),
        )

    async def _assess_sentiments(self, cohorts: list[Cohort]) -> list[SentimentJudgment]:
        if self.concurrency == 1:
            return [
                await self.sentiment.assess(c.sample_texts, f"{c.category}/{c.user_type}")
                for c in cohorts
            ]

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(cohort: Cohort) -> SentimentJudgment:
            async with semaphore:
                return await self.sentiment.assess(
                    cohort.sample_texts, f"{cohort.category}/{cohort.user_type}"
                )

        # gather() keeps input order, so judgments line up with cohorts.
        return list(await asyncio.gather(*(_bounded(c) for c in cohorts)))

    async def _read_cache(self) -> Optional[AnalysisResult]:
        try:
            payload = await self.cache.get_json(ANALYSIS_CACHE_KEY)
        except Exception as exc:
            metrics.observe_cache_error()
            logger.warning(f"Analysis cache read failed, recomputing: {exc!r}")
            return None

        if payload is None:
            return None

        try:
            result = AnalysisResult.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"Discarding malformed cached analysis: {exc.error_count()} errors")
            return None
        return result.model_copy(update={"cached": True})

    async def _write_cache(self, result: AnalysisResult) -> None:
        try:
            await self.cache.set_json(
                ANALYSIS_CACHE_KEY,
                result.model_dump(mode="json"),
                ANALYSIS_CACHE_TTL_SECONDS,
            )
        except Exception as exc:
            metrics.observe_cache_error()
            logger.warning(f"Analysis cache write failed: {exc!r}")


def top_risks_view(result: AnalysisResult, now: Optional[datetime] = None) -> TopRisksResponse:
    """The three highest risks plus a one-line summary."""
    top = result.top_risks
    return TopRisksResponse(
        timestamp=now or utc_now(),
        critical_alerts=top[:CRITICAL_ALERTS_LIMIT],
        summary=RiskSummary(
            total_critical=result.critical_count,
            recommendation=top[0].recommendation if top else NO_CRITICAL_ISSUES,
        ),
    )
