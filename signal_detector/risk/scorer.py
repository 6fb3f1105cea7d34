"""Severity scorer — deterministic multiplier chain per feedback cohort."""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType

from signal_detector.models.feedback import UserType
from signal_detector.models.risk import Sentiment, Trend
from signal_detector.risk.aggregator import Cohort

BASE_POINTS_PER_COMPLAINT = 10

USER_MULTIPLIERS = MappingProxyType({
    UserType.ENTERPRISE.value: 3.0,
})

CATEGORY_MULTIPLIERS = MappingProxyType({
    "performance": 2.0,
    "reliability": 1.8,
    "billing": 1.7,
    "security": 2.5,
    "data-loss": 3.0,
})

SENTIMENT_MULTIPLIERS = MappingProxyType({
    Sentiment.CRITICAL: 1.4,
    Sentiment.NEGATIVE: 1.2,
    Sentiment.NEUTRAL: 1.0,
    Sentiment.POSITIVE: 1.0,
})

TREND_MULTIPLIERS = MappingProxyType({
    Trend.ACCELERATING: 1.3,
    Trend.RISING: 1.0,
    Trend.STABLE: 1.0,
})


def round_half_up(value: float) -> int:
    """Round a non-negative value to the nearest integer, .5 going up."""
    return int(math.floor(value + 0.5))


def recency_multiplier(avg_age_days: float) -> float:
    if avg_age_days < 1:
        return 1.5
    if avg_age_days < 7:
        return 1.2
    return 1.0


@dataclass(frozen=True)
class ScoreBreakdown:
    """Every factor of one cohort's score, in application order."""

    base: float
    user_multiplier: float
    category_multiplier: float
    recency_multiplier: float
    sentiment_multiplier: float
    trend_multiplier: float
    raw_score: float

    @property
    def severity_score(self) -> int:
        return max(0, round_half_up(self.raw_score))


class SeverityScorer:
    """Computes the severity score of a cohort.

    Score = count × 10
          × user multiplier      (enterprise 3.0)
          × category multiplier  (unlisted categories 1.0)
          × recency multiplier   (<1 day 1.5, <7 days 1.2)
          × sentiment multiplier (critical 1.4, negative 1.2)
          × trend multiplier     (accelerating 1.3)

    Multipliers are applied in exactly this order and the product is rounded
    half-up once at the end, so results are reproducible across platforms.
    """

    def breakdown(self, cohort: Cohort, sentiment: Sentiment, trend: Trend) -> ScoreBreakdown:
        user = USER_MULTIPLIERS.get(cohort.user_type, 1.0)
        category = CATEGORY_MULTIPLIERS.get(cohort.category, 1.0)
        recency = recency_multiplier(cohort.avg_age_days)
        sentiment_factor = SENTIMENT_MULTIPLIERS.get(sentiment, 1.0)
        trend_factor = TREND_MULTIPLIERS.get(trend, 1.0)

        base = float(cohort.count * BASE_POINTS_PER_COMPLAINT)
        score = base
        score *= user
        score *= category
        score *= recency
        score *= sentiment_factor
        score *= trend_factor

        return ScoreBreakdown(
            base=base,
            user_multiplier=user,
            category_multiplier=category,
            recency_multiplier=recency,
            sentiment_multiplier=sentiment_factor,
            trend_multiplier=trend_factor,
            raw_score=score,
        )

    def score(self, cohort: Cohort, sentiment: Sentiment, trend: Trend) -> int:
        return self.breakdown(cohort, sentiment, trend).severity_score
