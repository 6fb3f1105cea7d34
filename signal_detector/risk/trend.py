"""Trend analyzer — complaint velocity and its discrete classification."""

from __future__ import annotations

import math
from dataclasses import dataclass

from signal_detector.models.risk import Trend
from signal_detector.risk.aggregator import Cohort

MIN_AGE_DAYS = 0.5
ACCELERATING_VELOCITY = 5.0
RISING_VELOCITY = 2.0


@dataclass(frozen=True)
class TrendReading:
    velocity: float  # unrounded complaints per day
    trend: Trend

    def rounded_velocity(self) -> float:
        return math.floor(self.velocity * 10 + 0.5) / 10


def compute_velocity(count: int, avg_age_days: float) -> float:
    # Same-day cohorts are floored at half a day.
    return count / max(avg_age_days, MIN_AGE_DAYS)


def classify_velocity(velocity: float) -> Trend:
    if velocity > ACCELERATING_VELOCITY:
        return Trend.ACCELERATING
    if velocity > RISING_VELOCITY:
        return Trend.RISING
    return Trend.STABLE


def analyze_trend(cohort: Cohort) -> TrendReading:
    velocity = compute_velocity(cohort.count, cohort.avg_age_days)
    return TrendReading(velocity=velocity, trend=classify_velocity(velocity))
