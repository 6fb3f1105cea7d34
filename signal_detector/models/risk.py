"""Risk assessment schemas — per-cohort risks and the analysis envelope."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field


class Sentiment(str, enum.Enum):
    CRITICAL = "critical"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"


class Trend(str, enum.Enum):
    ACCELERATING = "accelerating"
    RISING = "rising"
    STABLE = "stable"


class RiskAssessment(BaseModel):
    category: str
    user_type: str
    complaint_count: int
    severity_score: int = Field(ge=0)
    sentiment: Sentiment
    trend: Trend
    velocity: float  # complaints per day, one decimal
    sample_feedback: list[str]
    recommendation: str


class AnalysisResult(BaseModel):
    analysis_time: datetime
    total_risks: int
    critical_count: int
    top_risks: list[RiskAssessment]
    all_risks: list[RiskAssessment]
    cached: bool = False


class RiskSummary(BaseModel):
    total_critical: int
    recommendation: str


class TopRisksResponse(BaseModel):
    timestamp: datetime
    critical_alerts: list[RiskAssessment]
    summary: RiskSummary


class TrendPoint(BaseModel):
    category: str | None
    date: str  # YYYY-MM-DD
    daily_count: int


class TrendsResponse(BaseModel):
    trends: list[TrendPoint]
    insight: str
