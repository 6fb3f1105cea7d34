"""Risk analysis API — severity ranking, top risks and category trends."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signal_detector.config import settings
from signal_detector.database import get_session
from signal_detector.models.risk import AnalysisResult, TopRisksResponse, TrendPoint, TrendsResponse
from signal_detector.nlp.sentiment import build_classifier
from signal_detector.risk.analyzer import RiskAnalyzer, top_risks_view
from signal_detector.services.cache import build_cache
from signal_detector.store import FeedbackStore

router = APIRouter(prefix="/api", tags=["analysis"])
logger = logging.getLogger("signaldetector.api")

_analyzer = RiskAnalyzer(
    classifier=build_classifier(),
    cache=build_cache(settings.cache_backend),
    concurrency=settings.sentiment_concurrency,
)

STORE_UNAVAILABLE = "Feedback store unavailable"


def get_analyzer() -> RiskAnalyzer:
    """Dependency returning the process-wide analyzer."""
    return _analyzer


async def _run_analysis(analyzer: RiskAnalyzer, session: AsyncSession) -> AnalysisResult:
    try:
        return await analyzer.run(FeedbackStore(session))
    except SQLAlchemyError:
        logger.exception("Analysis aborted: feedback store query failed")
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)


@router.get("/analyze", response_model=AnalysisResult)
async def analyze(
    analyzer: RiskAnalyzer = Depends(get_analyzer),
    session: AsyncSession = Depends(get_session),
):
    """Run severity analysis over all feedback and return prioritized risks."""
    return await _run_analysis(analyzer, session)


@router.get("/risks", response_model=TopRisksResponse)
async def top_risks(
    analyzer: RiskAnalyzer = Depends(get_analyzer),
    session: AsyncSession = Depends(get_session),
):
    """The three highest-priority risks with a headline recommendation."""
    result = await _run_analysis(analyzer, session)
    return top_risks_view(result)


@router.get("/trends", response_model=TrendsResponse)
async def trends(
    limit: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
):
    """Daily complaint counts per category, newest day first."""
    try:
        rows = await FeedbackStore(session).daily_counts(limit=limit)
    except SQLAlchemyError:
        logger.exception("Trend query failed")
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)

    return TrendsResponse(
        trends=[TrendPoint(**row) for row in rows],
        insight="Velocity analysis shows complaint patterns over time",
    )
