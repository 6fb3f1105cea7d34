"""Feedback API — raw listing of stored feedback records."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signal_detector.database import get_session
from signal_detector.models.feedback import FeedbackResponse
from signal_detector.store import FeedbackStore

router = APIRouter(prefix="/api/feedback", tags=["feedback"])
logger = logging.getLogger("signaldetector.api")


@router.get("", response_model=list[FeedbackResponse])
async def list_feedback(session: AsyncSession = Depends(get_session)):
    """All feedback records, unmodified, newest first."""
    try:
        records = await FeedbackStore(session).list_feedback()
    except SQLAlchemyError:
        logger.exception("Feedback listing failed")
        raise HTTPException(status_code=503, detail="Feedback store unavailable")
    return [FeedbackResponse.model_validate(r) for r in records]
