"""Feedback record store — read access and grouped aggregates over `feedback`."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import desc, extract, func, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from signal_detector.models.feedback import Feedback
from signal_detector.utils.time import as_naive_utc

SAMPLE_SEPARATOR = " ||| "


@dataclass
class CohortRow:
    """One grouped-aggregate row, as returned by the store."""

    category: str | None
    user_type: str | None
    count: int
    samples: str | None
    avg_age_days: float | None


class FeedbackStore:
    """Query surface over the feedback table for one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @property
    def _dialect(self) -> str:
        bind = self.session.bind
        return bind.dialect.name if bind is not None else "sqlite"

    async def cohort_rows(self, now: datetime) -> list[CohortRow]:
        """Count, concatenated samples and mean age per (category, user_type).

        Rows come back in discovery order: the cohort whose first record
        was stored earliest is listed first.
        """
        now = as_naive_utc(now)

        if self._dialect == "sqlite":
            # julianday() parses the ISO text SQLite stores for DateTime columns.
            age_expr = func.julianday(literal(now.isoformat(sep=" "))) - func.julianday(Feedback.created_at)
            samples_expr = func.group_concat(Feedback.content, SAMPLE_SEPARATOR)
        else:
            age_expr = extract("epoch", literal(now) - Feedback.created_at) / 86400.0
            samples_expr = func.string_agg(Feedback.content, literal(SAMPLE_SEPARATOR))

        query = (
            select(
                Feedback.category.label("category"),
                Feedback.user_type.label("user_type"),
                func.count(Feedback.id).label("count"),
                samples_expr.label("samples"),
                func.avg(age_expr).label("avg_age_days"),
            )
            .group_by(Feedback.category, Feedback.user_type)
            .order_by(func.min(Feedback.id))
        )
        result = await self.session.execute(query)

        return [
            CohortRow(
                category=row.category,
                user_type=row.user_type,
                count=int(row.count),
                samples=row.samples,
                avg_age_days=float(row.avg_age_days) if row.avg_age_days is not None else None,
            )
            for row in result.all()
        ]

    async def list_feedback(self) -> list[Feedback]:
        """All feedback records, newest first."""
        result = await self.session.execute(
            select(Feedback).order_by(desc(Feedback.created_at), desc(Feedback.id))
        )
        return list(result.scalars().all())

    async def daily_counts(self, limit: int = 50) -> list[dict]:
        """Complaint counts per category per calendar day, newest day first."""
        day_expr = func.date(Feedback.created_at)
        result = await self.session.execute(
            select(
                Feedback.category.label("category"),
                day_expr.label("date"),
                func.count(Feedback.id).label("daily_count"),
            )
            .group_by(Feedback.category, day_expr)
            .order_by(desc("date"), Feedback.category)
            .limit(limit)
        )
        return [
            {
                "category": row.category,
                "date": str(row.date),
                "daily_count": int(row.daily_count),
            }
            for row in result.all()
        ]

    async def count(self) -> int:
        return (await self.session.execute(select(func.count()).select_from(Feedback))).scalar() or 0
