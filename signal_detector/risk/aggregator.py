"""Cohort aggregator — groups raw feedback into (category, user_type) cohorts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from signal_detector.models.feedback import UNCATEGORIZED, UNKNOWN_USER_TYPE
from signal_detector.store import SAMPLE_SEPARATOR, CohortRow, FeedbackStore
from signal_detector.utils.time import utc_now

MAX_SAMPLE_TEXTS = 10


@dataclass(frozen=True)
class Cohort:
    """Feedback records sharing a category and user segment."""

    category: str
    user_type: str
    count: int
    avg_age_days: float
    sample_texts: tuple[str, ...] = field(default_factory=tuple)

    @property
    def key(self) -> tuple[str, str]:
        return (self.category, self.user_type)


def split_samples(samples: str | None, limit: int = MAX_SAMPLE_TEXTS) -> tuple[str, ...]:
    if not samples:
        return ()
    return tuple(samples.split(SAMPLE_SEPARATOR)[:limit])


def build_cohorts(rows: Iterable[CohortRow]) -> list[Cohort]:
    """Turn grouped store rows into typed cohorts, keeping row order."""
    cohorts: list[Cohort] = []
    for row in rows:
        if row.count < 1:
            continue
        cohorts.append(
            Cohort(
                category=row.category or UNCATEGORIZED,
                user_type=row.user_type or UNKNOWN_USER_TYPE,
                count=row.count,
                # Future-dated records would otherwise yield a negative age.
                avg_age_days=max(0.0, row.avg_age_days or 0.0),
                sample_texts=split_samples(row.samples),
            )
        )
    return cohorts


class CohortAggregator:
    """Builds the cohorts for one analysis run.

    Store errors propagate unchanged; there is no partial aggregation.
    """

    async def aggregate(self, store: FeedbackStore, now: datetime | None = None) -> list[Cohort]:
        rows = await store.cohort_rows(now or utc_now())
        return build_cohorts(rows)
