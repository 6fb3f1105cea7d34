"""Demo feedback — realistic product feedback for local runs and demos."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from signal_detector.models.feedback import Feedback
from signal_detector.store import FeedbackStore
from signal_detector.utils.time import as_naive_utc, utc_now

logger = logging.getLogger("signaldetector.demo")

# (source, content, user_type, category, age in hours)
DEMO_FEEDBACK: tuple[tuple[str, str, str, str, float], ...] = (
    ("GitHub", "Workers AI timeout after 30 seconds on large model inference", "enterprise", "performance", 2),
    ("Discord", "D1 migration docs are confusing, no clear rollback strategy", "developer", "documentation", 30),
    ("Support", "Billing spike without warning - need better cost alerts", "enterprise", "billing", 5),
    ("Twitter", "Love the new Workflows product but local testing is impossible", "developer", "dx", 50),
    ("GitHub", "API rate limits too aggressive for legitimate use cases", "enterprise", "performance", 4),
    ("Discord", "Wrangler deploy failed silently - no error message", "developer", "dx", 20),
    ("Support", "R2 upload speeds slow from Asia - 3x slower than S3", "enterprise", "performance", 1),
    ("GitHub", "Workers AI Llama responses inconsistent quality", "developer", "quality", 70),
    ("Discord", "Need better way to test D1 locally without remote calls", "developer", "dx", 96),
    ("Support", "Enterprise support response time > 24hrs for P1 issue", "enterprise", "support", 12),
    ("Twitter", "KV eventually consistent causing race conditions in prod", "developer", "reliability", 40),
    ("GitHub", "Workflows pricing unclear - worried about surprise bills", "enterprise", "billing", 26),
    ("Discord", "Dashboard UI slow when viewing logs - times out frequently", "developer", "dx", 8),
    ("Support", "Certificate renewal failed without notification", "enterprise", "reliability", 3),
    ("GitHub", "Workers AI model selection guide missing - which to use?", "developer", "documentation", 200),
)


def demo_records(now: datetime | None = None) -> list[Feedback]:
    now = as_naive_utc(now or utc_now())
    return [
        Feedback(
            source=source,
            content=content,
            user_type=user_type,
            category=category,
            created_at=now - timedelta(hours=age_hours),
        )
        for source, content, user_type, category, age_hours in DEMO_FEEDBACK
    ]


async def seed_demo_feedback(session: AsyncSession) -> int:
    """Insert demo feedback when the store is empty. Returns rows inserted."""
    if await FeedbackStore(session).count() > 0:
        return 0

    records = demo_records()
    session.add_all(records)
    await session.commit()
    logger.info(f"Seeded {len(records)} demo feedback records")
    return len(records)
