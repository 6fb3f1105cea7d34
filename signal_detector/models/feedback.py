"""Feedback data model — the raw customer feedback records."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from pydantic import BaseModel

from signal_detector.database import Base


class UserType(str, enum.Enum):
    ENTERPRISE = "enterprise"
    DEVELOPER = "developer"


class FeedbackStatus(str, enum.Enum):
    OPEN = "open"
    RESOLVED = "resolved"


UNCATEGORIZED = "uncategorized"
UNKNOWN_USER_TYPE = "unknown"


# ─── SQLAlchemy Model ────────────────────────────────────────────


class Feedback(Base):
    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(50), index=True)
    content: Mapped[str] = mapped_column(Text)
    sentiment: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    user_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), index=True
    )

    # Ticket lifecycle
    status: Mapped[str] = mapped_column(
        String(20), default=FeedbackStatus.OPEN.value, server_default=FeedbackStatus.OPEN.value
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolution_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ─── Pydantic Schemas ────────────────────────────────────────────


class FeedbackResponse(BaseModel):
    id: int
    source: str
    content: str
    sentiment: float | None = None
    category: str | None = None
    user_type: str | None = None
    created_at: datetime
    status: str | None = None
    resolved_at: datetime | None = None
    resolution_note: str | None = None

    model_config = {"from_attributes": True}
