"""Sentiment classification — LLM-backed cohort sentiment with keyword fallback."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from signal_detector.config import settings
from signal_detector.models.risk import Sentiment
from signal_detector.observability.metrics import metrics
from signal_detector.store import SAMPLE_SEPARATOR

logger = logging.getLogger("signaldetector.sentiment")

MAX_SAMPLE_CHARS = 800

SYSTEM_PROMPT = "You are a sentiment analyzer for customer feedback. Respond with JSON only."

USER_PROMPT_TEMPLATE = (
    "Analyze sentiment of these complaints. Return JSON with format: "
    '{{"sentiment": "critical|negative|neutral|positive", "confidence": 0-100, '
    '"key_issue": "one sentence"}}\n\n'
    "Complaints: {samples}"
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class SentimentJudgment:
    label: Sentiment
    confidence: Optional[float] = None  # 0-100 as reported by the classifier
    key_issue: Optional[str] = None


NEUTRAL_JUDGMENT = SentimentJudgment(label=Sentiment.NEUTRAL)


# ── Prompt + response parsing ───────────────────────────────────


def truncate_samples(sample_texts: Iterable[str], limit: int = MAX_SAMPLE_CHARS) -> str:
    return SAMPLE_SEPARATOR.join(sample_texts)[:limit]


def build_messages(sample_texts: Iterable[str]) -> list[dict[str, str]]:
    """Chat messages asking for a four-way sentiment label as JSON."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT_TEMPLATE.format(samples=truncate_samples(sample_texts))},
    ]


def _coerce_label(value: object) -> Sentiment:
    try:
        return Sentiment(str(value).strip().lower())
    except ValueError:
        return Sentiment.NEUTRAL


def _coerce_confidence(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def keyword_sentiment(text: str) -> Sentiment:
    lowered = text.lower()
    if "critical" in lowered:
        return Sentiment.CRITICAL
    if "negative" in lowered:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def parse_sentiment_response(text: str) -> SentimentJudgment:
    """Parse a free-text classifier reply.

    The embedded JSON object wins when it parses; anything else goes through
    keyword scanning. Never raises.
    """
    text = text or ""
    match = _JSON_OBJECT.search(text)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            key_issue = parsed.get("key_issue")
            return SentimentJudgment(
                label=_coerce_label(parsed.get("sentiment", Sentiment.NEUTRAL.value)),
                confidence=_coerce_confidence(parsed.get("confidence")),
                key_issue=str(key_issue) if key_issue else None,
            )

    return SentimentJudgment(label=keyword_sentiment(text))


# ── Classifier implementations ──────────────────────────────────


class TextClassifier(ABC):
    """Black-box text-understanding service: chat messages in, text out."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def complete(self, messages: list[dict[str, str]]) -> str:
        ...


class OpenAIChatClassifier(TextClassifier):
    """OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 15.0,
        max_tokens: int = 150,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._transport = transport

    @property
    def name(self) -> str:
        return f"openai:{self.model}"

    async def complete(self, messages: list[dict[str, str]]) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": messages,
                    "max_tokens": self.max_tokens,
                    "temperature": 0,
                },
            )
            resp.raise_for_status()
            payload = resp.json()

        # Workers-AI style gateways answer with a top-level "response".
        if isinstance(payload, dict) and "response" in payload:
            return str(payload.get("response") or "")
        choices = payload.get("choices") or []
        if not choices:
            return ""
        return str((choices[0].get("message") or {}).get("content") or "")


class KeywordSentimentClassifier(TextClassifier):
    """Offline keyword classifier for demo mode; answers in the same JSON shape."""

    _critical_words = (
        "outage", "data loss", "breach", "down", "unusable", "p1 ",
        "lost", "corrupt", "security",
    )
    _negative_words = (
        "error", "fail", "broken", "slow", "issue", "bug", "crash", "timeout",
        "confusing", "missing", "spike", "unclear", "inconsistent", "aggressive",
        "impossible", "worried", "race condition", "no clear",
    )
    _positive_words = ("great", "excellent", "love", "fast", "resolved", "improved", "thanks")

    @property
    def name(self) -> str:
        return "keyword"

    async def complete(self, messages: list[dict[str, str]]) -> str:
        text = messages[-1]["content"].split("Complaints:", 1)[-1].lower()

        critical = sum(1 for w in self._critical_words if w in text)
        negative = sum(1 for w in self._negative_words if w in text)
        positive = sum(1 for w in self._positive_words if w in text)

        if critical >= 2:
            label, hits = Sentiment.CRITICAL, critical
        elif critical + negative > positive:
            label, hits = Sentiment.NEGATIVE, critical + negative
        elif positive > 0:
            label, hits = Sentiment.POSITIVE, positive
        else:
            label, hits = Sentiment.NEUTRAL, 0

        return json.dumps({
            "sentiment": label.value,
            "confidence": min(95, 50 + hits * 10),
            "key_issue": "Keyword classification",
        })


def build_classifier() -> TextClassifier:
    """LLM classifier when an API key is configured, keyword classifier otherwise."""
    if settings.llm_enabled:
        return OpenAIChatClassifier(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_seconds,
            max_tokens=settings.llm_max_tokens,
        )
    return KeywordSentimentClassifier()


# ── Cohort sentiment service ────────────────────────────────────


class SentimentService:
    """Best-effort sentiment enrichment for cohorts.

    One classifier call per cohort, no retries. Any failure (timeout,
    transport error, bad payload) degrades to neutral.
    """

    def __init__(self, classifier: TextClassifier, timeout: float | None = None) -> None:
        self.classifier = classifier
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds

    async def assess(self, sample_texts: Iterable[str], cohort_label: str | None = None) -> SentimentJudgment:
        messages = build_messages(sample_texts)
        try:
            reply = await asyncio.wait_for(self.classifier.complete(messages), timeout=self.timeout)
        except Exception as exc:
            metrics.observe_classifier_failure()
            logger.warning(
                f"Sentiment classification failed ({self.classifier.name}): {exc!r}",
                extra={"cohort": cohort_label},
            )
            return NEUTRAL_JUDGMENT

        return parse_sentiment_response(reply)
