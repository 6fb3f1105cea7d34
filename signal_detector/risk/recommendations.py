"""Recommendation lookup — static action strings per risk profile."""

from __future__ import annotations

from types import MappingProxyType

from signal_detector.models.risk import Sentiment, Trend

DEFAULT_RECOMMENDATION = "Monitor closely. Consider adding to sprint backlog."

# Keys are `category_usertype_trend` or `category_usertype`.
RECOMMENDATIONS = MappingProxyType({
    "performance_enterprise_accelerating": (
        "URGENT: Enterprise performance degradation. "
        "Escalate to engineering + customer success immediately."
    ),
    "performance_enterprise": "Enterprise latency complaints. Profile hot paths and share a mitigation timeline.",
    "performance_developer": "Developer-facing slowness. Publish limits and tuning guidance; track regressions.",
    "billing_enterprise": "High churn risk. Schedule immediate call with affected accounts. Review billing clarity.",
    "reliability_enterprise_accelerating": (
        "URGENT: Repeated enterprise reliability failures. Open an incident and page SRE on-call."
    ),
    "reliability_enterprise": "SLA breach risk. Engage SRE team. Prepare incident report.",
    "reliability_developer": "Consistency or failure reports from developers. Add reproduction cases to the reliability backlog.",
    "security_enterprise": "Security exposure reported by enterprise accounts. Route to security response within 24h.",
    "data-loss_enterprise": "Possible data loss for enterprise accounts. Start incident response and verify backups.",
    "dx_developer": "Developer experience issue. Prioritize docs update + devrel outreach.",
    "documentation_developer": "Update docs within 48h. Consider video tutorial.",
    "support_enterprise": "Enterprise support SLA at risk. Review P1 routing and staffing.",
})


def recommend(category: str, user_type: str, trend: Trend, sentiment: Sentiment) -> str:
    """Most specific recommendation for the cohort profile.

    Sentiment is part of the risk profile but the table is not keyed on it.
    """
    return (
        RECOMMENDATIONS.get(f"{category}_{user_type}_{trend.value}")
        or RECOMMENDATIONS.get(f"{category}_{user_type}")
        or DEFAULT_RECOMMENDATION
    )
