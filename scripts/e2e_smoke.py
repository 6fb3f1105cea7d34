#!/usr/bin/env python3
"""End-to-end smoke for the Feedback Signal Detector API.

Runs the analysis flow against a running server (demo data enabled) and
fails fast on regressions.
"""

from __future__ import annotations

import json
import os
import sys

import httpx

BASE_URL = os.environ.get("SMOKE_BASE_URL", "http://127.0.0.1:8000")
TIMEOUT = 60.0


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def get(client: httpx.Client, path: str, expected: int = 200, **kwargs):
    resp = client.get(f"{BASE_URL}{path}", **kwargs)
    expect(resp.status_code == expected, f"GET {path} -> {resp.status_code} != {expected}; body={resp.text[:500]}")
    return resp


def main() -> int:
    with httpx.Client(timeout=TIMEOUT) as client:
        # 1) Health
        health = get(client, "/api/health").json()
        expect(health.get("status") == "healthy", "health status is not healthy")

        # 2) Raw feedback
        feedback = get(client, "/api/feedback").json()
        expect(len(feedback) > 0, "no feedback records; start the server with ENABLE_DEMO_DATA=true")

        # 3) Full analysis, then the cached repeat
        analysis = get(client, "/api/analyze").json()
        scores = [r["severity_score"] for r in analysis["all_risks"]]
        expect(scores == sorted(scores, reverse=True), "risks are not ranked by severity")
        expect(analysis["top_risks"] == analysis["all_risks"][:5], "top_risks is not the first five risks")
        expect(
            analysis["critical_count"] == sum(1 for s in scores if s > 100),
            "critical_count does not match scores above 100",
        )

        repeat = get(client, "/api/analyze").json()
        expect(repeat["cached"] is True, "second analysis within the TTL was not served from cache")

        # 4) Top risks + trends
        risks = get(client, "/api/risks").json()
        expect(len(risks["critical_alerts"]) <= 3, "more than three critical alerts")
        expect("recommendation" in risks["summary"], "risks summary missing recommendation")

        trends = get(client, "/api/trends").json()
        expect(len(trends["trends"]) <= 50, "trends returned more than 50 rows")

        # 5) Metrics reflect the runs
        snapshot = get(client, "/api/metrics").json()["metrics"]
        expect(snapshot["analysis"]["cache_hits"] >= 1, "metrics missing analysis cache hit")

        # 6) Validation sanity
        bad = client.get(f"{BASE_URL}/api/trends?limit=0")
        expect(bad.status_code == 422, f"expected 422 for limit=0, got {bad.status_code}")

    print(json.dumps({"ok": True, "message": "Feedback Signal Detector smoke passed"}))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # noqa: BLE001
        print(json.dumps({"ok": False, "error": str(exc)}))
        sys.exit(1)
