"""Feedback Signal Detector — FastAPI application entry point."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from sqlalchemy import text

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from signal_detector.config import settings
from signal_detector.database import async_session, engine, init_db
from signal_detector.logging_config import setup_logging

from signal_detector.api.analysis import router as analysis_router
from signal_detector.api.feedback import router as feedback_router
from signal_detector.ingestion.demo_data import seed_demo_feedback
from signal_detector.observability.metrics import metrics

logger = logging.getLogger("signaldetector")

VERSION = "1.0.0"

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])


def _startup_checks() -> None:
    """Log warnings for misconfigured or missing settings."""
    if settings.llm_enabled:
        logger.info(f"✓ Sentiment classifier: {settings.llm_model} via {settings.llm_base_url}")
    else:
        logger.info("○ No OPENAI_API_KEY (or USE_MOCK_ML=true) — using keyword sentiment classifier")

    if settings.is_production and "sqlite" in settings.database_url:
        logger.warning("⚠  APP_ENV=production with SQLite; use PostgreSQL for reliability")

    if settings.is_production and "*" in settings.cors_origins_list:
        logger.warning("⚠  APP_ENV=production with wildcard CORS_ORIGINS")

    logger.info(f"○ Analysis cache backend: {settings.cache_backend}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    setup_logging(settings.log_level)
    _startup_checks()

    await init_db()
    if settings.enable_demo_data:
        async with async_session() as session:
            await seed_demo_feedback(session)

    logger.info("✦ Feedback Signal Detector API started")
    logger.info(f"  Database: {settings.database_url}")

    yield

    await engine.dispose()
    logger.info("✦ Feedback Signal Detector API shutting down")


app = FastAPI(
    title="Feedback Signal Detector",
    description="AI-powered feedback analysis and prioritization system",
    version=VERSION,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# Request tracing + access log middleware
@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()

    response: Response = await call_next(request)

    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Request-ID"] = request_id
    metrics.observe_request(request.url.path, response.status_code, duration_ms)
    logger.info(
        "request completed",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


app.include_router(feedback_router)
app.include_router(analysis_router)


@app.get("/")
async def root():
    return JSONResponse(
        {
            "service": "feedback-signal-detector",
            "status": "ok",
            "endpoints": {
                "feedback": "/api/feedback",
                "analyze": "/api/analyze",
                "risks": "/api/risks",
                "trends": "/api/trends",
                "health": "/api/health",
                "docs": "/docs",
            },
        }
    )


async def _db_ready() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("database readiness check failed")
        return False


@app.get("/api/health")
async def health_check():
    database_ready = await _db_ready()
    return {
        "status": "healthy" if database_ready else "degraded",
        "service": "feedback-signal-detector",
        "version": VERSION,
        "database_ready": database_ready,
        "sentiment_classifier": "llm" if settings.llm_enabled else "keyword",
    }


@app.get("/api/health/live")
async def liveness_check():
    return {"status": "alive", "service": "feedback-signal-detector"}


@app.get("/api/metrics")
async def get_metrics():
    return {
        "service": "feedback-signal-detector",
        "version": VERSION,
        "metrics": metrics.snapshot(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("signal_detector.main:app", host=settings.host, port=settings.port)
