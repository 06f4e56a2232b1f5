"""Core routes: health and metrics.

Auth per-endpoint:
- /health: public, rate limited
- /metrics: Bearer token
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from fixturecast.config import get_settings
from fixturecast.pipeline.controller import WaveController
from fixturecast.schemas import DailyAggregate, ProgressState
from fixturecast.security import limiter
from fixturecast.state import get_state_store
from fixturecast.storage.base import StateStore
from fixturecast.storage.keys import daily_aggregate_key, daily_progress_key
from fixturecast.telemetry import get_metrics_text
from fixturecast.utils.dates import parse_target_date

router = APIRouter(tags=["core"])
settings = get_settings()

HINT_RESUME = "resume-recommended"
HINT_RATE_LIMIT = "rate-limit-pressure"
HINT_CIRCUIT_OPEN = "circuit-open"
HINT_PAUSED = "paused"
HINT_FAILURES = "failures-pending"
HINT_COMPLETE = "complete"


class AggregateSummary(BaseModel):
    model: str
    processed: int
    failures: int
    failed_match_ids: list[int]
    total_matches: int
    featured_matches: int
    models_used: dict[str, int]
    fetch_mode: str
    using_fallback_all_matches: bool
    version: int
    generated_at: str
    updated_at: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    date: str
    progress: Optional[ProgressState] = None
    aggregate: Optional[AggregateSummary] = None
    paused_until: Optional[str] = None
    hints: list[str] = Field(default_factory=list)


def build_health_hints(
    progress: Optional[ProgressState],
    aggregate: Optional[DailyAggregate],
    paused_until: Optional[str] = None,
) -> list[str]:
    """Operator hints derived from the stored run state for a date."""
    hints = []
    if paused_until:
        hints.append(HINT_PAUSED)
    if progress is not None:
        if progress.circuit_open:
            hints.append(HINT_CIRCUIT_OPEN)
        if progress.consecutive_rate_limited > 0 or progress.circuit_breaks > 0:
            hints.append(HINT_RATE_LIMIT)

    failures = progress.failures if progress is not None else 0
    if aggregate is not None:
        failures = max(failures, aggregate.failures)
    if failures:
        hints.append(HINT_FAILURES)

    if progress is not None and progress.done and not failures:
        hints.append(HINT_COMPLETE)
    elif (progress is not None and not progress.done) or failures:
        if not paused_until:
            hints.append(HINT_RESUME)
    return hints


@router.get("/health", response_model=HealthResponse)
@limiter.limit("120/minute")
async def health_check(
    request: Request,
    date: Optional[str] = Query(None, description="Target date (YYYY-MM-DD), default today"),
    store: StateStore = Depends(get_state_store),
):
    """Run state for a date: progress, aggregate summary and operator hints."""
    date = parse_target_date(date)

    raw_progress = await store.get(daily_progress_key(date))
    raw_aggregate = await store.get(daily_aggregate_key(date))
    progress = ProgressState.model_validate(raw_progress) if raw_progress else None
    aggregate = DailyAggregate.model_validate(raw_aggregate) if raw_aggregate else None
    paused_until = await WaveController().paused_until(store, date)

    summary = None
    if aggregate is not None:
        summary = AggregateSummary.model_validate(aggregate.model_dump(exclude={"predictions", "date"}))

    return HealthResponse(
        status="ok",
        date=date,
        progress=progress,
        aggregate=summary,
        paused_until=paused_until,
        hints=build_health_hints(progress, aggregate, paused_until),
    )


@router.get("/metrics")
async def prometheus_metrics(
    authorization: str = Header(None, alias="Authorization"),
):
    """
    Prometheus metrics endpoint.

    Requires Bearer token authentication via METRICS_BEARER_TOKEN env var
    when it is set.
    """
    expected_token = settings.METRICS_BEARER_TOKEN
    if expected_token:
        if not authorization:
            return PlainTextResponse(
                content="# Unauthorized: Missing Authorization header\n",
                status_code=401,
                media_type="text/plain",
            )
        # Extract token from "Bearer <token>"
        parts = authorization.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return PlainTextResponse(
                content="# Unauthorized: Invalid Authorization format\n",
                status_code=401,
                media_type="text/plain",
            )
        if parts[1] != expected_token:
            return PlainTextResponse(
                content="# Unauthorized: Invalid token\n",
                status_code=401,
                media_type="text/plain",
            )

    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)
