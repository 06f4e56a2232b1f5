"""Pipeline routes: prediction runs, accuracy scoring, state maintenance.

Auth: mutating endpoints (POST) require verify_api_key; reads are public.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from fixturecast.accuracy.engine import AccuracyEngine, resolve_backfill_dates
from fixturecast.pipeline.orchestrator import BatchOrchestrator, RunOptions
from fixturecast.scheduler import get_scheduler_status
from fixturecast.security import verify_api_key
from fixturecast.state import get_accuracy_engine, get_orchestrator, get_state_store
from fixturecast.storage.base import StateStore
from fixturecast.storage.keys import (
    CRON_HISTORY_INDEX,
    CRON_LAST_EXECUTION,
    accuracy_prefix,
    daily_prefix,
    is_prediction_key_for_date,
    pause_until_key,
)
from fixturecast.utils.dates import parse_target_date, previous_day, utc_now

router = APIRouter(tags=["pipeline"])

logger = logging.getLogger(__name__)


# =============================================================================
# Triggers
# =============================================================================


@router.post("/run-predictions", dependencies=[Depends(verify_api_key)])
async def run_predictions(
    date: Optional[str] = Query(None, description="Target date (YYYY-MM-DD), default today"),
    force: bool = Query(False),
    resume: bool = Query(False),
    wave: Optional[int] = Query(None, ge=1, description="Max matches processed by this call"),
    featured_only: Optional[bool] = Query(None, alias="featuredOnly"),
    model: Optional[str] = Query(None),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    """Generate (or resume) predictions for a date."""
    options = RunOptions(
        force=force,
        resume=resume,
        wave_size=wave,
        featured_only=featured_only,
        preferred_model=model,
    )
    result = await orchestrator.run_wave(date, options)
    return result.model_dump()


@router.post("/run-scores", dependencies=[Depends(verify_api_key)])
async def run_scores(
    date: Optional[str] = Query(None, description="Date to score, default yesterday"),
    engine: AccuracyEngine = Depends(get_accuracy_engine),
):
    """Score a date's predictions against final results."""
    aggregate = await engine.score_date(date)
    return aggregate.model_dump()


@router.post("/backfill-accuracy", dependencies=[Depends(verify_api_key)])
async def backfill_accuracy(
    date: Optional[str] = Query(None),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    days: Optional[int] = Query(None, ge=1),
    force: bool = Query(False),
    engine: AccuracyEngine = Depends(get_accuracy_engine),
):
    """Re-run accuracy scoring over past dates (explicit date, start..end, or last N days)."""
    dates = resolve_backfill_dates(date=date, start=start, end=end, days=days)
    result = await engine.backfill(dates, force=force)
    logger.info(
        f"Backfill: dates={len(dates)} processed={len(result.processed)} "
        f"skipped={len(result.skipped)} errors={len(result.errors)}"
    )
    return result.model_dump()


# =============================================================================
# State maintenance
# =============================================================================


@router.post("/clear", dependencies=[Depends(verify_api_key)])
async def clear_date(
    date: Optional[str] = Query(None),
    confirm: bool = Query(False),
    store: StateStore = Depends(get_state_store),
):
    """Delete every persisted key for a date. Requires confirm=true."""
    date = parse_target_date(date)
    if not confirm:
        return JSONResponse(
            status_code=400,
            content={
                "error": "confirmation-required",
                "message": f"Refusing to clear {date} without confirm=true",
            },
        )

    deleted_daily = await store.delete_prefix(daily_prefix(date))
    deleted_accuracy = await store.delete_prefix(accuracy_prefix(date))
    deleted_predictions = 0
    for key in await store.list_keys("prediction:"):
        if is_prediction_key_for_date(key, date) and await store.delete(key):
            deleted_predictions += 1

    logger.warning(
        f"Cleared {date}: daily={deleted_daily} predictions={deleted_predictions} "
        f"accuracy={deleted_accuracy}"
    )
    return {
        "date": date,
        "deleted": {
            "daily": deleted_daily,
            "predictions": deleted_predictions,
            "accuracy": deleted_accuracy,
        },
    }


@router.post("/pause", dependencies=[Depends(verify_api_key)])
async def pause_date(
    date: Optional[str] = Query(None),
    minutes: int = Query(30, ge=0, le=24 * 60, description="0 lifts an existing pause"),
    store: StateStore = Depends(get_state_store),
):
    """Pause a date's run: waves stop before starting until the deadline passes."""
    date = parse_target_date(date)
    if minutes == 0:
        removed = await store.delete(pause_until_key(date))
        return {"date": date, "paused_until": None, "removed": removed}

    until = (utc_now() + timedelta(minutes=minutes)).isoformat()
    await store.put(pause_until_key(date), {"until": until})
    logger.info(f"Paused {date} until {until}")
    return {"date": date, "paused_until": until}


# =============================================================================
# Reads
# =============================================================================


@router.get("/predictions/today")
async def get_predictions(
    date: Optional[str] = Query(None),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    date = parse_target_date(date)
    aggregate = await orchestrator.load_aggregate(date)
    if aggregate is None:
        raise HTTPException(status_code=404, detail=f"No predictions stored for {date}")
    return aggregate.model_dump()


@router.get("/accuracy/today")
async def get_accuracy(
    date: Optional[str] = Query(None, description="Scored date, default yesterday"),
    engine: AccuracyEngine = Depends(get_accuracy_engine),
):
    date = parse_target_date(date) if date else previous_day()
    aggregate = await engine.load_aggregate(date)
    if aggregate is None:
        raise HTTPException(status_code=404, detail=f"No accuracy computed for {date}")
    return aggregate.model_dump()


@router.get("/accuracy/trend")
async def get_accuracy_trend(
    days: int = Query(7, ge=1, le=60),
    engine: AccuracyEngine = Depends(get_accuracy_engine),
):
    """Per-day headline percentages, oldest first. Days without a score are omitted."""
    return {"days": days, "points": await engine.trend(days)}


@router.get("/cron-status")
async def cron_status(store: StateStore = Depends(get_state_store)):
    status = get_scheduler_status()
    status["last_execution"] = await store.get(CRON_LAST_EXECUTION)
    status["history"] = await store.get(CRON_HISTORY_INDEX) or []
    return status
