"""Background scheduler for the prediction and scoring jobs."""

import logging
import os
import time
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from fixturecast.config import get_settings
from fixturecast.pipeline.orchestrator import RunOptions
from fixturecast.state import get_accuracy_engine, get_orchestrator, get_state_store
from fixturecast.storage.base import StateStore, StateStoreError
from fixturecast.storage.keys import CRON_HISTORY_INDEX, CRON_LAST_EXECUTION
from fixturecast.telemetry.metrics import record_job_run
from fixturecast.telemetry.sentry import sentry_job_context
from fixturecast.utils.dates import previous_day, utc_now

logger = logging.getLogger(__name__)

CRON_HISTORY_LIMIT = 25

scheduler = AsyncIOScheduler(timezone="UTC")
_scheduler_started = False


async def record_cron_execution(
    store: StateStore,
    job: str,
    status: str,
    started_at: str,
    duration_ms: float,
    summary: Optional[dict] = None,
    error: Optional[str] = None,
) -> dict:
    """Write cron:lastExecution and prepend to the bounded cron history."""
    entry = {
        "job": job,
        "status": status,
        "started_at": started_at,
        "finished_at": utc_now().isoformat(),
        "duration_ms": round(duration_ms),
        "summary": summary or {},
        "error": error,
    }
    try:
        await store.put(CRON_LAST_EXECUTION, entry)
        history = await store.get(CRON_HISTORY_INDEX) or []
        history.insert(0, entry)
        await store.put(CRON_HISTORY_INDEX, history[:CRON_HISTORY_LIMIT])
    except StateStoreError as e:
        logger.warning(f"Failed to record cron execution for {job}: {e}")
    return entry


async def run_predictions_job() -> dict:
    """Scheduled prediction run for today (resumes an unfinished day)."""
    job = "predictions"
    started_at = utc_now().isoformat()
    start_time = time.time()
    store = get_state_store()

    try:
        with sentry_job_context(job, date=utc_now().date().isoformat()):
            result = await get_orchestrator().run_wave(options=RunOptions(resume=True))
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(f"Scheduled predictions failed: {e}")
        record_job_run(job, "error", duration_ms)
        return await record_cron_execution(store, job, "error", started_at, duration_ms, error=str(e))

    duration_ms = (time.time() - start_time) * 1000
    record_job_run(job, "ok", duration_ms)
    summary = {
        "date": result.date,
        "status": result.status,
        "processed": result.processed,
        "generated": result.generated,
        "failures": len(result.failures),
        "remaining_after_wave": result.remaining_after_wave,
    }
    logger.info(f"Scheduled predictions {result.status}: {summary}")
    return await record_cron_execution(store, job, "ok", started_at, duration_ms, summary=summary)


async def run_scores_job() -> dict:
    """Scheduled accuracy scoring for yesterday."""
    job = "scores"
    started_at = utc_now().isoformat()
    start_time = time.time()
    store = get_state_store()

    try:
        with sentry_job_context(job, date=previous_day()):
            aggregate = await get_accuracy_engine().score_date()
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(f"Scheduled scoring failed: {e}")
        record_job_run(job, "error", duration_ms)
        return await record_cron_execution(store, job, "error", started_at, duration_ms, error=str(e))

    duration_ms = (time.time() - start_time) * 1000
    record_job_run(job, "ok", duration_ms)
    summary = {
        "date": aggregate.date,
        "processed": aggregate.processed,
        "overall_accuracy": aggregate.overall_accuracy,
    }
    return await record_cron_execution(store, job, "ok", started_at, duration_ms, summary=summary)


def _log_scheduler_jobs():
    """Log all registered scheduler jobs and their next run times."""
    jobs = scheduler.get_jobs()
    if not jobs:
        logger.warning("SCHEDULER HEARTBEAT: No jobs registered!")
        return

    job_info = []
    for job in jobs:
        next_run = job.next_run_time
        next_str = next_run.strftime("%Y-%m-%d %H:%M:%S UTC") if next_run else "None"
        job_info.append(f"  - {job.id}: next={next_str}")

    logger.info(f"SCHEDULER HEARTBEAT: {len(jobs)} jobs registered:\n" + "\n".join(job_info))


def get_scheduler_status() -> dict:
    jobs = []
    for job in scheduler.get_jobs():
        next_run = job.next_run_time
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
        })
    return {"running": scheduler.running, "jobs": jobs}


def start_scheduler():
    """
    Start the background scheduler.

    Uses a module-level flag to prevent duplicate scheduler instances
    when running with --reload.
    """
    global _scheduler_started
    settings = get_settings()

    if _scheduler_started:
        logger.warning("Scheduler already started, skipping duplicate initialization")
        return

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled via SCHEDULER_ENABLED=false")
        return

    if os.environ.get("UVICORN_RELOADED"):
        logger.info("Skipping scheduler in reload subprocess")
        return

    # Predictions: 06:00, 12:00, 18:00, 23:00 UTC
    scheduler.add_job(
        run_predictions_job,
        trigger=CronTrigger(hour=settings.PREDICTIONS_CRON_HOURS, minute=0, timezone="UTC"),
        id="daily_predictions",
        name="Daily Predictions",
        replace_existing=True,
        max_instances=1,
    )

    # Scores: hourly at :15
    scheduler.add_job(
        run_scores_job,
        trigger=CronTrigger(minute=settings.SCORES_CRON_MINUTE, timezone="UTC"),
        id="hourly_scores",
        name="Hourly Accuracy Scoring",
        replace_existing=True,
        max_instances=1,
    )

    scheduler.start()
    _scheduler_started = True
    logger.info("Scheduler started")
    _log_scheduler_jobs()


def stop_scheduler():
    """Stop the background scheduler."""
    global _scheduler_started
    if scheduler.running:
        scheduler.shutdown()
        _scheduler_started = False
        logger.info("Scheduler stopped")
