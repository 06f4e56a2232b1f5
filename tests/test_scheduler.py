"""Tests for scheduled job wrappers and cron execution history."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fixturecast import scheduler as scheduler_module
from fixturecast.accuracy.models import AccuracyAggregate
from fixturecast.pipeline.orchestrator import RunResult
from fixturecast.storage.keys import CRON_HISTORY_INDEX, CRON_LAST_EXECUTION


class TestCronHistory:

    @pytest.mark.asyncio
    async def test_history_is_newest_first_and_bounded(self, store):
        for i in range(scheduler_module.CRON_HISTORY_LIMIT + 5):
            await scheduler_module.record_cron_execution(
                store, "scores", "ok", f"2024-01-15T{i % 24:02d}:15:00+00:00", 12.0, summary={"run": i}
            )

        history = await store.get(CRON_HISTORY_INDEX)
        last = await store.get(CRON_LAST_EXECUTION)

        assert len(history) == scheduler_module.CRON_HISTORY_LIMIT
        assert history[0]["summary"] == {"run": scheduler_module.CRON_HISTORY_LIMIT + 4}
        assert last == history[0]


class TestJobs:

    @pytest.mark.asyncio
    async def test_predictions_job_resumes_and_records(self, store, monkeypatch):
        orchestrator = MagicMock()
        orchestrator.run_wave = AsyncMock(return_value=RunResult(
            date="2024-01-15", status="completed", processed=4, generated=4,
        ))
        monkeypatch.setattr(scheduler_module, "get_orchestrator", lambda: orchestrator)
        monkeypatch.setattr(scheduler_module, "get_state_store", lambda: store)

        entry = await scheduler_module.run_predictions_job()

        options = orchestrator.run_wave.await_args.kwargs["options"]
        assert options.resume is True
        assert entry["status"] == "ok"
        assert entry["summary"]["processed"] == 4
        assert (await store.get(CRON_LAST_EXECUTION))["job"] == "predictions"

    @pytest.mark.asyncio
    async def test_failed_job_is_recorded_not_raised(self, store, monkeypatch):
        engine = MagicMock()
        engine.score_date = AsyncMock(side_effect=RuntimeError("provider down"))
        monkeypatch.setattr(scheduler_module, "get_accuracy_engine", lambda: engine)
        monkeypatch.setattr(scheduler_module, "get_state_store", lambda: store)

        entry = await scheduler_module.run_scores_job()

        assert entry["status"] == "error"
        assert entry["error"] == "provider down"
        assert (await store.get(CRON_HISTORY_INDEX))[0]["job"] == "scores"

    @pytest.mark.asyncio
    async def test_scores_job_summary(self, store, monkeypatch):
        engine = MagicMock()
        engine.score_date = AsyncMock(return_value=AccuracyAggregate(
            date="2024-01-14", computed_at="2024-01-15T00:15:00+00:00", processed=6, overall_accuracy=55.0,
        ))
        monkeypatch.setattr(scheduler_module, "get_accuracy_engine", lambda: engine)
        monkeypatch.setattr(scheduler_module, "get_state_store", lambda: store)

        entry = await scheduler_module.run_scores_job()

        assert entry["summary"] == {"date": "2024-01-14", "processed": 6, "overall_accuracy": 55.0}


class TestSchedulerStatus:

    def test_status_lists_no_jobs_before_start(self):
        status = scheduler_module.get_scheduler_status()
        assert status["running"] is False
        assert status["jobs"] == []
