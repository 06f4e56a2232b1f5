"""Tests for the accuracy engine: scoring, persistence, backfill, trend."""

from datetime import date, datetime, timezone

import pytest

from conftest import FakeFixtureSource, make_finished
from fixturecast.accuracy.engine import AccuracyEngine, resolve_backfill_dates
from fixturecast.accuracy.models import AccuracyAggregate
from fixturecast.schemas import DailyAggregate, PredictionRecord
from fixturecast.storage.keys import (
    accuracy_aggregate_key,
    accuracy_fixture_key,
    daily_aggregate_key,
    prediction_key,
)
from fixturecast.utils.dates import InvalidDateError

DATE = "2024-01-14"
FIXED_NOW = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def record(match_id, prediction, model="gemini-2.5-flash", generated_at="2024-01-14T06:00:00+00:00", **context):
    return PredictionRecord(
        match_id=match_id,
        model=model,
        provider="gemini",
        date=DATE,
        generated_at=generated_at,
        prediction=prediction,
        league_id=context.get("league_id", 39),
        league_name=context.get("league_name", "Premier League"),
    )


async def store_daily(store, records):
    aggregate = DailyAggregate(
        date=DATE,
        generated_at="2024-01-14T06:00:00+00:00",
        model="gemini-2.5-flash",
        processed=len(records),
        predictions=records,
    )
    await store.put(daily_aggregate_key(DATE), aggregate.model_dump(mode="json"))


def build_engine(store, finished=None, failing_dates=None):
    fixtures = FakeFixtureSource(finished=finished or {}, failing_dates=failing_dates)
    return AccuracyEngine(store, fixtures, clock=lambda: FIXED_NOW, goal_line=2.5, corners_line=9.5)


class TestScoreDate:

    @pytest.mark.asyncio
    async def test_scores_and_persists(self, store):
        await store_daily(store, [
            record(1, {"outcome": "Home Win", "predictedScore": "2-1", "btts": "Yes"}),
            record(2, {
                "homeWinProbability": 20, "drawProbability": 30, "awayWinProbability": 50,
                "predictedScore": "0-1",
            }),
        ])
        engine = build_engine(store, {DATE: [make_finished(1, 3, 1), make_finished(2, 0, 2), make_finished(3, 1, 1)]})

        aggregate = await engine.score_date(DATE)

        assert aggregate.finished_matches == 3
        assert aggregate.processed == 2
        assert aggregate.missing_predictions == 1
        assert aggregate.outcome.correct == 2
        assert aggregate.outcome.applicable == 2
        assert aggregate.score.pct == 0.0
        assert aggregate.btts.applicable == 1
        # Match 1: 50. Match 2: outcome (3) + btts n/a + score miss (0 of 5) -> 37.5
        assert aggregate.overall_accuracy == pytest.approx((50 + 37.5) / 2)
        assert aggregate.calibrated_records == 1
        assert aggregate.mean_brier is not None

        stored = await store.get(accuracy_fixture_key(DATE, 1))
        assert stored["accuracy"] == 50.0

    @pytest.mark.asyncio
    async def test_rescoring_same_inputs_leaves_fixture_records_unchanged(self, store):
        await store_daily(store, [record(1, {"outcome": "Home Win", "predictedScore": "2-1", "btts": "Yes"})])
        finished = {DATE: [make_finished(1, 3, 1)]}
        await build_engine(store, finished).score_date(DATE)
        first = await store.get(accuracy_fixture_key(DATE, 1))

        later = datetime(2024, 1, 16, 9, 0, tzinfo=timezone.utc)
        rescoring = AccuracyEngine(store, FakeFixtureSource(finished=finished), clock=lambda: later)
        aggregate = await rescoring.score_date(DATE)

        assert await store.get(accuracy_fixture_key(DATE, 1)) == first
        assert aggregate.computed_at == later.isoformat()
        assert stored["outcome_correct"] is True
        assert await store.get(accuracy_fixture_key(DATE, 3)) is None
        assert AccuracyAggregate.model_validate(await store.get(accuracy_aggregate_key(DATE))) == aggregate

    @pytest.mark.asyncio
    async def test_recompute_drops_stale_fixture_records(self, store):
        await store.put(accuracy_fixture_key(DATE, 99), {"match_id": 99})
        await store_daily(store, [record(1, {"outcome": "Draw"})])
        engine = build_engine(store, {DATE: [make_finished(1, 0, 0)]})

        await engine.score_date(DATE)

        assert await store.get(accuracy_fixture_key(DATE, 99)) is None
        assert await store.get(accuracy_fixture_key(DATE, 1)) is not None

    @pytest.mark.asyncio
    async def test_record_without_applicable_criteria_is_excluded(self, store):
        await store_daily(store, [
            record(1, {"analysis": "No clear pick"}),
            record(2, {"outcome": "Away Win"}),
        ])
        engine = build_engine(store, {DATE: [make_finished(1, 1, 0), make_finished(2, 0, 1)]})

        aggregate = await engine.score_date(DATE)

        assert aggregate.processed == 2
        assert aggregate.scored_records == 1
        assert aggregate.overall_accuracy == 100.0

    @pytest.mark.asyncio
    async def test_falls_back_to_prediction_keys(self, store):
        older = record(5, {"outcome": "Draw"}, model="gemini-2.0-flash", generated_at="2024-01-14T06:00:00+00:00")
        newer = record(5, {"outcome": "Home Win"}, model="deepseek-chat", generated_at="2024-01-14T12:00:00+00:00")
        await store.put(prediction_key(5, older.model, DATE), older.model_dump(mode="json"))
        await store.put(prediction_key(5, newer.model, DATE), newer.model_dump(mode="json"))
        await store.put(prediction_key(5, "deepseek-chat", "2024-01-13"), older.model_dump(mode="json"))
        engine = build_engine(store, {DATE: [make_finished(5, 2, 0)]})

        aggregate = await engine.score_date(DATE)
        stored = await store.get(accuracy_fixture_key(DATE, 5))

        assert aggregate.processed == 1
        assert stored["model"] == "deepseek-chat"
        assert stored["outcome_correct"] is True

    @pytest.mark.asyncio
    async def test_league_breakdown_sorted_by_accuracy(self, store):
        await store_daily(store, [
            record(1, {"outcome": "Draw"}, league_id=39, league_name="Premier League"),
            record(2, {"outcome": "Home Win"}, league_id=140, league_name="La Liga"),
        ])
        engine = build_engine(store, {DATE: [make_finished(1, 2, 0), make_finished(2, 2, 0)]})

        aggregate = await engine.score_date(DATE)

        assert [league.league_id for league in aggregate.leagues] == [140, 39]
        assert aggregate.leagues[0].overall_accuracy == 100.0
        assert aggregate.leagues[1].overall_accuracy == 0.0

    @pytest.mark.asyncio
    async def test_corners_use_finished_totals(self, store):
        await store_daily(store, [record(1, {"outcome": "Home Win", "corners": {"over": 70, "under": 30}})])
        engine = build_engine(store, {DATE: [make_finished(1, 1, 0, total_corners=12)]})

        aggregate = await engine.score_date(DATE)

        assert aggregate.corners.correct == 1
        assert aggregate.corners.applicable == 1


class TestBackfill:

    @pytest.mark.asyncio
    async def test_skips_scored_dates_unless_forced(self, store):
        engine = build_engine(store, {DATE: [], "2024-01-13": []})
        await engine.score_date(DATE)

        result = await engine.backfill(["2024-01-13", DATE])
        assert result.skipped == [DATE]
        assert [p["date"] for p in result.processed] == ["2024-01-13"]

        forced = await engine.backfill([DATE], force=True)
        assert forced.skipped == []
        assert [p["date"] for p in forced.processed] == [DATE]

    @pytest.mark.asyncio
    async def test_fetch_errors_do_not_abort(self, store):
        engine = build_engine(store, {"2024-01-12": []}, failing_dates={"2024-01-13"})

        result = await engine.backfill(["2024-01-12", "2024-01-13"])

        assert [e["date"] for e in result.errors] == ["2024-01-13"]
        assert [p["date"] for p in result.processed] == ["2024-01-12"]


class TestResolveBackfillDates:
    TODAY = date(2024, 1, 15)

    def test_explicit_date(self):
        assert resolve_backfill_dates(date="2024-01-10", today=self.TODAY) == ["2024-01-10"]

    def test_range_is_inclusive(self):
        dates = resolve_backfill_dates(start="2024-01-10", end="2024-01-12", today=self.TODAY)
        assert dates == ["2024-01-10", "2024-01-11", "2024-01-12"]

    def test_range_drops_today_and_future(self):
        dates = resolve_backfill_dates(start="2024-01-14", end="2024-01-17", today=self.TODAY)
        assert dates == ["2024-01-14"]

    def test_days_are_capped(self):
        dates = resolve_backfill_dates(days=500, today=self.TODAY, max_days=60)
        assert len(dates) == 60
        assert dates[0] == "2024-01-14"

    def test_half_open_range_is_rejected(self):
        with pytest.raises(InvalidDateError):
            resolve_backfill_dates(start="2024-01-10", today=self.TODAY)

    def test_reversed_range_is_rejected(self):
        with pytest.raises(InvalidDateError):
            resolve_backfill_dates(start="2024-01-12", end="2024-01-10", today=self.TODAY)

    def test_malformed_date_is_rejected(self):
        with pytest.raises(InvalidDateError):
            resolve_backfill_dates(date="14-01-2024", today=self.TODAY)


class TestTrend:

    @pytest.mark.asyncio
    async def test_oldest_first_skipping_unscored_days(self, store):
        for day, value in (("2024-01-12", 40.0), ("2024-01-14", 60.0)):
            aggregate = AccuracyAggregate(date=day, computed_at="x", processed=3, overall_accuracy=value)
            await store.put(accuracy_aggregate_key(day), aggregate.model_dump(mode="json"))
        engine = build_engine(store)

        points = await engine.trend(days=5, today=date(2024, 1, 15))

        assert [p["date"] for p in points] == ["2024-01-12", "2024-01-14"]
        assert [p["overall_accuracy"] for p in points] == [40.0, 60.0]
