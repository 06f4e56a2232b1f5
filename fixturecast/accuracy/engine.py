"""
Accuracy & calibration engine.

Scores a date's stored predictions against final results and persists
per-fixture records plus a day aggregate (recomputed wholesale every run).
"""

import logging
from datetime import date as date_cls
from datetime import datetime
from typing import Callable, Optional

import numpy as np
from pydantic import BaseModel, Field

from fixturecast.accuracy.calibration import compute_calibration
from fixturecast.accuracy.criteria import (
    actual_outcome,
    btts_correct,
    clean_sheet_correct,
    corners_correct,
    goal_line_correct,
    outcome_correct,
    predicted_outcome,
    score_correct,
    weighted_accuracy,
)
from fixturecast.accuracy.models import AccuracyAggregate, AccuracyRecord, LeagueAccuracy
from fixturecast.config import get_settings
from fixturecast.etl.base import FinishedMatch, FixtureFetchError, FixtureSource
from fixturecast.schemas import DailyAggregate, PredictionRecord
from fixturecast.storage.base import StateStore
from fixturecast.storage.keys import (
    accuracy_aggregate_key,
    accuracy_fixture_key,
    accuracy_fixture_prefix,
    daily_aggregate_key,
    prediction_prefix,
)
from fixturecast.telemetry import set_accuracy_metrics
from fixturecast.utils.dates import (
    InvalidDateError,
    date_range,
    last_n_days,
    parse_target_date,
    previous_day,
    utc_now,
)

logger = logging.getLogger(__name__)


class BackfillResult(BaseModel):
    dates: list[str] = Field(default_factory=list)
    processed: list[dict] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    errors: list[dict] = Field(default_factory=list)


def _mean(values: list[float]) -> Optional[float]:
    return float(np.mean(values)) if values else None


def resolve_backfill_dates(
    date: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    days: Optional[int] = None,
    today: Optional[date_cls] = None,
    max_days: Optional[int] = None,
) -> list[str]:
    """
    Dates to backfill: an explicit date, an inclusive start..end range, or the
    last `days` days (capped). Today and future dates are always dropped.
    """
    today = today or utc_now().date()
    max_days = max_days or get_settings().BACKFILL_MAX_DAYS

    if date:
        dates = [parse_target_date(date)]
    elif start or end:
        if not (start and end):
            raise InvalidDateError(start or end, "Both start and end are required for a range")
        if parse_target_date(start) > parse_target_date(end):
            raise InvalidDateError(f"{start}..{end}", "start must not be after end")
        dates = date_range(start, end)
    elif days:
        dates = last_n_days(min(max(days, 1), max_days), today=today)
    else:
        dates = [previous_day()]

    today_iso = today.isoformat()
    past = [d for d in dates if d < today_iso]
    return past[:max_days]


class AccuracyEngine:
    """Scores stored predictions for a date against finished matches."""

    def __init__(
        self,
        store: StateStore,
        fixtures: FixtureSource,
        clock: Callable[[], datetime] = utc_now,
        goal_line: Optional[float] = None,
        corners_line: Optional[float] = None,
    ):
        settings = get_settings()
        self.store = store
        self.fixtures = fixtures
        self._clock = clock
        self.goal_line = goal_line if goal_line is not None else settings.ACCURACY_GOAL_LINE
        self.corners_line = corners_line if corners_line is not None else settings.ACCURACY_CORNERS_LINE

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def load_aggregate(self, date: str) -> Optional[AccuracyAggregate]:
        raw = await self.store.get(accuracy_aggregate_key(date))
        return AccuracyAggregate.model_validate(raw) if raw else None

    async def find_prediction(
        self, date: str, match_id: int, daily: Optional[DailyAggregate] = None
    ) -> Optional[PredictionRecord]:
        """The day's aggregate first, then any prediction:{id}:*:{date} key (most recent wins)."""
        if daily is not None:
            record = daily.find(match_id)
            if record is not None:
                return record

        candidates = []
        for key in await self.store.list_keys(prediction_prefix(match_id)):
            if not key.endswith(f":{date}"):
                continue
            raw = await self.store.get(key)
            if raw:
                candidates.append(PredictionRecord.model_validate(raw))
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.generated_at)

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def score_match(self, match: FinishedMatch, record: PredictionRecord, date: str) -> AccuracyRecord:
        p = record.prediction
        outcome = outcome_correct(p, match)
        score = score_correct(p, match)
        btts = btts_correct(p, match)

        return AccuracyRecord(
            match_id=match.match_id,
            date=date,
            model=record.model,
            league_id=match.league_id,
            league_name=match.league_name,
            home_team=match.home_team,
            away_team=match.away_team,
            home_score=match.home_score,
            away_score=match.away_score,
            total_corners=match.total_corners,
            predicted_outcome=predicted_outcome(p),
            actual_outcome=actual_outcome(match.home_score, match.away_score),
            predicted_score=p.predicted_score,
            outcome_correct=outcome,
            score_correct=score,
            btts_correct=btts,
            goal_line_correct=goal_line_correct(p, match, default_line=self.goal_line),
            clean_sheet_correct=clean_sheet_correct(p, match),
            corners_correct=corners_correct(p, match, line=self.corners_line),
            accuracy=weighted_accuracy(outcome, score, btts),
            calibration=compute_calibration(p, match.home_score, match.away_score),
        )

    def aggregate(self, date: str, records: list[AccuracyRecord], finished_matches: int) -> AccuracyAggregate:
        """Per-criterion hit rates over applicable records plus a per-league breakdown."""
        result = AccuracyAggregate(
            date=date,
            computed_at=self._clock().isoformat(),
            finished_matches=finished_matches,
            processed=len(records),
            missing_predictions=finished_matches - len(records),
        )
        leagues: dict[Optional[int], LeagueAccuracy] = {}
        league_scores: dict[Optional[int], list[float]] = {}

        for r in records:
            result.outcome.add(r.outcome_correct)
            result.score.add(r.score_correct)
            result.btts.add(r.btts_correct)
            result.goal_line.add(r.goal_line_correct)
            result.clean_sheet.add(r.clean_sheet_correct)
            result.corners.add(r.corners_correct)

            bucket = leagues.setdefault(
                r.league_id, LeagueAccuracy(league_id=r.league_id, league_name=r.league_name)
            )
            bucket.processed += 1
            bucket.outcome.add(r.outcome_correct)
            bucket.score.add(r.score_correct)
            bucket.btts.add(r.btts_correct)
            if r.accuracy is not None:
                league_scores.setdefault(r.league_id, []).append(r.accuracy)

        scored = [r.accuracy for r in records if r.accuracy is not None]
        result.scored_records = len(scored)
        result.overall_accuracy = _mean(scored)

        calibrated = [r.calibration for r in records if r.calibration is not None]
        result.calibrated_records = len(calibrated)
        result.mean_brier = _mean([c.brier for c in calibrated])
        result.mean_log_loss = _mean([c.log_loss for c in calibrated])

        for league_id, bucket in leagues.items():
            bucket.overall_accuracy = _mean(league_scores.get(league_id, []))
        result.leagues = sorted(
            leagues.values(),
            key=lambda b: (b.overall_accuracy is None, -(b.overall_accuracy or 0)),
        )
        return result

    async def score_date(
        self, date: Optional[str] = None, finished: Optional[list[FinishedMatch]] = None
    ) -> AccuracyAggregate:
        """
        Score a date (default: yesterday).

        Raises:
            InvalidDateError: date is not YYYY-MM-DD.
            FixtureFetchError: results could not be fetched.
        """
        date = parse_target_date(date) if date else previous_day()
        if finished is None:
            finished = await self.fixtures.get_finished_matches(date)

        raw_daily = await self.store.get(daily_aggregate_key(date))
        daily = DailyAggregate.model_validate(raw_daily) if raw_daily else None

        records: list[AccuracyRecord] = []
        for match in finished:
            prediction = await self.find_prediction(date, match.match_id, daily)
            if prediction is None:
                continue
            records.append(self.score_match(match, prediction, date))

        # Wholesale recompute: drop stale per-fixture records first
        await self.store.delete_prefix(accuracy_fixture_prefix(date))
        for record in records:
            await self.store.put(accuracy_fixture_key(date, record.match_id), record.model_dump(mode="json"))

        aggregate = self.aggregate(date, records, len(finished))
        await self.store.put(accuracy_aggregate_key(date), aggregate.model_dump(mode="json"))
        set_accuracy_metrics(aggregate.overall_accuracy, aggregate.mean_brier)

        logger.info(
            f"Accuracy {date}: scored={aggregate.processed}/{len(finished)} "
            f"overall={aggregate.overall_accuracy} brier={aggregate.mean_brier}"
        )
        return aggregate

    async def backfill(self, dates: list[str], force: bool = False) -> BackfillResult:
        """Score each date, skipping dates already scored unless forced."""
        result = BackfillResult(dates=dates)
        for day in dates:
            if not force and await self.store.get(accuracy_aggregate_key(day)):
                result.skipped.append(day)
                continue
            try:
                aggregate = await self.score_date(day)
            except FixtureFetchError as e:
                logger.warning(f"Backfill {day} failed: {e}")
                result.errors.append({"date": day, "error": str(e)})
                continue
            result.processed.append({
                "date": day,
                "processed": aggregate.processed,
                "overall_accuracy": aggregate.overall_accuracy,
            })
        return result

    async def trend(self, days: int = 7, today: Optional[date_cls] = None) -> list[dict]:
        """Per-day headline percentages for the last `days` scored days, oldest first."""
        points = []
        for day in reversed(last_n_days(days, today=today)):
            aggregate = await self.load_aggregate(day)
            if aggregate is None:
                continue
            points.append({
                "date": day,
                "processed": aggregate.processed,
                "overall_accuracy": aggregate.overall_accuracy,
                "outcome_pct": aggregate.outcome.pct,
                "score_pct": aggregate.score.pct,
                "btts_pct": aggregate.btts.pct,
                "mean_brier": aggregate.mean_brier,
            })
        return points
