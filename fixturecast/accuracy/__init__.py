"""Prediction accuracy scoring and probabilistic calibration."""

from fixturecast.accuracy.engine import AccuracyEngine, BackfillResult, resolve_backfill_dates
from fixturecast.accuracy.models import (
    AccuracyAggregate,
    AccuracyRecord,
    Calibration,
    CriterionStats,
    LeagueAccuracy,
)

__all__ = [
    "AccuracyEngine",
    "BackfillResult",
    "resolve_backfill_dates",
    "AccuracyAggregate",
    "AccuracyRecord",
    "Calibration",
    "CriterionStats",
    "LeagueAccuracy",
]
