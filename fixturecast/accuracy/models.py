"""Pydantic models for accuracy records and daily aggregates."""

from typing import Optional

from pydantic import BaseModel, Field


class Calibration(BaseModel):
    brier: float
    log_loss: float
    home: float
    draw: float
    away: float
    actual_outcome: str
    top_probability: float
    top_margin: float


class AccuracyRecord(BaseModel):
    """Scoring of one prediction against its final result (accuracy:{date}:fixture:{id})."""

    match_id: int
    date: str
    model: Optional[str] = None
    league_id: Optional[int] = None
    league_name: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    home_score: int
    away_score: int
    total_corners: Optional[int] = None
    predicted_outcome: Optional[str] = None
    actual_outcome: str
    predicted_score: Optional[str] = None

    outcome_correct: Optional[bool] = None
    score_correct: Optional[bool] = None
    btts_correct: Optional[bool] = None
    goal_line_correct: Optional[bool] = None
    clean_sheet_correct: Optional[bool] = None
    corners_correct: Optional[bool] = None

    accuracy: Optional[float] = None
    calibration: Optional[Calibration] = None


class CriterionStats(BaseModel):
    correct: int = 0
    applicable: int = 0
    pct: Optional[float] = None

    def add(self, flag: Optional[bool]) -> None:
        if flag is None:
            return
        self.applicable += 1
        if flag:
            self.correct += 1
        self.pct = 100.0 * self.correct / self.applicable


class LeagueAccuracy(BaseModel):
    league_id: Optional[int] = None
    league_name: Optional[str] = None
    processed: int = 0
    outcome: CriterionStats = Field(default_factory=CriterionStats)
    score: CriterionStats = Field(default_factory=CriterionStats)
    btts: CriterionStats = Field(default_factory=CriterionStats)
    overall_accuracy: Optional[float] = None


class AccuracyAggregate(BaseModel):
    """Day-level accuracy summary (accuracy:{date}:aggregate)."""

    date: str
    computed_at: str
    finished_matches: int = 0
    processed: int = 0
    missing_predictions: int = 0
    outcome: CriterionStats = Field(default_factory=CriterionStats)
    score: CriterionStats = Field(default_factory=CriterionStats)
    btts: CriterionStats = Field(default_factory=CriterionStats)
    goal_line: CriterionStats = Field(default_factory=CriterionStats)
    clean_sheet: CriterionStats = Field(default_factory=CriterionStats)
    corners: CriterionStats = Field(default_factory=CriterionStats)
    overall_accuracy: Optional[float] = None
    scored_records: int = 0
    mean_brier: Optional[float] = None
    mean_log_loss: Optional[float] = None
    calibrated_records: int = 0
    leagues: list[LeagueAccuracy] = Field(default_factory=list)
