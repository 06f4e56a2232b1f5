"""Pydantic models for predictions and the per-day pipeline state."""

from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts both the providers' camelCase JSON and snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class GoalLine(CamelModel):
    line: float = 2.5
    over_probability: Optional[float] = None
    under_probability: Optional[float] = None


class BttsMarket(CamelModel):
    yes_probability: Optional[float] = None
    no_probability: Optional[float] = None


class CleanSheet(CamelModel):
    home_team: Optional[float] = None
    away_team: Optional[float] = None


class CornersMarket(CamelModel):
    over_probability: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("over_probability", "overProbability", "over"),
    )
    under_probability: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("under_probability", "underProbability", "under"),
    )


class PredictionPayload(CamelModel):
    """A single model prediction. Every market is optional."""

    outcome: Optional[str] = None  # "Home Win" | "Draw" | "Away Win"
    home_win_probability: Optional[float] = None  # 0-100
    draw_probability: Optional[float] = None
    away_win_probability: Optional[float] = None
    predicted_score: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "predicted_score", "predictedScore", "predictedScoreline"
        ),
    )
    btts: Optional[Union[bool, str, BttsMarket]] = None
    over_under: Optional[str] = None  # "Over 2.5" | "Under 2.5"
    goal_line: Optional[GoalLine] = None
    clean_sheet: Optional[CleanSheet] = None
    corners: Optional[CornersMarket] = None
    confidence: Optional[Union[float, str]] = None
    analysis: Optional[str] = None
    key_factors: Optional[list] = None

    def has_probabilities(self) -> bool:
        return None not in (
            self.home_win_probability,
            self.draw_probability,
            self.away_win_probability,
        )


class PredictionRecord(BaseModel):
    """One stored prediction: prediction:{match_id}:{model}:{date}."""

    match_id: int
    model: str
    provider: str
    tier: str = "primary"
    date: str
    generated_at: str
    attempts: int = 1
    prediction: PredictionPayload

    # Match context
    league_id: Optional[int] = None
    league_name: Optional[str] = None
    season: Optional[int] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    kickoff: Optional[str] = None
    venue: Optional[str] = None
    country: Optional[str] = None


class PredictionFailure(BaseModel):
    match_id: int
    error: str
    kind: str
    attempts: int = 0


class DailyAggregate(BaseModel):
    """All predictions generated for one date (daily:{date}:aggregate)."""

    date: str
    generated_at: str
    updated_at: Optional[str] = None
    model: str
    total_matches: int = 0
    featured_matches: int = 0
    processed: int = 0
    failures: int = 0
    failed_match_ids: list[int] = Field(default_factory=list)
    models_used: dict[str, int] = Field(default_factory=dict)
    fetch_mode: str = "global"
    using_fallback_all_matches: bool = False
    version: int = 0
    predictions: list[PredictionRecord] = Field(default_factory=list)

    def match_ids(self) -> set[int]:
        return {p.match_id for p in self.predictions}

    def find(self, match_id: int) -> Optional[PredictionRecord]:
        for record in self.predictions:
            if record.match_id == match_id:
                return record
        return None


class ProgressState(BaseModel):
    """Resumable run state (daily:{date}:progress)."""

    date: str
    predicted: int = 0
    remaining: int = 0
    failures: int = 0
    delay_ms: float = 0
    concurrency: int = 1
    consecutive_rate_limited: int = 0
    circuit_open: bool = False
    circuit_breaks: int = 0
    waves: int = 0
    done: bool = False
    last_status: Optional[str] = None
    updated_at: Optional[str] = None
