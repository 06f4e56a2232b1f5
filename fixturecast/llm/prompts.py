"""Prompt construction and response parsing for match predictions."""

import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from fixturecast.etl.base import FixtureMatch
from fixturecast.schemas import PredictionPayload

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

PREDICTION_PROMPT = """You are a football prediction engine. Generate precise, probabilistically calibrated predictions.

SAFETY AND FORMAT GUARDRAILS:
- Use ONLY the match data below. Do NOT fabricate injuries, lineups or statistics.
- Return ONLY a JSON object with the keys listed under Output; no markdown or text outside JSON.
- homeWinProbability + drawProbability + awayWinProbability must sum to 100.

Match:
- League: {league}
- Home Team: {home}
- Away Team: {away}
- Kickoff: {kickoff}
- Venue: {venue}

Output (JSON):
- outcome: "Home Win" | "Draw" | "Away Win"
- homeWinProbability, drawProbability, awayWinProbability: numbers 0-100
- predictedScore: most probable final score, "H-A" (e.g. "2-1")
- btts: "Yes" | "No"
- overUnder: "Over 2.5" | "Under 2.5"
- goalLine: {{"line": 2.5, "overProbability": 0-100, "underProbability": 0-100}}
- cleanSheet: {{"homeTeam": 0-100, "awayTeam": 0-100}}
- corners: {{"overProbability": 0-100, "underProbability": 0-100}} for over/under 9.5 corners
- confidence: "Low" | "Medium" | "High"
- analysis: two or three sentences of tactical reasoning
"""


class PredictionParseError(ValueError):
    """Raised when a model reply cannot be turned into a PredictionPayload."""


def build_prediction_prompt(match: FixtureMatch) -> str:
    return PREDICTION_PROMPT.format(
        league=match.league_name or "Unknown",
        home=match.home_team,
        away=match.away_team,
        kickoff=match.kickoff or "Unknown",
        venue=match.venue or "Unknown",
    )


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def _rebalance(first: Optional[float], second: Optional[float]) -> tuple[Optional[float], Optional[float]]:
    """Scale a two-way market to sum to 100."""
    if first is None or second is None:
        return first, second
    total = first + second
    if total <= 0:
        return first, second
    scaled = round(first / total * 100)
    return scaled, 100 - scaled


def normalize_prediction(payload: PredictionPayload) -> PredictionPayload:
    """Normalise probability groups so each sums to 100 after rounding."""
    update = {}
    if payload.has_probabilities():
        total = payload.home_win_probability + payload.draw_probability + payload.away_win_probability
        if total > 0 and total != 100:
            home = round(payload.home_win_probability / total * 100)
            away = round(payload.away_win_probability / total * 100)
            update.update(
                home_win_probability=home,
                away_win_probability=away,
                draw_probability=100 - home - away,
            )

    if payload.goal_line is not None:
        over, under = _rebalance(payload.goal_line.over_probability, payload.goal_line.under_probability)
        update["goal_line"] = payload.goal_line.model_copy(
            update={"over_probability": over, "under_probability": under}
        )

    if payload.corners is not None:
        over, under = _rebalance(payload.corners.over_probability, payload.corners.under_probability)
        update["corners"] = payload.corners.model_copy(
            update={"over_probability": over, "under_probability": under}
        )

    return payload.model_copy(update=update) if update else payload


def parse_prediction(text: str) -> PredictionPayload:
    """Decode a model reply into a validated, normalised PredictionPayload."""
    cleaned = _strip_fences(text or "")
    if not cleaned:
        raise PredictionParseError("Empty model reply")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Some replies wrap the object in prose; take the outermost braces
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise PredictionParseError("Model reply is not JSON")
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise PredictionParseError(f"Model reply is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise PredictionParseError("Model reply is not a JSON object")

    try:
        payload = PredictionPayload.model_validate(data)
    except ValidationError as e:
        raise PredictionParseError(f"Prediction failed validation: {e.error_count()} errors") from e

    if payload.outcome is None and not payload.has_probabilities() and payload.predicted_score is None:
        raise PredictionParseError("Prediction has no outcome, probabilities or score")

    return normalize_prediction(payload)
