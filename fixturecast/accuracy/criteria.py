"""
Per-fixture accuracy criteria.

Every criterion returns True / False, or None when the prediction lacks the
field it needs. None is "not applicable", never "wrong".
"""

import re
from typing import Optional

from fixturecast.etl.base import FinishedMatch
from fixturecast.schemas import BttsMarket, PredictionPayload

HOME = "HOME"
DRAW = "DRAW"
AWAY = "AWAY"

OUTCOME_WEIGHT = 3
SCORE_WEIGHT = 5
BTTS_WEIGHT = 2

_SCORE_RE = re.compile(r"^\s*(\d+)\s*[-:]\s*(\d+)\s*$")
_LINE_RE = re.compile(r"(\d+(?:\.\d+)?)")


def parse_score(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse "2-1" / "2:1" into (home, away)."""
    if not value:
        return None
    m = _SCORE_RE.match(value)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def actual_outcome(home_score: int, away_score: int) -> str:
    if home_score > away_score:
        return HOME
    if home_score < away_score:
        return AWAY
    return DRAW


def predicted_outcome(p: PredictionPayload) -> Optional[str]:
    """Outcome label, else the most likely 1X2 class, else the predicted scoreline."""
    if p.outcome:
        label = p.outcome.upper()
        if "HOME" in label:
            return HOME
        if "AWAY" in label:
            return AWAY
        if "DRAW" in label:
            return DRAW

    if p.has_probabilities():
        probs = [(p.home_win_probability, HOME), (p.draw_probability, DRAW), (p.away_win_probability, AWAY)]
        best = max(prob for prob, _ in probs)
        for prob, label in probs:
            if prob == best:
                return label

    score = parse_score(p.predicted_score)
    if score:
        return actual_outcome(*score)
    return None


def outcome_correct(p: PredictionPayload, match: FinishedMatch) -> Optional[bool]:
    pick = predicted_outcome(p)
    if pick is None:
        return None
    return pick == actual_outcome(match.home_score, match.away_score)


def score_correct(p: PredictionPayload, match: FinishedMatch) -> Optional[bool]:
    score = parse_score(p.predicted_score)
    if score is None:
        return None
    return score == (match.home_score, match.away_score)


def btts_pick(p: PredictionPayload) -> Optional[bool]:
    value = p.btts
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, BttsMarket):
        if value.yes_probability is None or value.no_probability is None:
            return None
        return value.yes_probability >= value.no_probability
    text = value.strip().lower()
    if text.startswith("yes") or text == "true":
        return True
    if text.startswith("no") or text == "false":
        return False
    return None


def btts_correct(p: PredictionPayload, match: FinishedMatch) -> Optional[bool]:
    pick = btts_pick(p)
    if pick is None:
        return None
    return pick == (match.home_score > 0 and match.away_score > 0)


def goal_line_correct(
    p: PredictionPayload, match: FinishedMatch, default_line: float = 2.5
) -> Optional[bool]:
    """Over/under label first, else the higher side of the goal-line probabilities (ties pick over)."""
    total_goals = match.home_score + match.away_score

    if p.over_under:
        label = p.over_under.lower()
        m = _LINE_RE.search(label)
        line = float(m.group(1)) if m else default_line
        if "over" in label:
            return total_goals > line
        if "under" in label:
            return total_goals <= line

    gl = p.goal_line
    if gl is not None and (gl.over_probability is not None or gl.under_probability is not None):
        over = (gl.over_probability or 0) >= (gl.under_probability or 0)
        return total_goals > gl.line if over else total_goals <= gl.line

    return None


def clean_sheet_correct(p: PredictionPayload, match: FinishedMatch) -> Optional[bool]:
    """
    A zero in the predicted scoreline predicts a clean sheet for the other side.
    A scoreline without a zero makes no clean-sheet call and always scores
    False. Without a scoreline, a clean-sheet probability above 50 picks the
    higher side.
    """
    home_kept = match.away_score == 0
    away_kept = match.home_score == 0

    score = parse_score(p.predicted_score)
    if score is not None:
        predicted_home, predicted_away = score
        if predicted_home == 0 or predicted_away == 0:
            return (predicted_away == 0 and home_kept) or (predicted_home == 0 and away_kept)
        return False

    cs = p.clean_sheet
    if cs is not None:
        home_prob = cs.home_team or 0
        away_prob = cs.away_team or 0
        if home_prob > 50 or away_prob > 50:
            return home_kept if home_prob >= away_prob else away_kept

    return None


def corners_correct(
    p: PredictionPayload, match: FinishedMatch, line: float = 9.5
) -> Optional[bool]:
    if match.total_corners is None or p.corners is None:
        return None
    over_prob = p.corners.over_probability
    under_prob = p.corners.under_probability
    if over_prob is None or under_prob is None:
        return None
    is_over = match.total_corners > line
    return is_over if over_prob >= under_prob else not is_over


def weighted_accuracy(
    outcome: Optional[bool], score: Optional[bool], btts: Optional[bool]
) -> Optional[float]:
    """100 * weighted hits / weighted applicable criteria (3/5/2). None if nothing applies."""
    earned = 0
    possible = 0
    for flag, weight in ((outcome, OUTCOME_WEIGHT), (score, SCORE_WEIGHT), (btts, BTTS_WEIGHT)):
        if flag is None:
            continue
        possible += weight
        if flag:
            earned += weight
    if possible == 0:
        return None
    return 100.0 * earned / possible
