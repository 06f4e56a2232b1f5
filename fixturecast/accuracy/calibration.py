"""
Probabilistic calibration metrics for 1X2 predictions.

Implementation: numpy-only.
"""

from typing import Optional

import numpy as np

from fixturecast.accuracy.criteria import AWAY, DRAW, HOME, actual_outcome
from fixturecast.accuracy.models import Calibration
from fixturecast.schemas import PredictionPayload

EPS = 1e-9
_CLASS_INDEX = {HOME: 0, DRAW: 1, AWAY: 2}


def to_probability_vector(p: PredictionPayload) -> Optional[np.ndarray]:
    """Clip 0-100 percentages, scale to [0, 1] and renormalise. None if incomplete."""
    if not p.has_probabilities():
        return None
    probs = np.clip(
        np.array([p.home_win_probability, p.draw_probability, p.away_win_probability], dtype=float),
        0.0,
        100.0,
    ) / 100.0
    total = probs.sum()
    if total <= 0:
        return None
    return probs / total


def multiclass_brier(probs: np.ndarray, actual_index: int) -> float:
    """Mean squared error over the three classes. Perfect = 0."""
    one_hot = np.zeros(3)
    one_hot[actual_index] = 1.0
    return float(np.mean((probs - one_hot) ** 2))


def log_loss(probs: np.ndarray, actual_index: int) -> float:
    return float(-np.log(max(EPS, probs[actual_index])))


def compute_calibration(p: PredictionPayload, home_score: int, away_score: int) -> Optional[Calibration]:
    """Brier, log-loss and agreement margin. Requires all three probabilities."""
    probs = to_probability_vector(p)
    if probs is None:
        return None

    outcome = actual_outcome(home_score, away_score)
    index = _CLASS_INDEX[outcome]
    ordered = np.sort(probs)[::-1]

    return Calibration(
        brier=multiclass_brier(probs, index),
        log_loss=log_loss(probs, index),
        home=float(probs[0]),
        draw=float(probs[1]),
        away=float(probs[2]),
        actual_outcome=outcome,
        top_probability=float(ordered[0]),
        top_margin=float(ordered[0] - ordered[1]),
    )
