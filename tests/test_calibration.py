"""
Tests for 1X2 calibration metrics.

numpy-only implementation (no SciPy/sklearn).
"""

import numpy as np
import pytest

from fixturecast.accuracy.calibration import (
    EPS,
    compute_calibration,
    log_loss,
    multiclass_brier,
    to_probability_vector,
)
from fixturecast.schemas import PredictionPayload


def probs_payload(home, draw, away) -> PredictionPayload:
    return PredictionPayload(home_win_probability=home, draw_probability=draw, away_win_probability=away)


class TestProbabilityVector:

    def test_scales_percentages(self):
        vector = to_probability_vector(probs_payload(50, 30, 20))
        assert np.allclose(vector, [0.5, 0.3, 0.2])

    def test_renormalises_off_sum_triples(self):
        vector = to_probability_vector(probs_payload(60, 30, 30))
        assert vector.sum() == pytest.approx(1.0)
        assert vector[0] == pytest.approx(0.5)

    def test_clips_out_of_range_values(self):
        vector = to_probability_vector(probs_payload(120, -10, 0))
        assert np.allclose(vector, [1.0, 0.0, 0.0])

    def test_incomplete_or_zero_is_none(self):
        assert to_probability_vector(PredictionPayload(home_win_probability=50)) is None
        assert to_probability_vector(probs_payload(0, 0, 0)) is None


class TestBrier:

    def test_perfect_forecast_is_zero(self):
        assert multiclass_brier(np.array([1.0, 0.0, 0.0]), 0) == 0.0

    def test_confidently_wrong_forecast(self):
        assert multiclass_brier(np.array([1.0, 0.0, 0.0]), 2) == pytest.approx(2 / 3)

    def test_bounds_for_random_triples(self):
        """0 <= brier <= 4/3 for any triple summing to one."""
        np.random.seed(42)
        for probs in np.random.dirichlet([1, 1, 1], 500):
            for actual in range(3):
                value = multiclass_brier(probs, actual)
                assert 0.0 <= value <= 4 / 3


class TestLogLoss:

    def test_certain_and_correct(self):
        assert log_loss(np.array([1.0, 0.0, 0.0]), 0) == pytest.approx(0.0)

    def test_zero_probability_is_floored(self):
        assert log_loss(np.array([1.0, 0.0, 0.0]), 1) == pytest.approx(-np.log(EPS))


class TestComputeCalibration:

    def test_home_win(self):
        calibration = compute_calibration(probs_payload(60, 25, 15), 2, 0)

        assert calibration.actual_outcome == "HOME"
        assert calibration.top_probability == pytest.approx(0.6)
        assert calibration.top_margin == pytest.approx(0.35)
        expected = ((0.6 - 1) ** 2 + 0.25 ** 2 + 0.15 ** 2) / 3
        assert calibration.brier == pytest.approx(expected)
        assert calibration.log_loss == pytest.approx(-np.log(0.6))

    def test_missing_probabilities(self):
        assert compute_calibration(PredictionPayload(outcome="Draw"), 1, 1) is None
