"""Unit tests for the polynomial extrapolation predictor."""

import logging

import numpy as np
import pytest

from daejax.integration.history import StepHistory
from daejax.integration.predictor import _solve_predictor_system, compute_predictor_coeffs, predict


class TestPredictorCoeffs:
    """Test polynomial extrapolation predictor coefficient computation."""

    def test_order_zero_fallback(self):
        """With no history, predictor should use constant extrapolation."""
        coeffs = compute_predictor_coeffs(past_dt=[], new_dt=1e-3, order=1)
        assert coeffs.order == 0
        assert len(coeffs.a) == 1
        assert coeffs.a[0] == pytest.approx(1.0)
        assert coeffs.span == pytest.approx(1.0)

    def test_linear_extrapolation_uniform_dt(self):
        """For uniform dt, linear extrapolation: x_{n+1} = 2*x_n - x_{n-1}."""
        dt = 1e-3
        coeffs = compute_predictor_coeffs(past_dt=[dt], new_dt=dt, order=1)

        assert coeffs.order == 1
        np.testing.assert_allclose(coeffs.a, [2.0, -1.0], rtol=1e-10)
        assert coeffs.span == pytest.approx(2.0)

    def test_quadratic_extrapolation_uniform_dt(self):
        """For uniform dt: tau = [-1, -2, -3], solving gives [3, -3, 1]."""
        dt = 1e-3
        coeffs = compute_predictor_coeffs(past_dt=[dt, dt], new_dt=dt, order=2)

        assert coeffs.order == 2
        np.testing.assert_allclose(coeffs.a, [3.0, -3.0, 1.0], rtol=1e-10)

    def test_variable_dt_coeffs(self):
        """Coefficients sum to one on a non-uniform grid."""
        coeffs = compute_predictor_coeffs(past_dt=[2e-3, 1e-3], new_dt=1e-3, order=2)
        assert coeffs.order == 2
        assert sum(coeffs.a) == pytest.approx(1.0, rel=1e-10)
        assert coeffs.span == pytest.approx(4.0)

    def test_order_limited_by_history(self):
        """Only 1 past dt means 2 points, so max order is 1."""
        coeffs = compute_predictor_coeffs(past_dt=[1e-3], new_dt=1e-3, order=5)
        assert coeffs.order == 1

    def test_negative_order(self):
        with pytest.raises(ValueError):
            compute_predictor_coeffs(past_dt=[], new_dt=1.0, order=-1)

    def test_degenerate_timepoints_logged(self, caplog):
        """Coincident timepoints fall back to constant extrapolation."""
        with caplog.at_level(logging.DEBUG, logger="daejax"):
            a = _solve_predictor_system(np.array([0.0, 0.0]), 1)
        np.testing.assert_array_equal(a, [1.0, 0.0])
        assert "Degenerate predictor timepoints" in caplog.text


class TestPredict:
    """Test prediction from past states."""

    def test_linear_predict_constant(self):
        dt = 1e-3
        coeffs = compute_predictor_coeffs(past_dt=[dt], new_dt=dt, order=1)
        x = np.array([1.0, 2.0, 3.0])
        np.testing.assert_allclose(predict(coeffs, [x, x]), x, rtol=1e-10)

    def test_quadratic_exact_on_variable_grid(self):
        """Order-2 extrapolation reproduces a quadratic exactly."""
        times = [0.5, 0.3, 0.25]
        h = 0.2

        def q(t):
            return np.array([1.0 - 2.0 * t + 4.0 * t**2])

        coeffs = compute_predictor_coeffs(past_dt=[0.2, 0.05], new_dt=h, order=2)
        pred = predict(coeffs, [q(t) for t in times])
        np.testing.assert_allclose(pred, q(0.7), rtol=1e-10)

    def test_not_enough_states(self):
        coeffs = compute_predictor_coeffs(past_dt=[1.0, 1.0], new_dt=1.0, order=2)
        with pytest.raises(ValueError, match="needs 3 past states"):
            predict(coeffs, [np.zeros(1), np.zeros(1)])

    def test_empty_history(self):
        coeffs = compute_predictor_coeffs(past_dt=[], new_dt=1.0, order=0)
        with pytest.raises(ValueError):
            predict(coeffs, [])


class TestStepHistory:
    """Most-recent-first record of accepted steps."""

    def test_push_and_past_dt(self):
        history = StepHistory(0.0, np.zeros(2), capacity=3)
        history.push(0.1, np.ones(2))
        history.push(0.3, 2.0 * np.ones(2))
        assert history.times == [0.3, 0.1, 0.0]
        np.testing.assert_allclose(history.past_dt(), [0.2, 0.1])
        np.testing.assert_array_equal(history.x, [2.0, 2.0])
        assert history.t == 0.3

    def test_eviction(self):
        history = StepHistory(0.0, np.zeros(1), capacity=2)
        for i in range(1, 5):
            history.push(float(i), np.full(1, float(i)))
        assert len(history) == 2
        assert history.times == [4.0, 3.0]

    def test_initial_state_copied(self):
        x0 = np.array([1.0])
        history = StepHistory(0.0, x0, capacity=2)
        x0[0] = 5.0
        assert history.x[0] == 1.0

    def test_capacity_floor(self):
        with pytest.raises(ValueError):
            StepHistory(0.0, np.zeros(1), capacity=1)
