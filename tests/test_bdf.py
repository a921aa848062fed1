"""Tests for variable-step BDF coefficients and error estimates."""

import numpy as np
import pytest

from daejax.errors import OrderOutOfRange
from daejax.integration.bdf import (
    compute_bdf_coeffs,
    divided_differences,
    error_coefficient,
    normalized_timepoints,
    order_error_estimate,
)
from daejax.integration.predictor import compute_predictor_coeffs

# Classic constant-step BDF coefficients times h
CLASSIC = {
    1: [1.0, -1.0],
    2: [3.0 / 2.0, -2.0, 1.0 / 2.0],
    3: [11.0 / 6.0, -3.0, 3.0 / 2.0, -1.0 / 3.0],
    4: [25.0 / 12.0, -4.0, 3.0, -4.0 / 3.0, 1.0 / 4.0],
    5: [137.0 / 60.0, -5.0, 5.0, -10.0 / 3.0, 5.0 / 4.0, -1.0 / 5.0],
    6: [49.0 / 20.0, -6.0, 15.0 / 2.0, -20.0 / 3.0, 15.0 / 4.0, -6.0 / 5.0, 1.0 / 6.0],
}


class TestBDFCoeffs:
    """Coefficients from the actual step history."""

    @pytest.mark.parametrize("order", sorted(CLASSIC))
    def test_constant_step_matches_classic(self, order):
        h = 1e-3
        coeffs = compute_bdf_coeffs([h] * (order - 1), h, order)
        np.testing.assert_allclose(coeffs.alpha * h, CLASSIC[order], rtol=1e-10, atol=1e-12)
        assert coeffs.c == pytest.approx(CLASSIC[order][0] / h)

    @pytest.mark.parametrize("order", [1, 2, 3, 4])
    def test_exact_for_polynomials(self, order):
        """Order-k BDF differentiates degree-k polynomials exactly on any grid."""
        past_dt = [0.3, 0.05, 0.2][: order - 1]
        h = 0.1
        t_new = 1.0
        times = [t_new, t_new - h]
        for dt in past_dt:
            times.append(times[-1] - dt)

        def p(t):
            return 2.0 + 0.5 * t - 0.7 * t**order

        def dp(t):
            return 0.5 - 0.7 * order * t ** (order - 1)

        coeffs = compute_bdf_coeffs(past_dt, h, order)
        derivative = sum(a * p(t) for a, t in zip(coeffs.alpha, times))
        assert derivative == pytest.approx(dp(t_new), rel=1e-9)

    def test_coefficients_sum_to_zero(self):
        """A constant has zero derivative."""
        coeffs = compute_bdf_coeffs([0.2, 0.5], 0.1, 3)
        assert np.sum(coeffs.alpha) == pytest.approx(0.0, abs=1e-10)

    def test_history_term(self):
        coeffs = compute_bdf_coeffs([1.0], 1.0, 2)
        states = [np.array([2.0]), np.array([1.0])]
        # psi = -2 x_n + 1/2 x_{n-1}
        np.testing.assert_allclose(coeffs.history_term(states), [-3.5])

    def test_order_out_of_range(self):
        with pytest.raises(OrderOutOfRange):
            compute_bdf_coeffs([1.0] * 6, 1.0, 7)
        with pytest.raises(OrderOutOfRange):
            compute_bdf_coeffs([], 1.0, 0)

    def test_not_enough_history(self):
        with pytest.raises(ValueError, match="needs 2 past steps"):
            compute_bdf_coeffs([1.0], 1.0, 3)


class TestErrorCoefficient:
    """lte = (x_corr - x_pred) / (alpha_0 * span) reduces to the classic constants."""

    def test_backward_euler(self):
        h = 1e-9
        coeffs = compute_bdf_coeffs([], h, 1)
        pred = compute_predictor_coeffs([h], h, 1)
        assert error_coefficient(coeffs, pred.span * h) == pytest.approx(0.5)

    def test_bdf2(self):
        h = 1e-9
        coeffs = compute_bdf_coeffs([h], h, 2)
        pred = compute_predictor_coeffs([h, h], h, 2)
        assert error_coefficient(coeffs, pred.span * h) == pytest.approx(2.0 / 9.0)


class TestNormalizedTimepoints:
    def test_uniform(self):
        np.testing.assert_allclose(normalized_timepoints([1.0, 1.0], 1.0, 3), [-1.0, -2.0, -3.0])

    def test_variable(self):
        np.testing.assert_allclose(normalized_timepoints([2.0, 1.0], 1.0, 3), [-1.0, -3.0, -4.0])


class TestDividedDifferences:
    def test_polynomial(self):
        """Third divided difference of t^3 is 1 on any grid, fourth is 0."""
        times = [1.0, 0.7, 0.4, 0.35, 0.0]
        states = [np.array([t**3]) for t in times]
        dd = divided_differences(times, states, 4)
        assert dd[3][0] == pytest.approx(1.0)
        assert dd[4][0] == pytest.approx(0.0, abs=1e-10)

    def test_too_few_points(self):
        with pytest.raises(ValueError):
            divided_differences([1.0, 0.0], [np.zeros(1)] * 2, 2)


class TestOrderErrorEstimate:
    def test_backward_euler_constant_step(self):
        """For x = t^2 and BE with step h, lte = h^2 x'' / 2 = h^2."""
        h = 0.1
        times = [0.3, 0.2, 0.1]
        states = [np.array([t**2]) for t in times]
        est = order_error_estimate(times, states, 1)
        assert est[0] == pytest.approx(h**2, rel=1e-10)

    def test_exact_for_low_degree(self):
        """Order-2 error vanishes on a quadratic."""
        times = [1.0, 0.8, 0.5, 0.45]
        states = [np.array([1.0 + t - t**2]) for t in times]
        assert order_error_estimate(times, states, 2)[0] == pytest.approx(0.0, abs=1e-10)
