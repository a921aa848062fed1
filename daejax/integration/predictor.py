"""Polynomial extrapolation predictor.

The predictor extrapolates the polynomial through the last p+1 accepted
states to the new time. It serves two purposes:
1. Initial guess for the Newton corrector
2. Local error estimation by comparison with the converged corrector
"""

from typing import NamedTuple, Sequence

import numpy as np

from daejax._logging import logger
from daejax.integration.bdf import normalized_timepoints


class PredictorCoeffs(NamedTuple):
    """Coefficients for polynomial extrapolation.

    The predicted state is x_{n+1,pred} = sum_i a[i] * x_{n-i}.

    Attributes:
        a: Coefficients for past states [a_0, ..., a_order]
        order: Order of extrapolation (0 = constant, 1 = linear, ...)
        span: (t_{n+1} - t_{n-order}) / h, distance from the oldest point used
    """

    a: np.ndarray
    order: int
    span: float


def compute_predictor_coeffs(past_dt: Sequence[float], new_dt: float, order: int) -> PredictorCoeffs:
    """Compute extrapolation coefficients for the given step history.

    Args:
        past_dt: Past step sizes [h_{n-1}, h_{n-2}, ...], most recent first
        new_dt: Proposed step size h_n
        order: Requested order; reduced if the history is too short

    Returns:
        PredictorCoeffs
    """
    if order < 0:
        raise ValueError(f"Order must be >= 0, got {order}")

    order = min(order, len(past_dt))
    if order == 0:
        return PredictorCoeffs(a=np.array([1.0]), order=0, span=1.0)

    tau = normalized_timepoints(past_dt, new_dt, order + 1)
    a = _solve_predictor_system(tau, order)
    return PredictorCoeffs(a=a, order=order, span=float(-tau[order]))


def _solve_predictor_system(tau: np.ndarray, order: int) -> np.ndarray:
    """Solve for extrapolation coefficients.

    Find a_i with sum_i a_i * tau_i^j = delta_{j,0} for j = 0..order, i.e.
    the Lagrange weights of the nodes tau evaluated at tau = 0.
    """
    n = order + 1
    A = np.vander(tau[:n], n, increasing=True).T
    b = np.zeros(n)
    b[0] = 1.0
    try:
        return np.linalg.solve(A, b)
    except np.linalg.LinAlgError:
        logger.debug(f"Degenerate predictor timepoints {tau[:n]}, using constant extrapolation")
        a = np.zeros(n)
        a[0] = 1.0
        return a


def predict(coeffs: PredictorCoeffs, history: Sequence[np.ndarray]) -> np.ndarray:
    """Predict the state at t_{n+1}.

    Args:
        coeffs: Coefficients from compute_predictor_coeffs()
        history: Past states [x_n, x_{n-1}, ...], most recent first

    Returns:
        Predicted state
    """
    if len(history) == 0:
        raise ValueError("Need at least one past state for prediction")
    if len(history) < len(coeffs.a):
        raise ValueError(
            f"Predictor of order {coeffs.order} needs {len(coeffs.a)} past states, got {len(history)}"
        )

    x_pred = coeffs.a[0] * history[0]
    for i in range(1, len(coeffs.a)):
        x_pred = x_pred + coeffs.a[i] * history[i]
    return x_pred
