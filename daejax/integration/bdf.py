"""Variable-step BDF coefficients and local error estimates.

A BDF step of order k from t_n to t_{n+1} = t_n + h replaces x'(t_{n+1}) by
the derivative, at t_{n+1}, of the polynomial interpolating
x_{n+1}, x_n, ..., x_{n-k+1}:

    x'(t_{n+1}) ~ alpha_0 * x_{n+1} + sum_{j=1..k} alpha_j * x_{n+1-j}

The coefficients follow from the actual step sizes, so changing h or k needs
no history interpolation. For constant steps they reduce to the classic
formulas, e.g. order 2: (3 x_{n+1} - 4 x_n + x_{n-1}) / (2h).

The local truncation error of order k is estimated from the difference
between the corrector and the order-p predictor:

    lte = (x_corr - x_pred) / (alpha_0 * (t_{n+1} - t_{n-p}))

which for constant steps and p = k is the error constant 1/((k+1) H_k)
(1/2 for order 1, 2/9 for order 2) times the (k+1)-th difference.
"""

from typing import List, NamedTuple, Sequence

import numpy as np

from daejax.config import MAX_BDF_ORDER
from daejax.errors import OrderOutOfRange


class BDFCoeffs(NamedTuple):
    """Coefficients of one BDF step.

    Attributes:
        alpha: [alpha_0, ..., alpha_k]; alpha_0 multiplies x_{n+1}, alpha_j
            multiplies the j-th most recent accepted state. Units 1/time.
        order: BDF order k
        dt: Step size h
    """

    alpha: np.ndarray
    order: int
    dt: float

    @property
    def c(self) -> float:
        """Leading coefficient; the iteration matrix is c*M - J."""
        return float(self.alpha[0])

    def history_term(self, states: Sequence[np.ndarray]) -> np.ndarray:
        """sum_{j>=1} alpha_j * x_{n+1-j} for states ordered most recent first."""
        psi = self.alpha[1] * states[0]
        for j in range(2, self.order + 1):
            psi = psi + self.alpha[j] * states[j - 1]
        return psi


def normalized_timepoints(past_dt: Sequence[float], new_dt: float, count: int) -> np.ndarray:
    """Past timepoints relative to t_{n+1}, in units of the new step.

    tau_0 = (t_n - t_{n+1}) / h = -1
    tau_1 = (t_{n-1} - t_{n+1}) / h = -(1 + h_{n-1}/h)
    ...

    Args:
        past_dt: Past step sizes [h_{n-1}, h_{n-2}, ...], most recent first
        new_dt: New step size h
        count: Number of timepoints to return

    Returns:
        Array [tau_0, ..., tau_{count-1}]
    """
    tau = np.zeros(count)
    cumsum = 0.0
    for i in range(count):
        tau[i] = -(1.0 + cumsum / new_dt)
        if i < len(past_dt):
            cumsum += past_dt[i]
    return tau


def compute_bdf_coeffs(past_dt: Sequence[float], new_dt: float, order: int) -> BDFCoeffs:
    """Compute variable-step BDF coefficients.

    Uses the derivative of the Lagrange basis at s_0 = 0 over the nodes
    s_0 = 0, s_j = tau_{j-1}:

        a_0 = sum_{j>=1} 1 / (s_0 - s_j)
        a_j = prod_{m != 0, j} (s_0 - s_m) / prod_{m != j} (s_j - s_m)

    Args:
        past_dt: Past step sizes, most recent first (needs order-1 entries)
        new_dt: Step size of the new step
        order: BDF order (1..6)

    Returns:
        BDFCoeffs with alpha scaled by 1/new_dt

    Raises:
        OrderOutOfRange: If order is outside 1..6
        ValueError: If there is not enough history for the order
    """
    if not (1 <= order <= MAX_BDF_ORDER):
        raise OrderOutOfRange(f"BDF order must be in [1, {MAX_BDF_ORDER}], got {order}")
    if len(past_dt) < order - 1:
        raise ValueError(f"Order {order} needs {order - 1} past steps, got {len(past_dt)}")

    s = np.concatenate([[0.0], normalized_timepoints(past_dt, new_dt, order)])
    a = np.zeros(order + 1)
    a[0] = np.sum(-1.0 / s[1:])
    for j in range(1, order + 1):
        others = np.delete(np.arange(order + 1), j)
        numer = np.prod(-s[others[1:]])
        denom = np.prod(s[j] - s[others])
        a[j] = numer / denom

    return BDFCoeffs(alpha=a / new_dt, order=order, dt=new_dt)


def error_coefficient(coeffs: BDFCoeffs, span: float) -> float:
    """Scale turning (x_corr - x_pred) into a local error estimate.

    Args:
        coeffs: Coefficients of the step
        span: t_{n+1} - t_{n-p}, the distance from the oldest predictor point

    Returns:
        1 / (alpha_0 * span)
    """
    return 1.0 / (coeffs.c * span)


def divided_differences(times: Sequence[float], states: Sequence[np.ndarray], depth: int) -> List[np.ndarray]:
    """Leading Newton divided differences x[t_0], x[t_0, t_1], ..., depth+1 of them.

    Args:
        times: Timepoints, most recent first
        states: States at those times
        depth: Highest divided difference order

    Returns:
        List whose entry j is x[t_0, ..., t_j]
    """
    if len(times) < depth + 1:
        raise ValueError(f"Need {depth + 1} points for divided difference {depth}, got {len(times)}")
    t = np.asarray(times[: depth + 1], dtype=np.float64)
    table = np.array(states[: depth + 1], dtype=np.float64)
    leading = [table[0].copy()]
    for j in range(1, depth + 1):
        table = (table[:-1] - table[1:]) / (t[:-j] - t[j:])[:, None]
        leading.append(table[0].copy())
    return leading


def order_error_estimate(times: Sequence[float], states: Sequence[np.ndarray], order: int) -> np.ndarray:
    """Local error of a BDF step of the given order ending at times[0].

    lte_q = W_q * x[t_{n+1}, ..., t_{n-q}] / alpha_0(q) with
    W_q = prod_{i<q} (t_{n+1} - t_{n-i}) and alpha_0(q) = sum_{i<q} 1/(t_{n+1} - t_{n-i}).

    Args:
        times: Accepted times including the new one, most recent first
            (needs order+2 points)
        states: Matching states
        order: BDF order q to estimate

    Returns:
        Error vector
    """
    dd = divided_differences(times, states, order + 1)[order + 1]
    gaps = times[0] - np.asarray(times[1 : order + 1], dtype=np.float64)
    return np.prod(gaps) * dd / np.sum(1.0 / gaps)
