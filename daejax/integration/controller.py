"""Step size and order policy.

The controller decides, after every step attempt, the size and BDF order of
the next attempt:

- Newton or linear-solve failure: h *= newton_failure_factor
- Local error too large (norm > 1): h *= clamp(safety * err^(-1/(k+1)), lo, 1)
- Accepted: h *= clamp(safety * err^(-1/(k+1)), lo, hi). After k+1 consecutive
  comfortable steps (err <= step_increase_threshold) at order k, the orders
  k-1, k and k+1 are compared with divided-difference error estimates and
  the one allowing the largest step wins.

Rejections never increase h and never change the order.
"""

from typing import Optional, Tuple

import numpy as np

from daejax._logging import logger
from daejax.config import ERROR_NORM_FLOOR
from daejax.integration.bdf import order_error_estimate
from daejax.integration.history import StepHistory
from daejax.options import SolverOptions


class StepOrderController:
    """Accept/reject decisions and next-step proposals for one run.

    Args:
        options: Run options
        error_mask: Boolean mask of the components included in the error
            norm, or None to include all of them
    """

    def __init__(self, options: SolverOptions, error_mask: Optional[np.ndarray] = None):
        self.options = options
        self.error_mask = error_mask
        self.order = 1
        self.max_order_used = 1
        self.comfortable_steps = 0

    def error_norm(
        self, error: np.ndarray, x: np.ndarray, mask: Optional[np.ndarray] = None
    ) -> float:
        """Weighted RMS norm of a local error vector; <= 1 is acceptable.

        ``mask`` replaces the controller's error mask for this evaluation.
        """
        w = self.options.abs_tolerance + self.options.rel_tolerance * np.abs(x)
        scaled = error / w
        mask = self.error_mask if mask is None else mask
        if mask is not None:
            scaled = scaled[mask]
        if scaled.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(scaled**2)))

    def accept(self, err: float) -> bool:
        return err <= 1.0

    def step_factor(self, err: float, order: int) -> float:
        """Unclamped factor safety * err^(-1/(order+1))."""
        err = max(err, ERROR_NORM_FLOOR)
        return self.options.step_safety * err ** (-1.0 / (order + 1))

    def limit(self, dt: float) -> float:
        return min(dt, self.options.max_step)

    def after_newton_failure(self, dt: float) -> float:
        """Next trial step after the corrector failed."""
        self.comfortable_steps = 0
        return dt * self.options.newton_failure_factor

    def after_rejection(self, dt: float, err: float) -> float:
        """Next trial step after a local error rejection. Never larger than dt."""
        lo, _ = self.options.step_decrease_factor_bounds
        factor = min(max(self.step_factor(err, self.order), lo), 1.0)
        self.comfortable_steps = 0
        return dt * factor

    def after_acceptance(self, dt: float, err: float, history: StepHistory) -> Tuple[float, int]:
        """Propose the next step size and order.

        Args:
            dt: Size of the accepted step
            err: Its error norm
            history: Step history including the accepted point

        Returns:
            (next step size, next order)
        """
        opts = self.options
        lo, hi = opts.step_decrease_factor_bounds

        if err <= opts.step_increase_threshold:
            self.comfortable_steps += 1
        else:
            self.comfortable_steps = 0

        order = self.order
        factor = self.step_factor(err, order)

        if self.comfortable_steps >= order + 1:
            new_order, factor = self._select_order(history, order, factor)
            if new_order != order:
                logger.debug(f"BDF order {order} -> {new_order} (step factor {factor:.3f})")
                self.order = new_order
                self.max_order_used = max(self.max_order_used, new_order)
                self.comfortable_steps = 0

        factor = min(max(factor, lo), hi)
        return self.limit(dt * factor), self.order

    def _select_order(self, history: StepHistory, order: int, factor: float) -> Tuple[int, float]:
        """Compare orders k-1, k, k+1 by the step each one allows."""
        best_order, best_factor = order, factor
        for q in (order - 1, order + 1):
            if q < 1 or q > self.options.max_order or len(history) < q + 2:
                continue
            estimate = order_error_estimate(history.times, history.states, q)
            q_factor = self.step_factor(self.error_norm(estimate, history.x), q)
            if q_factor > best_factor:
                best_order, best_factor = q, q_factor
        return best_order, best_factor
