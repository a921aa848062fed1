"""Accepted-step history used by the BDF formulas and the predictor."""

from typing import List

import numpy as np


class StepHistory:
    """Most-recent-first record of accepted times and states.

    Only the step controller mutates the history. It keeps at most
    ``capacity`` points; pushing beyond that evicts the oldest.
    """

    def __init__(self, t0: float, x0: np.ndarray, capacity: int):
        if capacity < 2:
            raise ValueError(f"History capacity must be >= 2, got {capacity}")
        self.capacity = capacity
        self._times: List[float] = [float(t0)]
        self._states: List[np.ndarray] = [np.array(x0, dtype=np.float64, copy=True)]

    def __len__(self) -> int:
        return len(self._times)

    @property
    def times(self) -> List[float]:
        return self._times

    @property
    def states(self) -> List[np.ndarray]:
        return self._states

    @property
    def t(self) -> float:
        """Most recent accepted time."""
        return self._times[0]

    @property
    def x(self) -> np.ndarray:
        """Most recent accepted state."""
        return self._states[0]

    def past_dt(self) -> List[float]:
        """Accepted step sizes [h_{n-1}, h_{n-2}, ...], most recent first."""
        return [self._times[i] - self._times[i + 1] for i in range(len(self._times) - 1)]

    def push(self, t: float, x: np.ndarray) -> None:
        """Record an accepted step, evicting the oldest points beyond capacity."""
        self._times.insert(0, float(t))
        self._states.insert(0, x)
        self.trim(self.capacity)

    def trim(self, capacity: int) -> None:
        """Shrink (or grow) the capacity and evict the oldest points beyond it."""
        self.capacity = max(capacity, 2)
        del self._times[self.capacity :]
        del self._states[self.capacity :]
