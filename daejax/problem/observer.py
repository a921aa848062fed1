"""Observers called once per accepted step.

An observer sees the state and time right after the solver advances time and
before the next step is attempted. Observers must not modify ``x``; the
solver does not copy it for them.
"""

from typing import Callable, List

import numpy as np


class Observer:
    """Default observer: does nothing."""

    def on_step(self, x: np.ndarray, t: float) -> None:
        return None


class CallbackObserver(Observer):
    """Calls ``fn(x, t)`` on every accepted step."""

    def __init__(self, fn: Callable[[np.ndarray, float], None]):
        self.fn = fn

    def on_step(self, x, t):
        self.fn(x, t)


class TrajectoryRecorder(Observer):
    """Records a copy of every accepted state.

    Attributes:
        times: Accepted times
        states: Accepted states (copies)
    """

    def __init__(self):
        self._times: List[float] = []
        self._states: List[np.ndarray] = []

    def record(self, x: np.ndarray, t: float) -> None:
        """Record a state that did not come from a step (e.g. the initial condition)."""
        self.on_step(x, t)

    def on_step(self, x, t):
        self._times.append(float(t))
        self._states.append(np.array(x, dtype=np.float64, copy=True))

    def __len__(self) -> int:
        return len(self._times)

    @property
    def times(self) -> np.ndarray:
        return np.asarray(self._times)

    @property
    def states(self) -> np.ndarray:
        """States as a (num_steps, n) array."""
        if not self._states:
            return np.zeros((0, 0))
        return np.vstack(self._states)


def as_observer(obj) -> Observer:
    """Coerce None, an Observer or a callable into an Observer."""
    if obj is None:
        return Observer()
    if isinstance(obj, Observer):
        return obj
    if callable(obj):
        return CallbackObserver(obj)
    raise TypeError(f"Expected an Observer or a callable on_step(x, t), got {type(obj).__name__}")
