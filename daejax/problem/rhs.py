"""Right-hand side providers.

The RHS of M x' = f(x, t) is evaluated by the Newton corrector on every
iteration and by the estimated Jacobian once per state component, so it must
be free of side effects the integrator could observe.
"""

from abc import ABC, abstractmethod
from typing import Callable

import numpy as np
from jaxtyping import Float


class RHS(ABC):
    """Right-hand side f(x, t)."""

    @abstractmethod
    def evaluate(self, x: Float[np.ndarray, "n"], t: float) -> Float[np.ndarray, "n"]:
        """Return f(x, t), a vector of the same length as x."""

    def __call__(self, x, t):
        return self.evaluate(x, t)


class CallableRHS(RHS):
    """Adapts a plain function ``fn(x, t) -> f`` to the RHS interface."""

    def __init__(self, fn: Callable):
        self.fn = fn

    def evaluate(self, x, t):
        return np.asarray(self.fn(x, t), dtype=np.float64)


def as_rhs(obj) -> RHS:
    """Return obj if it is an RHS, otherwise wrap the callable."""
    if isinstance(obj, RHS):
        return obj
    if callable(obj):
        return CallableRHS(obj)
    raise TypeError(f"Expected an RHS or a callable f(x, t), got {type(obj).__name__}")
