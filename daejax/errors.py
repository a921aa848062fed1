"""Exception hierarchy for the DAE solver.

Errors fall into three groups:
- Input validation (malformed sparse matrices, Jacobian size mismatch,
  invalid configuration). Raised immediately and never retried.
- Step failures (linear solve failed, Newton diverged or hit its iteration
  cap). Recovered by the step controller, which retries with a smaller step.
  They never escape ``Solver.solve``.
- Integration aborts (step size underflow, retries exhausted). Fatal, and
  they carry the last accepted time and state so partial results stay usable.
"""

from typing import TYPE_CHECKING, Optional

import numpy as np

if TYPE_CHECKING:
    from daejax.solver import SolveResult


class DAESolverError(Exception):
    """Base class for all daejax errors."""


class MalformedSparseMatrix(DAESolverError, ValueError):
    """A CSR triple violates its structural invariants."""


class JacobianSizeMismatch(DAESolverError, ValueError):
    """A Jacobian provider returned a matrix of the wrong dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Jacobian is {actual}x{actual}, expected {expected}x{expected}")


class ConfigurationError(DAESolverError, ValueError):
    """Invalid solver option."""


class OrderOutOfRange(ConfigurationError):
    """BDF order outside 1..6."""


class StepFailure(DAESolverError):
    """A single step attempt failed; the controller retries with a smaller step."""


class LinearSolveFailed(StepFailure):
    """The iteration matrix could not be factorized or produced a non-finite solution."""


class NewtonDiverged(StepFailure):
    """Residual norm grew on consecutive Newton iterations, or the iterate blew up."""


class NewtonMaxIterExceeded(StepFailure):
    """Newton did not converge within the iteration cap."""


class IntegrationAborted(DAESolverError):
    """Fatal integration failure.

    Attributes:
        t: Last accepted time
        x: Copy of the last accepted state
        result: Partial SolveResult (set by the solver before raising)
    """

    def __init__(self, message: str, t: float, x: np.ndarray):
        super().__init__(message)
        self.t = t
        self.x = np.array(x, dtype=np.float64, copy=True)
        self.result: Optional["SolveResult"] = None


class StepSizeUnderflow(IntegrationAborted):
    """The step size had to drop below ``min_step``."""


class StepRetriesExhausted(IntegrationAborted):
    """Too many consecutive failed step attempts without an accepted step."""
