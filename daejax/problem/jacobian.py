"""Jacobian providers.

The Newton corrector needs J = df/dx in sparse form. The provider variant is
chosen once, when the solver is constructed:

- ``AnalyticalJacobian``: user-supplied function returning the sparse
  derivative directly.
- ``EstimatedJacobian``: forward finite differences against the RHS, one
  extra RHS evaluation per state component. Component i is perturbed by
  ``max(|x_i|, 1) * tol`` with ``tol = sqrt(machine eps)`` unless a
  tolerance is given. Entries below a negligibility threshold are dropped
  to keep the pattern sparse (diagonal entries are always kept).
- ``AutodiffJacobian``: forward-mode ``jax.jacfwd`` of an RHS written with
  ``jax.numpy``, sparsified with the same drop rule.

Every variant returns a validated SparseMatrix; ``evaluate_checked`` also
verifies the dimension against the state vector.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

import numpy as np
from jaxtyping import Float

from daejax.config import DEFAULT_JACOBIAN_DROP_TOLERANCE, DEFAULT_JACOBIAN_PERTURBATION
from daejax.errors import JacobianSizeMismatch
from daejax.problem.rhs import RHS, as_rhs
from daejax.sparse.matrix import SparseMatrix, as_sparse_matrix


class JacobianKind(Enum):
    """How a Jacobian provider obtains df/dx."""

    ANALYTICAL = "analytical"
    ESTIMATED = "estimated"
    AUTODIFF = "autodiff"


class Jacobian(ABC):
    """Sparse Jacobian df/dx of the right-hand side."""

    kind: JacobianKind = JacobianKind.ANALYTICAL

    @abstractmethod
    def evaluate(self, x: Float[np.ndarray, "n"], t: float) -> SparseMatrix:
        """Return J(x, t) as an N x N sparse matrix."""

    def __call__(self, x, t) -> SparseMatrix:
        return self.evaluate(x, t)


def evaluate_checked(jacobian: Jacobian, x: np.ndarray, t: float) -> SparseMatrix:
    """Evaluate a provider and check that its dimension matches len(x).

    Raises:
        JacobianSizeMismatch: If the returned matrix is not len(x) x len(x)
    """
    J = jacobian.evaluate(x, t)
    if J.n != len(x):
        raise JacobianSizeMismatch(expected=len(x), actual=J.n)
    return J


class AnalyticalJacobian(Jacobian):
    """User-supplied Jacobian ``fn(x, t)``.

    ``fn`` may return a SparseMatrix, a (values, column_index, row_start)
    triple, a scipy.sparse matrix or a dense array.
    """

    kind = JacobianKind.ANALYTICAL

    def __init__(self, fn: Callable):
        self.fn = fn

    def evaluate(self, x, t) -> SparseMatrix:
        return as_sparse_matrix(self.fn(x, t))


class EstimatedJacobian(Jacobian):
    """Forward-difference Jacobian built from an RHS provider."""

    kind = JacobianKind.ESTIMATED

    def __init__(
        self,
        rhs,
        tolerance: Optional[float] = None,
        drop_tolerance: float = DEFAULT_JACOBIAN_DROP_TOLERANCE,
    ):
        """
        Args:
            rhs: RHS provider (or callable f(x, t)) to differentiate
            tolerance: Relative perturbation; defaults to sqrt(machine eps)
            drop_tolerance: Entries with |J_ij| <= drop_tolerance are dropped
        """
        self.rhs: RHS = as_rhs(rhs)
        self.tolerance = DEFAULT_JACOBIAN_PERTURBATION if tolerance is None else tolerance
        self.drop_tolerance = drop_tolerance
        self.rhs_calls = 0

    def evaluate(self, x, t) -> SparseMatrix:
        x = np.asarray(x, dtype=np.float64)
        n = len(x)
        f0 = np.asarray(self.rhs.evaluate(x, t), dtype=np.float64)
        self.rhs_calls += 1

        rows, cols, vals = [], [], []
        x_pert = x.copy()
        for i in range(n):
            step = max(abs(x[i]), 1.0) * self.tolerance
            x_pert[i] = x[i] + step
            # Use the representable perturbation actually applied
            step = x_pert[i] - x[i]
            column = (np.asarray(self.rhs.evaluate(x_pert, t), dtype=np.float64) - f0) / step
            self.rhs_calls += 1
            x_pert[i] = x[i]

            keep = np.abs(column) > self.drop_tolerance
            keep[i] = True
            idx = np.flatnonzero(keep)
            rows.append(idx)
            cols.append(np.full(len(idx), i))
            vals.append(column[idx])

        return SparseMatrix.from_coo(
            np.concatenate(rows), np.concatenate(cols), np.concatenate(vals), n
        )


class AutodiffJacobian(Jacobian):
    """Forward-mode JAX Jacobian of an RHS written with jax.numpy.

    The derivative function is jit-compiled once per provider.
    """

    kind = JacobianKind.AUTODIFF

    def __init__(self, fn: Callable, drop_tolerance: float = DEFAULT_JACOBIAN_DROP_TOLERANCE):
        """
        Args:
            fn: Traceable ``fn(x, t) -> f`` using jax.numpy
            drop_tolerance: Entries with |J_ij| <= drop_tolerance are dropped
        """
        import jax

        self.fn = fn
        self.drop_tolerance = drop_tolerance
        self._jac_fn = jax.jit(jax.jacfwd(fn, argnums=0))

    def evaluate(self, x, t) -> SparseMatrix:
        import jax.numpy as jnp

        dense = np.asarray(self._jac_fn(jnp.asarray(x, dtype=jnp.float64), t), dtype=np.float64)
        return SparseMatrix.from_dense(dense, drop_tolerance=self.drop_tolerance)


def make_jacobian(rhs, jacobian=None, tolerance: Optional[float] = None) -> Jacobian:
    """Select the Jacobian provider for a problem.

    Args:
        rhs: RHS provider, used when no Jacobian is supplied
        jacobian: A Jacobian provider, a callable ``fn(x, t)`` returning the
            analytical Jacobian, or None for the finite-difference estimate
        tolerance: Finite-difference perturbation for the estimated variant

    Returns:
        Jacobian provider
    """
    if jacobian is None:
        return EstimatedJacobian(rhs, tolerance=tolerance)
    if isinstance(jacobian, Jacobian):
        return jacobian
    if callable(jacobian):
        return AnalyticalJacobian(jacobian)
    raise TypeError(f"Expected a Jacobian provider or callable, got {type(jacobian).__name__}")
