"""Direct sparse linear solvers for the Newton corrector.

The corrector only needs a factorize/solve pair that reports failure. Three
backends share the ``LinearSolver`` interface:

- ``JaxSparseSolver`` ("jax"): jax.experimental.sparse.linalg.spsolve on the
  CSR arrays. Works the same on every JAX platform; the factorization is
  not reusable, so ``factorize`` returns a handle that re-solves.
- ``ScipySparseSolver`` ("scipy"): SuperLU via scipy.sparse.linalg.splu.
  The LU factors are reused by every solve on the returned handle, which
  makes the once-per-step Newton mode cheap.
- ``DenseJaxSolver`` ("dense"): LU factorization with jax.scipy.linalg, for
  small systems.

Singular matrices and non-finite solutions raise LinearSolveFailed, which the
step controller treats as a recoverable step failure.
"""

import warnings
from abc import ABC, abstractmethod
from typing import Callable

import jax.numpy as jnp
import numpy as np
from jax.experimental.sparse.linalg import spsolve as jax_spsolve
from jaxtyping import Float
from numpy.typing import ArrayLike

from daejax.errors import ConfigurationError, LinearSolveFailed
from daejax.sparse.matrix import SparseMatrix

SolveHandle = Callable[[ArrayLike], np.ndarray]


def _check_solution(x: np.ndarray) -> np.ndarray:
    if not np.all(np.isfinite(x)):
        raise LinearSolveFailed("Linear solve produced non-finite values (singular matrix?)")
    return x


class LinearSolver(ABC):
    """Interface of a direct linear solver for square CSR matrices."""

    name: str = "abstract"

    @abstractmethod
    def factorize(self, A: SparseMatrix) -> SolveHandle:
        """Factorize A and return a function solving A x = b.

        Raises:
            LinearSolveFailed: If A is singular
        """

    def factorize_and_solve(self, A: SparseMatrix, b: ArrayLike) -> Float[np.ndarray, "n"]:
        """Solve A x = b in one call.

        Raises:
            LinearSolveFailed: If A is singular or the solution is not finite
        """
        return self.factorize(A)(b)


class JaxSparseSolver(LinearSolver):
    """JAX native sparse solve on CSR arrays."""

    name = "jax"

    def factorize(self, A: SparseMatrix) -> SolveHandle:
        A = A.sorted_rows()
        data = jnp.asarray(A.values)
        indices = jnp.asarray(A.column_index)
        indptr = jnp.asarray(A.row_start)

        def solve(b: ArrayLike) -> np.ndarray:
            b = jnp.asarray(b, dtype=data.dtype)
            # The CPU backend emits MatrixRankWarning and returns NaN on a
            # singular matrix; the NaN is what we check for.
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                x = np.asarray(jax_spsolve(data, indices, indptr, b, tol=0), dtype=np.float64)
            return _check_solution(x)

        return solve


class ScipySparseSolver(LinearSolver):
    """SuperLU factorization with reusable factors."""

    name = "scipy"

    def factorize(self, A: SparseMatrix) -> SolveHandle:
        from scipy.sparse.linalg import splu

        csc = A.sorted_rows().to_scipy().tocsc()
        try:
            lu = splu(csc)
        except RuntimeError as e:
            # SuperLU reports "Factor is exactly singular"
            raise LinearSolveFailed(f"Sparse LU factorization failed: {e}") from e

        def solve(b: ArrayLike) -> np.ndarray:
            x = lu.solve(np.asarray(b, dtype=np.float64))
            return _check_solution(x)

        return solve


class DenseJaxSolver(LinearSolver):
    """Dense LU factorization through jax.scipy.linalg."""

    name = "dense"

    def factorize(self, A: SparseMatrix) -> SolveHandle:
        from jax.scipy.linalg import lu_factor, lu_solve

        lu_piv = lu_factor(jnp.asarray(A.to_dense()))
        # A zero pivot means the matrix is singular
        pivots = np.abs(np.diag(np.asarray(lu_piv[0])))
        if not np.all(np.isfinite(pivots)) or np.any(pivots == 0.0):
            raise LinearSolveFailed("Dense LU factorization hit a zero pivot")

        def solve(b: ArrayLike) -> np.ndarray:
            x = lu_solve(lu_piv, jnp.asarray(b, dtype=lu_piv[0].dtype))
            return _check_solution(np.asarray(x, dtype=np.float64))

        return solve


_SOLVERS = {
    "jax": JaxSparseSolver,
    "scipy": ScipySparseSolver,
    "dense": DenseJaxSolver,
}


def get_linear_solver(name: str) -> LinearSolver:
    """Instantiate a linear solver backend by name ('jax', 'scipy' or 'dense')."""
    try:
        return _SOLVERS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown linear solver {name!r}. Available: {sorted(_SOLVERS)}"
        ) from None
