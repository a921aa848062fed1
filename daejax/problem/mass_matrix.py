"""Mass matrix providers.

The mass matrix M of M x' = f(x, t) is constant: the solver evaluates it once
at the start of a run and reuses it for every step. A zero row of M turns the
corresponding equation into an algebraic constraint 0 = f_i(x, t).
"""

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import ArrayLike

from daejax.sparse.matrix import SparseMatrix, as_sparse_matrix


class MassMatrix(ABC):
    """Constant (time- and state-independent) sparse mass matrix."""

    @abstractmethod
    def evaluate(self) -> SparseMatrix:
        """Return M. Called once per integration run."""

    def __call__(self) -> SparseMatrix:
        return self.evaluate()


class IdentityMassMatrix(MassMatrix):
    """Identity mass matrix of size n: a plain ODE system x' = f(x, t)."""

    def __init__(self, n: int):
        self.n = n

    def evaluate(self) -> SparseMatrix:
        return SparseMatrix.identity(self.n)


class DiagonalMassMatrix(MassMatrix):
    """Diagonal mass matrix; zeros on the diagonal mark algebraic equations."""

    def __init__(self, diag: ArrayLike):
        self.diag = np.asarray(diag, dtype=np.float64)

    def evaluate(self) -> SparseMatrix:
        return SparseMatrix.diagonal_matrix(self.diag)


class ConstantMassMatrix(MassMatrix):
    """Wraps a fixed matrix given as SparseMatrix, CSR triple, scipy.sparse or dense."""

    def __init__(self, matrix):
        self.matrix = as_sparse_matrix(matrix)

    def evaluate(self) -> SparseMatrix:
        return self.matrix


class CallableMassMatrix(MassMatrix):
    """Adapts a zero-argument function returning a matrix."""

    def __init__(self, fn):
        self.fn = fn

    def evaluate(self) -> SparseMatrix:
        return as_sparse_matrix(self.fn())


def as_mass_matrix(obj) -> MassMatrix:
    """Coerce a MassMatrix, a zero-argument callable or a matrix into a MassMatrix."""
    if isinstance(obj, MassMatrix):
        return obj
    if callable(obj) and not hasattr(obj, "tocsr"):
        return CallableMassMatrix(obj)
    return ConstantMassMatrix(obj)
