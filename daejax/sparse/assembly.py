"""Iteration matrix assembly.

Each Newton iteration solves a linear system with the iteration matrix

    A = c * M - J

where M is the mass matrix, J the Jacobian of the right-hand side and c the
BDF leading coefficient divided by the step size. The two sparsity patterns
are merged row by row (union of columns); entries present in only one input
keep their own scaled value. The result always has ascending columns per
row, which is the form the linear solvers require.
"""

import numpy as np

from daejax.errors import MalformedSparseMatrix
from daejax.sparse.matrix import SparseMatrix


def assemble_iteration_matrix(M: SparseMatrix, J: SparseMatrix, c: float) -> SparseMatrix:
    """Compute c*M - J in CSR form.

    Deterministic: identical inputs always give identical output, including
    the storage order. Explicit zeros of either pattern are kept so the
    pattern does not change between steps when values cross zero.

    Args:
        M: Mass matrix (N x N)
        J: Jacobian (N x N)
        c: Coefficient multiplying M

    Returns:
        Iteration matrix with sorted columns

    Raises:
        MalformedSparseMatrix: If M and J have different dimensions
    """
    if M.n != J.n:
        raise MalformedSparseMatrix(f"Mass matrix is {M.n}x{M.n} but Jacobian is {J.n}x{J.n}")

    rows = np.concatenate([M.row_indices(), J.row_indices()])
    cols = np.concatenate([M.column_index, J.column_index])
    values = np.concatenate([c * M.values, -J.values])
    return SparseMatrix.from_coo(rows, cols, values, M.n)


class IterationMatrixAssembler:
    """Builds iteration matrices against a fixed mass matrix.

    Holds the (read-only) mass matrix of a run and counts builds; the
    output depends only on the arguments of ``build``.
    """

    def __init__(self, mass: SparseMatrix):
        self.mass = mass
        self.builds = 0

    def build(self, jacobian: SparseMatrix, c: float) -> SparseMatrix:
        """Return c*M - J for the held mass matrix."""
        self.builds += 1
        return assemble_iteration_matrix(self.mass, jacobian, c)
