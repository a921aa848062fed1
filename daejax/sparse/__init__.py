"""Sparse matrix storage, iteration matrix assembly and direct solvers."""

from daejax.sparse.assembly import IterationMatrixAssembler, assemble_iteration_matrix
from daejax.sparse.linsolve import (
    DenseJaxSolver,
    JaxSparseSolver,
    LinearSolver,
    ScipySparseSolver,
    get_linear_solver,
)
from daejax.sparse.matrix import SparseMatrix, SparseMatrixBuilder, as_sparse_matrix

__all__ = [
    "SparseMatrix",
    "SparseMatrixBuilder",
    "as_sparse_matrix",
    "assemble_iteration_matrix",
    "IterationMatrixAssembler",
    "LinearSolver",
    "JaxSparseSolver",
    "ScipySparseSolver",
    "DenseJaxSolver",
    "get_linear_solver",
]
