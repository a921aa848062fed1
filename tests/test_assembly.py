"""Tests for iteration matrix assembly c*M - J."""

import numpy as np
import pytest

from daejax.errors import MalformedSparseMatrix
from daejax.sparse.assembly import IterationMatrixAssembler, assemble_iteration_matrix
from daejax.sparse.matrix import SparseMatrix


class TestAssembly:
    """Pattern merging and values of c*M - J."""

    def test_identity_minus_zero_is_scaled_identity(self):
        """M = I, J = 0 gives exactly c*I."""
        n, c = 4, 2.5e3
        M = SparseMatrix.identity(n)
        J = SparseMatrix.from_dense(np.zeros((n, n)))
        A = assemble_iteration_matrix(M, J, c)
        np.testing.assert_array_equal(A.to_dense(), c * np.eye(n))
        np.testing.assert_array_equal(A.diagonal(), np.full(n, c))

    def test_pattern_union(self):
        """Entries present in only one input keep their own scaled value."""
        M = SparseMatrix.diagonal_matrix([1.0, 1.0, 0.0])
        J = SparseMatrix.from_coo([0, 1, 2, 2], [1, 0, 0, 2], [3.0, -1.0, 1.0, 1.0], n=3)
        A = assemble_iteration_matrix(M, J, 10.0)
        expected = 10.0 * M.to_dense() - J.to_dense()
        np.testing.assert_array_equal(A.to_dense(), expected)
        assert A.is_sorted

    def test_explicit_zeros_kept(self):
        """Cancelling entries stay in the pattern."""
        M = SparseMatrix.identity(2)
        J = SparseMatrix.identity(2)
        A = assemble_iteration_matrix(M, J, 1.0)
        assert A.nnz == 2
        np.testing.assert_array_equal(A.values, [0.0, 0.0])

    def test_deterministic(self):
        rng = np.random.default_rng(0)
        dense = rng.normal(size=(5, 5)) * (rng.random((5, 5)) > 0.5)
        M = SparseMatrix.diagonal_matrix([1.0, 0.0, 1.0, 1.0, 0.0])
        J = SparseMatrix.from_dense(dense)
        A = assemble_iteration_matrix(M, J, 0.7)
        B = assemble_iteration_matrix(M, J, 0.7)
        assert A.equals(B)

    def test_dimension_mismatch(self):
        with pytest.raises(MalformedSparseMatrix, match="Mass matrix is 2x2"):
            assemble_iteration_matrix(SparseMatrix.identity(2), SparseMatrix.identity(3), 1.0)


class TestAssembler:
    def test_build_uses_held_mass(self):
        assembler = IterationMatrixAssembler(SparseMatrix.diagonal_matrix([2.0, 0.0]))
        A = assembler.build(SparseMatrix.from_dense([[1.0, 1.0], [1.0, -1.0]]), 3.0)
        np.testing.assert_array_equal(A.to_dense(), [[5.0, -1.0], [-1.0, 1.0]])
        assert assembler.builds == 1
