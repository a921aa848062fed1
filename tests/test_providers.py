"""Tests for RHS, mass matrix and observer providers."""

import numpy as np
import pytest
import scipy.sparse as sp

from daejax.problem.mass_matrix import (
    CallableMassMatrix,
    ConstantMassMatrix,
    DiagonalMassMatrix,
    IdentityMassMatrix,
    as_mass_matrix,
)
from daejax.problem.observer import CallbackObserver, Observer, TrajectoryRecorder, as_observer
from daejax.problem.rhs import RHS, CallableRHS, as_rhs
from daejax.sparse.matrix import SparseMatrix


class TestRHS:
    def test_callable_wrapped(self):
        rhs = as_rhs(lambda x, t: [x[0] + t])
        assert isinstance(rhs, CallableRHS)
        out = rhs.evaluate(np.array([1.0]), 2.0)
        assert out.dtype == np.float64
        np.testing.assert_array_equal(out, [3.0])

    def test_subclass_passes_through(self):
        class Decay(RHS):
            def evaluate(self, x, t):
                return -x

        rhs = Decay()
        assert as_rhs(rhs) is rhs
        np.testing.assert_array_equal(rhs(np.array([2.0]), 0.0), [-2.0])

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            as_rhs(3.0)


class TestMassMatrix:
    def test_identity(self):
        M = IdentityMassMatrix(3).evaluate()
        np.testing.assert_array_equal(M.to_dense(), np.eye(3))

    def test_diagonal_keeps_explicit_zero(self):
        M = DiagonalMassMatrix([1.0, 0.0]).evaluate()
        assert M.nnz == 2
        np.testing.assert_array_equal(M.zero_rows(), [1])

    def test_constant_from_scipy(self):
        M = ConstantMassMatrix(sp.diags([1.0, 2.0]).tocsr()).evaluate()
        np.testing.assert_array_equal(M.diagonal(), [1.0, 2.0])

    def test_coercion(self):
        assert isinstance(as_mass_matrix(np.eye(2)), ConstantMassMatrix)
        assert isinstance(as_mass_matrix(lambda: np.eye(2)), CallableMassMatrix)
        assert isinstance(as_mass_matrix(SparseMatrix.identity(2)), ConstantMassMatrix)
        provider = IdentityMassMatrix(2)
        assert as_mass_matrix(provider) is provider

    def test_callable_triple(self):
        M = as_mass_matrix(lambda: ([1.0, 1.0, 0.0], [0, 1, 2], [0, 1, 2, 3])).evaluate()
        np.testing.assert_array_equal(M.zero_columns(), [2])


class TestObservers:
    def test_default_is_noop(self):
        assert Observer().on_step(np.zeros(2), 0.0) is None
        assert isinstance(as_observer(None), Observer)

    def test_callback(self):
        seen = []
        observer = as_observer(lambda x, t: seen.append((t, x[0])))
        assert isinstance(observer, CallbackObserver)
        observer.on_step(np.array([5.0]), 1.0)
        assert seen == [(1.0, 5.0)]

    def test_recorder_copies_states(self):
        recorder = TrajectoryRecorder()
        x = np.array([1.0, 2.0])
        recorder.record(x, 0.0)
        x[0] = 10.0
        recorder.on_step(x, 0.5)
        assert len(recorder) == 2
        np.testing.assert_array_equal(recorder.times, [0.0, 0.5])
        np.testing.assert_array_equal(recorder.states, [[1.0, 2.0], [10.0, 2.0]])

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            as_observer("print")
