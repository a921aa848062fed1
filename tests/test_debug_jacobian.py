"""Tests for Jacobian comparison and printing utilities."""

import numpy as np

from daejax.debug.jacobian import compare_jacobians, print_jacobian, print_jacobian_structure
from daejax.problem.jacobian import AnalyticalJacobian, EstimatedJacobian, Jacobian
from daejax.problems.robertson import robertson_jacobian, robertson_rhs
from daejax.sparse.matrix import SparseMatrix


class TestCompareJacobians:
    def test_analytical_matches_estimate(self):
        x = np.array([0.9, 3e-5, 0.1])
        cmp = compare_jacobians(
            AnalyticalJacobian(robertson_jacobian),
            EstimatedJacobian(robertson_rhs, tolerance=1e-10),
            x,
            rtol=1e-3,
        )
        assert cmp.passed
        assert cmp.mismatched_positions == []
        assert "Passed:         True" in cmp.report

    def test_wrong_entry_reported(self):
        def wrong(x, t):
            J = robertson_jacobian(x, t).to_dense()
            J[1, 2] *= -1.0
            return J

        x = np.array([0.9, 3e-5, 0.1])
        cmp = compare_jacobians(
            AnalyticalJacobian(robertson_jacobian), AnalyticalJacobian(wrong), x
        )
        assert not cmp.passed
        assert cmp.mismatched_positions == [(1, 2)]
        assert "[1,2]" in cmp.report


    def test_user_subclass(self):
        class Decay(Jacobian):
            def evaluate(self, x, t):
                return SparseMatrix.diagonal_matrix([-1.0, -2.0])

        def rhs(x, t):
            return np.array([-x[0], -2.0 * x[1]])

        cmp = compare_jacobians(Decay(), EstimatedJacobian(rhs), np.ones(2))
        assert cmp.passed
        assert "analytical non-zeros: 2" in cmp.report


class TestPrinting:
    def test_print_jacobian(self, capsys):
        print_jacobian(AnalyticalJacobian(robertson_jacobian), np.array([1.0, 0.0, 0.0]))
        out = capsys.readouterr().out
        assert "Jacobian at t=" in out
        assert "-4.0000e-02" in out

    def test_print_structure(self, capsys):
        jac = AnalyticalJacobian(lambda x, t: np.array([[1.0, 0.0], [2.0, 3.0]]))
        print_jacobian_structure(jac, np.zeros(2), name="J")
        out = capsys.readouterr().out
        assert "J structure (2×2)" in out
        assert "X . " in out
        assert "X X " in out
