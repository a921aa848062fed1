"""Robertson chemical kinetics as a semi-explicit DAE.

    x0' = -0.04 x0 + 1e4 x1 x2
    x1' =  0.04 x0 - 1e4 x1 x2 - 3e7 x1^2
     0  =  x0 + x1 + x2 - 1

The third equation is the conservation law, so M = diag(1, 1, 0). The
consistent initial state is (1, 0, 0); the default x2 = 1e-3 is deliberately
inconsistent to exercise the initialization. x1 is small and changes mostly
in a short initial transient.
"""

import numpy as np

from daejax.problems.registry import Problem, register_problem
from daejax.sparse.matrix import SparseMatrix, SparseMatrixBuilder

# Solution at t = 4e6 (MATLAB ode15s)
ROBERTSON_REFERENCE = np.array([5.1675e-4, 2.068e-9, 9.9948324e-1])


def robertson_rhs(x, t):
    return np.array(
        [
            -0.04 * x[0] + 1.0e4 * x[1] * x[2],
            0.04 * x[0] - 1.0e4 * x[1] * x[2] - 3.0e7 * x[1] * x[1],
            x[0] + x[1] + x[2] - 1.0,
        ]
    )


def robertson_jacobian(x, t) -> SparseMatrix:
    """Analytical Jacobian, assembled row by row."""
    builder = SparseMatrixBuilder(3, capacity=9)
    builder.append_row([0, 1, 2], [-0.04, 1.0e4 * x[2], 1.0e4 * x[1]])
    builder.append_row([0, 1, 2], [0.04, -1.0e4 * x[2] - 6.0e7 * x[1], -1.0e4 * x[1]])
    builder.append_row([0, 1, 2], [1.0, 1.0, 1.0])
    return builder.finalize()


def robertson_mass() -> SparseMatrix:
    """diag(1, 1, 0), with the algebraic diagonal stored as an explicit zero."""
    return SparseMatrix(
        values=np.array([1.0, 1.0, 0.0]),
        column_index=np.array([0, 1, 2]),
        row_start=np.array([0, 1, 2, 3]),
        n=3,
    )


@register_problem(
    "robertson",
    "Robertson kinetics, 2 ODEs + conservation law, inconsistent x2(0)",
    algebraic=True,
)
def make_robertson(t1: float = 4.0e6, analytical_jacobian: bool = True, x2_guess: float = 1e-3) -> Problem:
    return Problem(
        name="robertson",
        rhs=robertson_rhs,
        mass=robertson_mass,
        x0=np.array([1.0, 0.0, x2_guess]),
        t1=t1,
        jacobian=robertson_jacobian if analytical_jacobian else None,
        options={
            "initial_step": 1e-6,
            "max_step": t1 / 100,
            "abs_tolerance": 1e-10,
            "rel_tolerance": 1e-5,
            "max_order": 5,
        },
        reference=ROBERTSON_REFERENCE if t1 == 4.0e6 else None,
        names=["x0", "x1", "x2"],
    )
