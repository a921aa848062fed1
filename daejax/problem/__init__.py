"""Problem definition: right-hand side, Jacobian, mass matrix and observers."""

from daejax.problem.jacobian import (
    AnalyticalJacobian,
    AutodiffJacobian,
    EstimatedJacobian,
    Jacobian,
    JacobianKind,
    evaluate_checked,
    make_jacobian,
)
from daejax.problem.mass_matrix import (
    CallableMassMatrix,
    ConstantMassMatrix,
    DiagonalMassMatrix,
    IdentityMassMatrix,
    MassMatrix,
    as_mass_matrix,
)
from daejax.problem.observer import CallbackObserver, Observer, TrajectoryRecorder, as_observer
from daejax.problem.rhs import RHS, CallableRHS, as_rhs

__all__ = [
    "RHS",
    "CallableRHS",
    "as_rhs",
    "Jacobian",
    "JacobianKind",
    "AnalyticalJacobian",
    "EstimatedJacobian",
    "AutodiffJacobian",
    "evaluate_checked",
    "make_jacobian",
    "MassMatrix",
    "IdentityMassMatrix",
    "DiagonalMassMatrix",
    "ConstantMassMatrix",
    "CallableMassMatrix",
    "as_mass_matrix",
    "Observer",
    "CallbackObserver",
    "TrajectoryRecorder",
    "as_observer",
]
