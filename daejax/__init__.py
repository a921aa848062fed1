"""daejax: variable-order BDF solver for M x' = f(x, t) with sparse mass matrices"""

import jax

from daejax._logging import logger

__version__ = "0.1.0"


def configure_precision(enable_x64: bool = True) -> bool:
    """Enable (default) or disable 64-bit floats in JAX.

    Stiff DAE integration to tight tolerances needs double precision; this is
    called automatically on import. Returns the resulting setting.
    """
    jax.config.update("jax_enable_x64", enable_x64)
    if not enable_x64:
        logger.warning("Using 32-bit float precision in JAX kernels")
    return enable_x64


def get_precision_info() -> dict:
    """Get information about the current precision configuration.

    Returns:
        Dict with precision settings and backend info.
    """
    return {
        "x64_enabled": jax.config.jax_enable_x64,
        "backend": jax.default_backend(),
    }


# Auto-configure precision on import
_x64_enabled = configure_precision()


# Core API
from daejax.errors import (  # noqa: E402
    ConfigurationError,
    DAESolverError,
    IntegrationAborted,
    JacobianSizeMismatch,
    LinearSolveFailed,
    MalformedSparseMatrix,
    NewtonDiverged,
    NewtonMaxIterExceeded,
    OrderOutOfRange,
    StepFailure,
    StepRetriesExhausted,
    StepSizeUnderflow,
)
from daejax.options import SolverOptions  # noqa: E402
from daejax.problem import (  # noqa: E402
    RHS,
    AnalyticalJacobian,
    AutodiffJacobian,
    CallableRHS,
    ConstantMassMatrix,
    DiagonalMassMatrix,
    EstimatedJacobian,
    IdentityMassMatrix,
    Jacobian,
    MassMatrix,
    Observer,
    TrajectoryRecorder,
)
from daejax.solver import SolveResult, Solver, SolveStatus  # noqa: E402
from daejax.sparse import SparseMatrix, SparseMatrixBuilder  # noqa: E402

__all__ = [
    "__version__",
    "configure_precision",
    "get_precision_info",
    # Solver
    "Solver",
    "SolveResult",
    "SolveStatus",
    "SolverOptions",
    # Providers
    "RHS",
    "CallableRHS",
    "Jacobian",
    "AnalyticalJacobian",
    "EstimatedJacobian",
    "AutodiffJacobian",
    "MassMatrix",
    "IdentityMassMatrix",
    "DiagonalMassMatrix",
    "ConstantMassMatrix",
    "Observer",
    "TrajectoryRecorder",
    # Sparse storage
    "SparseMatrix",
    "SparseMatrixBuilder",
    # Errors
    "DAESolverError",
    "MalformedSparseMatrix",
    "JacobianSizeMismatch",
    "ConfigurationError",
    "OrderOutOfRange",
    "StepFailure",
    "LinearSolveFailed",
    "NewtonDiverged",
    "NewtonMaxIterExceeded",
    "IntegrationAborted",
    "StepSizeUnderflow",
    "StepRetriesExhausted",
]
