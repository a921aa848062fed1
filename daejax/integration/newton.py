"""Newton corrector for one implicit BDF step.

For a step to t_{n+1} with BDF coefficients alpha, the corrector solves

    G(x) = M (alpha_0 x + psi) - f(x, t_{n+1}) = 0

where psi = sum_{j>=1} alpha_j x_{n+1-j} collects the history. Each
iteration solves (alpha_0 M - J) delta = G(x) and updates x <- x - delta.

State machine per step: Init -> Iterating -> Converged | Diverged |
MaxIterExceeded. Failures raise StepFailure subclasses, which the step
controller turns into a retry with a smaller step.
"""

from enum import Enum
from typing import NamedTuple

import numpy as np

from daejax._logging import logger
from daejax.errors import LinearSolveFailed, NewtonDiverged, NewtonMaxIterExceeded
from daejax.integration.bdf import BDFCoeffs
from daejax.options import SolverOptions
from daejax.problem.jacobian import Jacobian, evaluate_checked
from daejax.problem.rhs import RHS
from daejax.sparse.assembly import IterationMatrixAssembler
from daejax.sparse.linsolve import LinearSolver


class NewtonStatus(Enum):
    """Corrector state."""

    INIT = "init"
    ITERATING = "iterating"
    CONVERGED = "converged"
    DIVERGED = "diverged"
    MAX_ITER_EXCEEDED = "max_iter_exceeded"


class NewtonResult(NamedTuple):
    """Converged corrector output.

    Attributes:
        x: Converged state
        iterations: Number of linear solves performed
        residual_norm: Max-abs residual at x
        update_norm: Weighted RMS norm of the last update
    """

    x: np.ndarray
    iterations: int
    residual_norm: float
    update_norm: float


def weighted_rms(v: np.ndarray, x: np.ndarray, atol: float, rtol: float) -> float:
    """sqrt(mean((v_i / (atol + rtol |x_i|))^2))."""
    w = atol + rtol * np.abs(x)
    return float(np.sqrt(np.mean((v / w) ** 2)))


class NewtonCorrector:
    """Drives the nonlinear solve of one step.

    Counters (rhs_calls, jacobian_calls, linear_solves, factorizations) are
    instance fields; the solver resets them per run.
    """

    def __init__(
        self,
        rhs: RHS,
        jacobian: Jacobian,
        assembler: IterationMatrixAssembler,
        linear_solver: LinearSolver,
        options: SolverOptions,
    ):
        self.rhs = rhs
        self.jacobian = jacobian
        self.assembler = assembler
        self.linear_solver = linear_solver
        self.options = options
        self.status = NewtonStatus.INIT
        self.reset_counters()

    def reset_counters(self) -> None:
        self.rhs_calls = 0
        self.jacobian_calls = 0
        self.linear_solves = 0
        self.factorizations = 0

    def residual(self, x: np.ndarray, t: float, coeffs: BDFCoeffs, psi: np.ndarray) -> np.ndarray:
        """G(x) = M (alpha_0 x + psi) - f(x, t)."""
        f = np.asarray(self.rhs.evaluate(x, t), dtype=np.float64)
        self.rhs_calls += 1
        if f.shape != x.shape:
            raise ValueError(f"RHS returned shape {f.shape}, expected {x.shape}")
        return self.assembler.mass.matvec(coeffs.c * x + psi) - f

    def _factorize(self, x: np.ndarray, t: float, c: float):
        J = evaluate_checked(self.jacobian, x, t)
        self.jacobian_calls += 1
        A = self.assembler.build(J, c)
        handle = self.linear_solver.factorize(A)
        self.factorizations += 1
        return handle

    def solve(
        self,
        x_pred: np.ndarray,
        t: float,
        coeffs: BDFCoeffs,
        psi: np.ndarray,
    ) -> NewtonResult:
        """Run the corrector from the predicted state.

        Args:
            x_pred: Predictor output, the initial iterate
            t: Time of the new step
            coeffs: BDF coefficients of the step
            psi: History term sum_{j>=1} alpha_j x_{n+1-j}

        Returns:
            NewtonResult on convergence

        Raises:
            LinearSolveFailed: Singular iteration matrix
            NewtonDiverged: Residual grew twice in a row, or the iterate blew up
            NewtonMaxIterExceeded: No convergence within max_newton_iterations
        """
        opts = self.options
        self.status = NewtonStatus.INIT
        x = np.array(x_pred, dtype=np.float64, copy=True)

        G = self.residual(x, t, coeffs, psi)
        r_norm = float(np.max(np.abs(G)))
        if not np.isfinite(r_norm):
            self.status = NewtonStatus.DIVERGED
            raise NewtonDiverged(f"Non-finite residual at predicted state (t={t:.6e})")
        norms = [r_norm]

        handle = None
        consecutive = 0
        d_norm = np.inf
        self.status = NewtonStatus.ITERATING

        for iteration in range(1, opts.max_newton_iterations + 1):
            if handle is None or opts.refactor_every_iteration:
                try:
                    handle = self._factorize(x, t, coeffs.c)
                except LinearSolveFailed:
                    self.status = NewtonStatus.DIVERGED
                    raise

            delta = handle(G)
            self.linear_solves += 1
            x = x - delta

            if not np.all(np.isfinite(x)) or np.max(np.abs(x)) > opts.value_max:
                self.status = NewtonStatus.DIVERGED
                raise NewtonDiverged(
                    f"Newton iterate exceeded value_max={opts.value_max:.1e} "
                    f"at iteration {iteration} (t={t:.6e})"
                )

            G = self.residual(x, t, coeffs, psi)
            r_norm = float(np.max(np.abs(G)))
            if not np.isfinite(r_norm):
                self.status = NewtonStatus.DIVERGED
                raise NewtonDiverged(f"Non-finite residual at iteration {iteration} (t={t:.6e})")
            norms.append(r_norm)

            d_norm = weighted_rms(delta, x, opts.abs_tolerance, opts.rel_tolerance)
            consecutive = consecutive + 1 if d_norm <= opts.newton_tolerance else 0

            if consecutive >= opts.newton_consecutive or r_norm <= opts.newton_residual_tolerance:
                self.status = NewtonStatus.CONVERGED
                return NewtonResult(
                    x=x, iterations=iteration, residual_norm=r_norm, update_norm=d_norm
                )

            if len(norms) >= 3 and norms[-1] > norms[-2] > norms[-3]:
                self.status = NewtonStatus.DIVERGED
                raise NewtonDiverged(
                    f"Residual increased twice in a row at iteration {iteration} "
                    f"({norms[-3]:.3e} -> {norms[-2]:.3e} -> {norms[-1]:.3e})"
                )

        self.status = NewtonStatus.MAX_ITER_EXCEEDED
        logger.debug(
            f"Newton: no convergence in {opts.max_newton_iterations} iterations "
            f"(update norm {d_norm:.3e}, residual {r_norm:.3e})"
        )
        raise NewtonMaxIterExceeded(
            f"Newton did not converge in {opts.max_newton_iterations} iterations (t={t:.6e})"
        )

