"""DAE solver for M x' = f(x, t) with variable-order, variable-step BDF.

Example:
    import numpy as np
    from daejax import DiagonalMassMatrix, Solver, SolverOptions

    def f(x, t):
        return np.array([-0.04 * x[0] + 1e4 * x[1] * x[2],
                         0.04 * x[0] - 1e4 * x[1] * x[2] - 3e7 * x[1] ** 2,
                         x[0] + x[1] + x[2] - 1.0])

    solver = Solver(f, DiagonalMassMatrix([1.0, 1.0, 0.0]),
                    options=SolverOptions(initial_step=1e-6))
    x = np.array([1.0, 0.0, 1e-3])
    result = solver.solve(x, 4e6)   # x now holds the state at t = 4e6

One run moves through NotStarted -> (Stepping -> Converging -> ErrorCheck ->
Accepted | Rejected)* -> Finished | Failed. Step failures (singular
iteration matrix, Newton divergence) and error rejections are retried with a
smaller step; only StepSizeUnderflow and StepRetriesExhausted end a run
early.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np
from numpy.typing import ArrayLike

from daejax._logging import level_for_verbosity, logger
from daejax.errors import (
    ConfigurationError,
    IntegrationAborted,
    MalformedSparseMatrix,
    StepFailure,
    StepRetriesExhausted,
    StepSizeUnderflow,
)
from daejax.integration.bdf import compute_bdf_coeffs, error_coefficient
from daejax.integration.controller import StepOrderController
from daejax.integration.history import StepHistory
from daejax.integration.newton import NewtonCorrector
from daejax.integration.predictor import compute_predictor_coeffs, predict
from daejax.options import SolverOptions
from daejax.problem.jacobian import make_jacobian
from daejax.problem.mass_matrix import as_mass_matrix
from daejax.problem.observer import as_observer
from daejax.problem.rhs import as_rhs
from daejax.sparse.assembly import IterationMatrixAssembler
from daejax.sparse.linsolve import LinearSolver, get_linear_solver


class SolveStatus(Enum):
    """Outcome of a run."""

    SOLVED = "solved"
    ABORTED = "aborted"


@dataclass
class SolveResult:
    """Result of Solver.solve().

    Attributes:
        status: SOLVED if t1 was reached, ABORTED otherwise
        t: Last accepted time (t1 when solved)
        x: State at t
        stats: Run statistics (step counts, call counts, dt range, wall time)
        message: Reason for an abort, empty when solved
    """

    status: SolveStatus
    t: float
    x: np.ndarray
    stats: Dict[str, Any] = field(default_factory=dict)
    message: str = ""

    @property
    def solved(self) -> bool:
        return self.status is SolveStatus.SOLVED


class Solver:
    """Integrates M x' = f(x, t) from ``options.start_time`` to a given end time.

    Providers may be given as provider objects or plain callables:

    Args:
        rhs: RHS provider or ``f(x, t)``
        mass: MassMatrix provider, zero-argument callable, or a matrix
            (SparseMatrix, CSR triple, scipy.sparse or dense)
        jacobian: Jacobian provider, ``J(x, t)`` callable returning the
            analytical Jacobian, or None for the finite-difference estimate
        options: SolverOptions (defaults if None)
        observer: Observer, ``on_step(x, t)`` callable, or None
        linear_solver: LinearSolver instance; by default the backend named
            by ``options.linear_solver``

    Subclasses may override ``observer(x, t)`` instead of passing one.

    Attributes:
        t: Time of the most recent accepted step
        order: BDF order of the most recent accepted step
        stats: Statistics of the most recent run
    """

    def __init__(
        self,
        rhs,
        mass,
        jacobian=None,
        options: Optional[SolverOptions] = None,
        observer=None,
        linear_solver: Optional[LinearSolver] = None,
    ):
        self.options = options if options is not None else SolverOptions()
        self.rhs = as_rhs(rhs)
        self.mass = as_mass_matrix(mass)
        self.jacobian = make_jacobian(self.rhs, jacobian, self.options.jacobian_tolerance)
        self._observer = as_observer(observer)
        self.linear_solver = linear_solver

        self.t = self.options.start_time
        self.order = 1
        self.stats: Dict[str, Any] = {}

    def observer(self, x: np.ndarray, t: float) -> None:
        """Called once per accepted step, after time has advanced."""
        self._observer.on_step(x, t)

    def solve(self, x: ArrayLike, t1: float, raise_on_failure: bool = True) -> SolveResult:
        """Integrate from options.start_time to t1.

        Args:
            x: Initial state; the algebraic components may be inconsistent.
                A float64 numpy array is overwritten with the final state.
            t1: End time, strictly after options.start_time
            raise_on_failure: Raise IntegrationAborted subclasses on a fatal
                failure. If False, the aborted SolveResult is returned instead.

        Returns:
            SolveResult

        Raises:
            ConfigurationError: If t1 is not after the start time
            StepSizeUnderflow: If the step had to drop below min_step
            StepRetriesExhausted: If max_step_retries consecutive attempts failed
        """
        opts = self.options.copy()
        t0 = float(opts.start_time)
        t1 = float(t1)
        if not t1 > t0:
            raise ConfigurationError(f"End time {t1} must be after start time {t0}")

        x0 = np.array(x, dtype=np.float64)
        if x0.ndim != 1:
            raise ValueError(f"State must be a vector, got shape {x0.shape}")

        previous_level = logger.level
        if opts.verbosity > 0:
            logger.setLevel(level_for_verbosity(opts.verbosity))
        try:
            try:
                result = self._integrate(x0, t0, t1, opts)
            except IntegrationAborted as e:
                logger.warning(f"Integration aborted at t={e.t:.6e}: {e}")
                e.result = SolveResult(
                    status=SolveStatus.ABORTED, t=e.t, x=e.x, stats=self.stats, message=str(e)
                )
                self._write_back(x, e.x)
                if raise_on_failure:
                    raise
                return e.result
        finally:
            logger.setLevel(previous_level)

        self._write_back(x, result.x)
        return result

    __call__ = solve

    @staticmethod
    def _write_back(target, x: np.ndarray) -> None:
        if (
            isinstance(target, np.ndarray)
            and target.dtype == np.float64
            and target.shape == x.shape
            and target.flags.writeable
        ):
            target[...] = x

    def _reset_stats(self) -> None:
        self.stats = {
            "accepted_steps": 0,
            "rejected_steps": 0,
            "newton_failures": 0,
            "newton_iterations": 0,
            "rhs_calls": 0,
            "jacobian_calls": 0,
            "linear_solves": 0,
            "min_dt": np.inf,
            "max_dt": 0.0,
            "final_order": 1,
            "max_order_used": 1,
            "wall_time": 0.0,
            "convergence_rate": 0.0,
        }

    def _integrate(self, x0: np.ndarray, t0: float, t1: float, opts: SolverOptions) -> SolveResult:
        mass = self.mass.evaluate()
        n = len(x0)
        if mass.n != n:
            raise MalformedSparseMatrix(
                f"Mass matrix is {mass.n}x{mass.n} but the state has {n} components"
            )

        linear_solver = self.linear_solver or get_linear_solver(opts.linear_solver)
        assembler = IterationMatrixAssembler(mass)
        newton = NewtonCorrector(self.rhs, self.jacobian, assembler, linear_solver, opts)

        algebraic = mass.zero_columns()
        differential = np.ones(n, dtype=bool)
        differential[algebraic] = False
        error_mask = differential if opts.exclude_algebraic_error and len(algebraic) > 0 else None
        controller = StepOrderController(opts, error_mask)
        history = StepHistory(t0, x0, capacity=opts.max_order + 3)

        self._reset_stats()
        stats = self.stats
        fd_calls_start = getattr(self.jacobian, "rhs_calls", 0)
        self.t = t0
        self.order = 1

        logger.info(
            f"Solver: n={n}, {len(algebraic)} algebraic, t=[{t0:.3e}, {t1:.3e}], "
            f"jacobian={self.jacobian.kind.value}, linear_solver={linear_solver.name}"
        )

        dt = controller.limit(opts.initial_step)
        failures = 0
        start = time.perf_counter()

        def update_counters():
            stats["rhs_calls"] = newton.rhs_calls + getattr(self.jacobian, "rhs_calls", 0) - fd_calls_start
            stats["jacobian_calls"] = newton.jacobian_calls
            stats["linear_solves"] = newton.linear_solves
            stats["final_order"] = self.order
            stats["max_order_used"] = controller.max_order_used
            stats["wall_time"] = time.perf_counter() - start
            attempts = stats["accepted_steps"] + stats["rejected_steps"] + stats["newton_failures"]
            stats["convergence_rate"] = stats["accepted_steps"] / max(attempts, 1)

        try:
            while history.t < t1:
                t_n = history.t
                remaining = t1 - t_n
                last = dt >= remaining or remaining - dt < opts.min_step
                h = remaining if last else dt
                t_new = t1 if last else t_n + h
                if not t_new > t_n:
                    raise StepSizeUnderflow(
                        f"Step {h:.3e} is below the time resolution at t={t_n:.6e}", t_n, history.x
                    )

                order = min(controller.order, len(history))
                past_dt = history.past_dt()
                coeffs = compute_bdf_coeffs(past_dt, h, order)
                pred = compute_predictor_coeffs(past_dt, h, order)
                x_pred = predict(pred, history.states)
                psi = coeffs.history_term(history.states)

                try:
                    corrected = newton.solve(x_pred, t_new, coeffs, psi)
                except StepFailure as e:
                    stats["newton_failures"] += 1
                    failures += 1
                    logger.debug(f"t={t_n:.6e}: step h={h:.3e} failed ({type(e).__name__}: {e})")
                    dt = controller.after_newton_failure(h)
                    self._check_retry(dt, failures, opts, history)
                    continue
                stats["newton_iterations"] += corrected.iterations

                lte = (corrected.x - x_pred) * error_coefficient(coeffs, pred.span * h)
                # x0 may violate the constraints; its algebraic part is not truncation error
                uses_x0 = pred.order >= stats["accepted_steps"]
                err = controller.error_norm(lte, corrected.x, differential if uses_x0 else None)

                if not controller.accept(err):
                    stats["rejected_steps"] += 1
                    failures += 1
                    dt = controller.after_rejection(h, err)
                    logger.debug(
                        f"t={t_n:.6e}: rejected h={h:.3e} order={order} err={err:.3e}, retry h={dt:.3e}"
                    )
                    self._check_retry(dt, failures, opts, history)
                    continue

                failures = 0
                history.push(t_new, corrected.x)
                stats["accepted_steps"] += 1
                stats["min_dt"] = min(stats["min_dt"], h)
                stats["max_dt"] = max(stats["max_dt"], h)
                self.t = t_new
                self.order = order

                logger.debug(
                    f"t={t_new:.6e}: accepted h={h:.3e} order={order} err={err:.3e} "
                    f"newton={corrected.iterations}"
                )
                self.observer(corrected.x, t_new)

                dt, _ = controller.after_acceptance(h, err, history)
        finally:
            update_counters()

        logger.info(
            f"Solver: reached t={history.t:.6e} in {stats['accepted_steps']} steps "
            f"({stats['rejected_steps']} rejected, {stats['newton_failures']} Newton failures) "
            f"in {stats['wall_time']:.3f}s, dt range [{stats['min_dt']:.2e}, {stats['max_dt']:.2e}]"
        )

        return SolveResult(
            status=SolveStatus.SOLVED, t=history.t, x=history.x.copy(), stats=stats
        )

    @staticmethod
    def _check_retry(dt: float, failures: int, opts: SolverOptions, history: StepHistory) -> None:
        if dt < opts.min_step:
            raise StepSizeUnderflow(
                f"Step size {dt:.3e} fell below min_step={opts.min_step:.3e} at t={history.t:.6e}",
                history.t,
                history.x,
            )
        if failures >= opts.max_step_retries:
            raise StepRetriesExhausted(
                f"{failures} consecutive failed step attempts at t={history.t:.6e}",
                history.t,
                history.x,
            )
