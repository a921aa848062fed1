"""Solver options with validation and string parsing.

This module provides a centralized definition of all solver options with:
- Default values
- Validation on construction and on every assignment
- Parsing from ``name=value`` strings (used by the CLI)

Example usage:
    options = SolverOptions(initial_step=1e-6, max_step=4e4)
    options.max_order = 5
    options.set("linear_solver", "scipy")
    options.update_from_dict({"rel_tolerance": "1e-8"})
"""

import math
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional, Tuple

from daejax._logging import logger
from daejax.config import MAX_BDF_ORDER
from daejax.errors import ConfigurationError, OrderOutOfRange

LINEAR_SOLVERS = ("jax", "scipy", "dense")


def _parse_bool(value: Any) -> bool:
    """Parse a boolean from various input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_pair(value: Any) -> Tuple[float, float]:
    """Parse ``"0.2,5"`` or a 2-sequence into a float pair."""
    if isinstance(value, str):
        value = value.strip("()[] ").split(",")
    lo, hi = value
    return (float(lo), float(hi))


@dataclass
class SolverOptions:
    """Options for one integration run.

    The solver copies the options when a run starts, so mutating an options
    object during integration has no effect on that run.
    """

    # Step size control
    initial_step: float = 1e-2
    """First trial step size."""

    min_step: float = 1e-12
    """Step floor. Needing a smaller step aborts with StepSizeUnderflow."""

    max_step: float = math.inf
    """Step ceiling."""

    # Tolerances
    abs_tolerance: float = 1e-6
    """Absolute tolerance for the local error test and Newton convergence."""

    rel_tolerance: float = 1e-6
    """Relative tolerance for the local error test and Newton convergence."""

    # BDF order
    max_order: int = MAX_BDF_ORDER
    """Highest BDF order the controller may select (1..6)."""

    # Newton corrector
    max_newton_iterations: int = 15
    """Newton iteration cap per step attempt."""

    newton_tolerance: float = 0.1
    """Converged when the weighted RMS norm of the update falls below this."""

    newton_residual_tolerance: float = 1e-14
    """Converged when the max-abs residual falls below this."""

    newton_consecutive: int = 1
    """Consecutive converged iterations required."""

    refactor_every_iteration: bool = True
    """Re-evaluate the Jacobian and refactorize every Newton iteration.
    If False, the iteration matrix is built once per step attempt."""

    # Accept/reject policy
    step_increase_threshold: float = 0.5
    """Error norm below which an accepted step counts as comfortable.
    Order changes are only considered after a comfortable streak."""

    step_decrease_factor_bounds: Tuple[float, float] = (0.2, 5.0)
    """Clamp of the error-based step factor."""

    step_safety: float = 0.9
    """Safety factor in h_new = h * safety * err^(-1/(k+1))."""

    newton_failure_factor: float = 0.5
    """Step multiplier after a Newton or linear-solve failure."""

    max_step_retries: int = 50
    """Consecutive failed step attempts before the run aborts."""

    value_max: float = 1e20
    """A Newton iterate with any component above this magnitude has diverged."""

    exclude_algebraic_error: bool = True
    """Leave algebraic variables (zero mass-matrix columns) out of the error norm."""

    # Jacobian
    jacobian_tolerance: Optional[float] = None
    """Finite-difference perturbation override for the estimated Jacobian."""

    # Linear algebra
    linear_solver: str = "jax"
    """Direct solver backend: 'jax', 'scipy' or 'dense'."""

    # Run
    start_time: float = 0.0
    """Integration start time t0."""

    verbosity: int = 0
    """0 quiet, 1 run summaries (INFO), 2 every step (DEBUG)."""

    def __post_init__(self):
        """Validate all options after initialization."""
        self._validate_all()

    def __setattr__(self, name: str, value: Any) -> None:
        """Set attribute with validation."""
        if name in ("initial_step", "min_step", "max_step") and not value > 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")
        if name in ("abs_tolerance", "rel_tolerance") and value < 0:
            raise ConfigurationError(f"{name} must be non-negative, got {value}")
        if name == "max_order" and not (1 <= value <= MAX_BDF_ORDER):
            raise OrderOutOfRange(f"max_order must be in [1, {MAX_BDF_ORDER}], got {value}")
        if name == "max_newton_iterations" and value < 1:
            raise ConfigurationError(f"max_newton_iterations must be >= 1, got {value}")
        if name in ("newton_tolerance", "newton_residual_tolerance") and value <= 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")
        if name == "newton_consecutive" and value < 1:
            raise ConfigurationError(f"newton_consecutive must be >= 1, got {value}")
        if name == "step_increase_threshold" and not (0 < value <= 1.0):
            raise ConfigurationError(f"step_increase_threshold must be in (0, 1], got {value}")
        if name == "step_decrease_factor_bounds":
            lo, hi = value
            if not (0 < lo < 1 < hi):
                raise ConfigurationError(
                    f"step_decrease_factor_bounds must satisfy 0 < lo < 1 < hi, got {value}"
                )
        if name == "step_safety" and not (0 < value <= 1.0):
            raise ConfigurationError(f"step_safety must be in (0, 1], got {value}")
        if name == "newton_failure_factor" and not (0 < value < 1):
            raise ConfigurationError(f"newton_failure_factor must be in (0, 1), got {value}")
        if name == "max_step_retries" and value < 1:
            raise ConfigurationError(f"max_step_retries must be >= 1, got {value}")
        if name == "value_max" and value <= 0:
            raise ConfigurationError(f"value_max must be positive, got {value}")
        if name == "jacobian_tolerance" and value is not None and value <= 0:
            raise ConfigurationError(f"jacobian_tolerance must be positive, got {value}")
        if name == "linear_solver" and value not in LINEAR_SOLVERS:
            raise ConfigurationError(f"linear_solver must be one of {LINEAR_SOLVERS}, got {value!r}")
        if name == "verbosity" and value < 0:
            raise ConfigurationError(f"verbosity must be >= 0, got {value}")

        object.__setattr__(self, name, value)

    def _validate_all(self):
        """Validate cross-field constraints."""
        if self.min_step > self.max_step:
            raise ConfigurationError(
                f"min_step ({self.min_step}) must not exceed max_step ({self.max_step})"
            )
        if self.initial_step < self.min_step:
            raise ConfigurationError(
                f"initial_step ({self.initial_step}) must not be below min_step ({self.min_step})"
            )
        if self.abs_tolerance == 0 and self.rel_tolerance == 0:
            raise ConfigurationError("abs_tolerance and rel_tolerance cannot both be zero")

    def set(self, name: str, value: Any) -> None:
        """Set an option by name with type conversion and validation.

        Args:
            name: Option name (e.g., 'max_order')
            value: Option value, possibly a string

        Raises:
            ConfigurationError: If the option name is unknown or the value is invalid
        """
        field_type = None
        for f in fields(self):
            if f.name == name:
                field_type = f.type
                break
        if field_type is None:
            raise ConfigurationError(f"Unknown option: {name}")

        try:
            if field_type == float:
                value = float(value)
            elif field_type == Optional[float]:
                value = None if value in (None, "none", "None") else float(value)
            elif field_type == int:
                value = int(float(value)) if isinstance(value, str) else int(value)
            elif field_type == bool:
                value = _parse_bool(value)
            elif field_type == str:
                value = str(value).strip("\"'")
            elif field_type == Tuple[float, float]:
                value = _parse_pair(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Cannot parse option {name}={value!r}: {e}") from e

        setattr(self, name, value)
        self._validate_all()

    def update_from_dict(self, opts: Mapping[str, Any], strict: bool = True) -> None:
        """Apply several options at once.

        Args:
            opts: Mapping of option name to value (strings are converted)
            strict: If False, unknown names are logged and skipped
        """
        names = {f.name for f in fields(self)}
        for name, value in opts.items():
            if name not in names and not strict:
                logger.warning(f"Ignoring unknown option {name}={value}")
                continue
            self.set(name, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert options to a plain dictionary."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, tuple):
                value = list(value)
            result[f.name] = value
        return result

    def copy(self) -> "SolverOptions":
        """Create a copy of these options."""
        return SolverOptions(**{f.name: getattr(self, f.name) for f in fields(self)})
