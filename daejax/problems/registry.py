"""Registry of bundled example problems.

Usage:
    from daejax.problems import get_problem, list_problems

    for info in list_problems():
        print(f"{info.name}: {info.description}")

    problem = get_problem("robertson")
    result = problem.make_solver().solve(problem.initial_state(), problem.t1)
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from daejax.options import SolverOptions
from daejax.solver import Solver


@dataclass
class Problem:
    """A ready-to-solve DAE system M x' = f(x, t)."""

    name: str
    rhs: Callable
    mass: Any
    x0: np.ndarray
    t1: float
    jacobian: Any = None  # None selects the finite-difference estimate
    options: Dict[str, Any] = field(default_factory=dict)  # Recommended option overrides
    reference: Optional[np.ndarray] = None  # Known solution at t1
    names: Optional[List[str]] = None  # State component names

    def initial_state(self) -> np.ndarray:
        """Fresh copy of the initial state (solve() overwrites its argument)."""
        return np.array(self.x0, dtype=np.float64, copy=True)

    def make_options(self, **overrides) -> SolverOptions:
        """Problem defaults with overrides applied."""
        options = SolverOptions()
        options.update_from_dict({**self.options, **overrides})
        return options

    def make_solver(self, options: Optional[SolverOptions] = None, observer=None, **kwargs) -> Solver:
        if options is None:
            options = self.make_options()
        return Solver(self.rhs, self.mass, self.jacobian, options=options, observer=observer, **kwargs)


@dataclass
class ProblemInfo:
    """Registry entry for a bundled problem."""

    name: str
    description: str
    factory: Callable[..., Problem]
    stiff: bool = True
    algebraic: bool = False  # Has zero rows in the mass matrix


PROBLEMS: Dict[str, ProblemInfo] = {}


def register_problem(name: str, description: str, stiff: bool = True, algebraic: bool = False):
    """Decorator registering a problem factory under ``name``."""

    def decorator(factory: Callable[..., Problem]) -> Callable[..., Problem]:
        PROBLEMS[name] = ProblemInfo(
            name=name, description=description, factory=factory, stiff=stiff, algebraic=algebraic
        )
        return factory

    return decorator


def get_problem(name: str, **kwargs) -> Problem:
    """Build a registered problem.

    Args:
        name: Registry name
        **kwargs: Passed to the problem factory (e.g. ``mu`` for van_der_pol)

    Raises:
        ValueError: If no problem with that name is registered
    """
    try:
        info = PROBLEMS[name]
    except KeyError:
        raise ValueError(f"Unknown problem {name!r}. Available: {sorted(PROBLEMS)}") from None
    return info.factory(**kwargs)


def list_problems() -> List[ProblemInfo]:
    """Registered problems sorted by name."""
    return [PROBLEMS[name] for name in sorted(PROBLEMS)]
