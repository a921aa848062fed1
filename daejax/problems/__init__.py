"""Bundled example problems."""

from daejax.problems.registry import (
    PROBLEMS,
    Problem,
    ProblemInfo,
    get_problem,
    list_problems,
    register_problem,
)

# Register bundled problems
from daejax.problems import robertson, van_der_pol  # noqa: E402, F401

__all__ = [
    "PROBLEMS",
    "Problem",
    "ProblemInfo",
    "get_problem",
    "list_problems",
    "register_problem",
]
