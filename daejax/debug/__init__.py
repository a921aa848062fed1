"""Debug utilities for daejax."""

from daejax.debug.jacobian import (
    JacobianComparison,
    compare_jacobians,
    print_jacobian,
    print_jacobian_structure,
)

__all__ = [
    "JacobianComparison",
    "compare_jacobians",
    "print_jacobian",
    "print_jacobian_structure",
]
