"""Jacobian comparison and printing utilities.

Typical use is checking a hand-written analytical Jacobian against the
finite-difference estimate at a few states:

    from daejax.debug import compare_jacobians
    from daejax.problem import AnalyticalJacobian, EstimatedJacobian

    cmp = compare_jacobians(AnalyticalJacobian(jac), EstimatedJacobian(rhs), x, t)
    print(cmp.report)
"""

from typing import NamedTuple

import numpy as np
from numpy.typing import ArrayLike

from daejax.problem.jacobian import Jacobian, evaluate_checked


class JacobianComparison(NamedTuple):
    """Result of comparing two Jacobians."""

    passed: bool
    max_abs_diff: float
    max_rel_diff: float
    reference_nonzero_count: int
    candidate_nonzero_count: int
    mismatched_positions: list[tuple[int, int]]  # (row, col) pairs
    report: str


def compare_jacobians(
    reference: Jacobian,
    candidate: Jacobian,
    x: ArrayLike,
    t: float = 0.0,
    rtol: float = 1e-4,
    atol: float = 1e-8,
) -> JacobianComparison:
    """Evaluate two Jacobian providers at (x, t) and compare them entrywise.

    Args:
        reference: Provider taken as correct (usually analytical)
        candidate: Provider under test (usually estimated)
        x: State to evaluate at
        t: Time to evaluate at
        rtol: Relative tolerance
        atol: Absolute tolerance

    Returns:
        JacobianComparison with detailed results
    """
    x = np.asarray(x, dtype=np.float64)
    ref = evaluate_checked(reference, x, t).to_dense()
    cand = evaluate_checked(candidate, x, t).to_dense()
    n = len(x)

    ref_nonzero = np.sum(np.abs(ref) > atol)
    cand_nonzero = np.sum(np.abs(cand) > atol)

    abs_diff = np.abs(ref - cand)
    max_abs_diff = float(np.max(abs_diff)) if n else 0.0

    # Relative difference (avoid division by zero)
    with np.errstate(divide="ignore", invalid="ignore"):
        rel_diff = abs_diff / np.maximum(np.abs(ref), atol)
        rel_diff = np.where(np.isfinite(rel_diff), rel_diff, 0.0)
    max_rel_diff = float(np.max(rel_diff)) if n else 0.0

    close = np.isclose(cand, ref, rtol=rtol, atol=atol)
    mismatched = [(int(i), int(j)) for i, j in zip(*np.nonzero(~close))]
    passed = not mismatched

    report_lines = [
        f"Jacobian comparison at t={t:.6e} ({n}×{n}):",
        f"  {reference.kind.value} non-zeros: {ref_nonzero}",
        f"  {candidate.kind.value} non-zeros: {cand_nonzero}",
        f"  Max abs diff:   {max_abs_diff:.6e}",
        f"  Max rel diff:   {max_rel_diff:.6e}",
        f"  Passed:         {passed}",
    ]

    if mismatched:
        report_lines.append(f"  Mismatches: {len(mismatched)}")
        for i, j in mismatched[:10]:  # Show first 10
            report_lines.append(f"    [{i},{j}]: reference={ref[i, j]:.6e}, candidate={cand[i, j]:.6e}")
        if len(mismatched) > 10:
            report_lines.append(f"    ... and {len(mismatched) - 10} more")

    return JacobianComparison(
        passed=passed,
        max_abs_diff=max_abs_diff,
        max_rel_diff=max_rel_diff,
        reference_nonzero_count=int(ref_nonzero),
        candidate_nonzero_count=int(cand_nonzero),
        mismatched_positions=mismatched,
        report="\n".join(report_lines),
    )


def print_jacobian(jacobian: Jacobian, x: ArrayLike, t: float = 0.0, name: str = "Jacobian") -> None:
    """Print the dense values of a Jacobian at (x, t)."""
    dense = evaluate_checked(jacobian, np.asarray(x, dtype=np.float64), t).to_dense()
    n = dense.shape[0]
    print(f"\n{name} at t={t:.6e} ({n}×{n}):")
    for i in range(n):
        print("  " + " ".join(f"{v:12.4e}" for v in dense[i]))


def print_jacobian_structure(jacobian: Jacobian, x: ArrayLike, t: float = 0.0, name: str = "Jacobian") -> None:
    """Print the sparsity pattern of a Jacobian at (x, t).

    Args:
        jacobian: Provider to evaluate
        x: State to evaluate at
        t: Time to evaluate at
        name: Name for display
    """
    J = evaluate_checked(jacobian, np.asarray(x, dtype=np.float64), t)
    n = J.n
    print(f"\n{name} structure ({n}×{n}):")
    print(f"  Stored entries: {J.nnz}")

    pattern = J.to_dense() != 0.0
    print("\n  Pattern (X = non-zero entry):")
    for i in range(n):
        row_str = "  "
        for j in range(n):
            row_str += "X " if pattern[i, j] else ". "
        print(row_str)
