"""daejax command-line interface.

    daejax list                              # Bundled problems
    daejax run robertson                     # Solve with problem defaults
    daejax run robertson -o robertson.csv    # Write the trajectory
    daejax run van_der_pol --t1 50 --option max_order=3
    daejax jaccheck robertson                # Analytical vs estimated Jacobian
    daejax info
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

import jax
import numpy as np

from daejax import __version__, get_precision_info
from daejax._logging import logger, set_log_level
from daejax.errors import DAESolverError
from daejax.problem.observer import TrajectoryRecorder


def setup_logging(verbose: int = 0, quiet: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    set_log_level(level)


def parse_option_overrides(items: Optional[List[str]]) -> Dict[str, str]:
    """Parse ``name=value`` strings into a dict."""
    overrides = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Expected name=value, got {item!r}")
        name, value = item.split("=", 1)
        overrides[name.strip()] = value.strip()
    return overrides


def cmd_run(args: argparse.Namespace) -> int:
    """Solve a bundled problem."""
    from daejax.problems import get_problem

    kwargs = {}
    if args.t1 is not None:
        kwargs["t1"] = args.t1
    try:
        problem = get_problem(args.problem, **kwargs)
        overrides = parse_option_overrides(args.option)
        if args.verbose:
            overrides.setdefault("verbosity", str(min(args.verbose, 2)))
        options = problem.make_options(**overrides)
    except (ValueError, DAESolverError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    recorder = TrajectoryRecorder()
    x = problem.initial_state()
    recorder.record(x, options.start_time)
    solver = problem.make_solver(options, observer=recorder)

    try:
        result = solver.solve(x, problem.t1, raise_on_failure=False)
    except DAESolverError as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug("Solve failed", exc_info=True)
        return 1

    stats = result.stats
    print(f"{problem.name}: {result.status.value} at t={result.t:.6e}")
    print(
        f"  Steps: {stats['accepted_steps']} accepted, {stats['rejected_steps']} rejected, "
        f"{stats['newton_failures']} Newton failures"
    )
    print(f"  dt range: [{stats['min_dt']:.3e}, {stats['max_dt']:.3e}], final order {stats['final_order']}")
    print(f"  Wall time: {stats['wall_time']:.3f}s")
    names = problem.names or [f"x{i}" for i in range(len(x))]
    for name, value in zip(names, result.x):
        print(f"  {name} = {value:.9e}")

    if problem.reference is not None and result.solved:
        rel = np.abs(result.x - problem.reference) / np.abs(problem.reference)
        print(f"  Max relative deviation from reference: {float(np.max(rel)):.3e}")

    if args.output:
        from daejax.io.csv_writer import write_csv

        write_csv(recorder, args.output, names=names)
        print(f"Trajectory written to: {args.output}")

    if not result.solved:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List bundled problems."""
    from daejax.problems import list_problems

    print("Available problems:")
    for info in list_problems():
        kind = "DAE" if info.algebraic else "ODE"
        print(f"  {info.name:<14} {kind}  {info.description}")
    return 0


def cmd_jaccheck(args: argparse.Namespace) -> int:
    """Compare a problem's Jacobian with the finite-difference estimate."""
    from daejax.debug.jacobian import compare_jacobians
    from daejax.problem.jacobian import EstimatedJacobian, make_jacobian
    from daejax.problem.rhs import as_rhs
    from daejax.problems import get_problem

    try:
        problem = get_problem(args.problem)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if problem.jacobian is None:
        print(f"{problem.name} has no analytical Jacobian", file=sys.stderr)
        return 1

    rhs = as_rhs(problem.rhs)
    reference = make_jacobian(rhs, problem.jacobian)
    estimated = EstimatedJacobian(rhs, tolerance=args.tolerance)
    comparison = compare_jacobians(
        reference, estimated, problem.initial_state(), args.t, rtol=args.rtol, atol=args.atol
    )
    print(comparison.report)
    return 0 if comparison.passed else 1


def cmd_info(args: argparse.Namespace) -> int:
    """Show system information."""
    info = get_precision_info()
    print("daejax System Information")
    print("-" * 40)
    print(f"Version: {__version__}")
    print(f"Backend: {info['backend']}")
    print(f"Float64 enabled: {info['x64_enabled']}")
    print(f"Devices: {jax.devices()}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="daejax",
        description="daejax: variable-order BDF solver for M x' = f(x, t)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  daejax list                                  List bundled problems
  daejax run robertson -o out.csv              Solve and write the trajectory
  daejax run robertson --option rel_tolerance=1e-7 --option linear_solver=scipy
  daejax jaccheck robertson                    Check the analytical Jacobian
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Increase verbosity (use -vv for debug)"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress non-error output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Solve a bundled problem")
    run_parser.add_argument("problem", help="Problem name (see 'daejax list')")
    run_parser.add_argument("--t1", type=float, help="End time (default: problem's own)")
    run_parser.add_argument("-o", "--output", help="CSV output file for the trajectory")
    run_parser.add_argument(
        "--option",
        action="append",
        metavar="NAME=VALUE",
        help="Override a solver option (repeatable)",
    )
    run_parser.set_defaults(func=cmd_run)

    list_parser = subparsers.add_parser("list", help="List bundled problems")
    list_parser.set_defaults(func=cmd_list)

    jac_parser = subparsers.add_parser(
        "jaccheck", help="Compare the analytical Jacobian with the finite-difference estimate"
    )
    jac_parser.add_argument("problem", help="Problem name")
    jac_parser.add_argument("--t", type=float, default=0.0, help="Evaluation time")
    jac_parser.add_argument("--tolerance", type=float, help="Finite-difference perturbation")
    jac_parser.add_argument("--rtol", type=float, default=1e-4, help="Relative tolerance")
    jac_parser.add_argument("--atol", type=float, default=1e-6, help="Absolute tolerance")
    jac_parser.set_defaults(func=cmd_jaccheck)

    info_parser = subparsers.add_parser("info", help="Show system information")
    info_parser.set_defaults(func=cmd_info)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)

    if hasattr(args, "func"):
        return args.func(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
