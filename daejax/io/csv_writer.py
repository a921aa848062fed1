"""Write trajectories to CSV format.

Simple, portable format compatible with spreadsheets and data analysis tools.
"""

import csv
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np


def write_csv(
    trajectory: Any,
    output_path: Union[str, Path],
    names: Optional[Sequence[str]] = None,
    precision: int = 9,
) -> None:
    """Write a trajectory to a CSV file.

    Format:
        time,x0,x1,x2,...
        0.0,1.0,0.0,1.0e-3,...
        4.0e-2,9.9e-1,3.6e-5,1.1e-2,...
        ...

    Args:
        trajectory: Object with ``times`` (num_steps,) and ``states``
            (num_steps, n) attributes, e.g. a TrajectoryRecorder, or a
            (times, states) tuple
        output_path: Path to output file
        names: Column names for the state components (default x0, x1, ...)
        precision: Number of decimal places for scientific notation
    """
    output_path = Path(output_path)

    if isinstance(trajectory, tuple):
        times, states = trajectory
    else:
        times, states = trajectory.times, trajectory.states
    times = np.asarray(times, dtype=np.float64)
    states = np.asarray(states, dtype=np.float64).reshape(len(times), -1)

    n = states.shape[1]
    if names is None:
        names = [f"x{i}" for i in range(n)]
    if len(names) != n:
        raise ValueError(f"Got {len(names)} column names for {n} state components")

    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)

        writer.writerow(["time"] + list(names))

        fmt = f"{{:.{precision}e}}"
        for i in range(len(times)):
            row = [fmt.format(times[i])]
            row.extend(fmt.format(v) for v in states[i])
            writer.writerow(row)


def read_csv(input_path: Union[str, Path]) -> Dict[str, Any]:
    """Read a trajectory from a CSV file.

    Returns dict with:
        - times: array of time points
        - names: list of state component names
        - states: (num_steps, n) array
    """
    input_path = Path(input_path)

    with open(input_path, "r", newline="") as f:
        reader = csv.reader(f)
        header = next(reader)

        names = header[1:]
        times = []
        rows = []

        for row in reader:
            if not row:
                continue
            times.append(float(row[0]))
            rows.append([float(v) for v in row[1:]])

    states = np.array(rows, dtype=np.float64).reshape(len(times), len(names))
    return {"times": np.array(times), "names": names, "states": states}
