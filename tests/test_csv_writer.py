"""Tests for trajectory CSV export."""

import numpy as np
import pytest

from daejax.io.csv_writer import read_csv, write_csv
from daejax.problem.observer import TrajectoryRecorder


def test_write_and_read_recorder(tmp_path):
    recorder = TrajectoryRecorder()
    recorder.record(np.array([1.0, 0.0, 1e-3]), 0.0)
    recorder.on_step(np.array([0.99, 3.5e-5, 0.00996]), 0.04)

    path = tmp_path / "trajectory.csv"
    write_csv(recorder, path, names=["a", "b", "c"])

    lines = path.read_text().splitlines()
    assert lines[0] == "time,a,b,c"
    assert len(lines) == 3

    data = read_csv(path)
    assert data["names"] == ["a", "b", "c"]
    np.testing.assert_allclose(data["times"], [0.0, 0.04])
    np.testing.assert_allclose(data["states"], recorder.states, rtol=1e-9)


def test_tuple_input_and_default_names(tmp_path):
    path = tmp_path / "out.csv"
    write_csv((np.array([0.0, 1.0]), np.array([[1.0, 2.0], [3.0, 4.0]])), path, precision=3)
    data = read_csv(path)
    assert data["names"] == ["x0", "x1"]
    assert path.read_text().splitlines()[1] == "0.000e+00,1.000e+00,2.000e+00"


def test_name_count_mismatch(tmp_path):
    with pytest.raises(ValueError, match="column names"):
        write_csv((np.zeros(1), np.zeros((1, 2))), tmp_path / "x.csv", names=["only"])
