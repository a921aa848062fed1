"""I/O utilities for reading and writing trajectories."""

from .csv_writer import read_csv, write_csv

__all__ = [
    "write_csv",
    "read_csv",
]
