"""Three-array (CSR) sparse matrices.

A square N x N matrix is stored as three arrays:
    values:       non-zero values, row by row
    column_index: column of each value (same length as values)
    row_start:    offset of the first value of each row, length N+1,
                  row_start[0] == 0 and row_start[N] == len(values)

Columns within a row must be unique but may be unordered. ``sorted_rows()``
returns the normalized (ascending columns) form that linear solvers expect.

Matrices are built with ``SparseMatrixBuilder`` and frozen by ``finalize()``,
so a partially built matrix can never reach the assembler:

    builder = SparseMatrixBuilder(3)
    builder.append_row([0], [1.0])
    builder.append_row([1], [1.0])
    builder.append_row([2], [0.0])
    M = builder.finalize()
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
from jaxtyping import Float, Int
from numpy.typing import ArrayLike

from daejax.errors import MalformedSparseMatrix

INDEX_DTYPE = np.int32


def _readonly(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class SparseMatrix:
    """Immutable square CSR matrix.

    Attributes:
        values: Non-zero values (float64)
        column_index: Column index of each value (int32)
        row_start: Row offsets, length n+1 (int32)
        n: Matrix dimension
    """

    values: Float[np.ndarray, "nnz"]
    column_index: Int[np.ndarray, "nnz"]
    row_start: Int[np.ndarray, "rows_plus_one"]
    n: int

    def __post_init__(self):
        object.__setattr__(self, "values", _readonly(np.array(self.values, dtype=np.float64)))
        object.__setattr__(
            self, "column_index", _readonly(np.array(self.column_index, dtype=INDEX_DTYPE))
        )
        object.__setattr__(self, "row_start", _readonly(np.array(self.row_start, dtype=INDEX_DTYPE)))
        object.__setattr__(self, "n", int(self.n))
        self._validate()

    def _validate(self) -> None:
        n = self.n
        if n < 1:
            raise MalformedSparseMatrix(f"Matrix dimension must be >= 1, got {n}")
        if self.values.ndim != 1 or self.column_index.ndim != 1 or self.row_start.ndim != 1:
            raise MalformedSparseMatrix("CSR arrays must be one-dimensional")
        if len(self.row_start) != n + 1:
            raise MalformedSparseMatrix(
                f"row_start has length {len(self.row_start)}, expected {n + 1}"
            )
        if len(self.column_index) != len(self.values):
            raise MalformedSparseMatrix(
                f"column_index has length {len(self.column_index)}, "
                f"values has length {len(self.values)}"
            )
        if self.row_start[0] != 0:
            raise MalformedSparseMatrix(f"row_start[0] must be 0, got {self.row_start[0]}")
        if self.row_start[-1] != len(self.values):
            raise MalformedSparseMatrix(
                f"row_start[{n}] = {self.row_start[-1]} does not match {len(self.values)} values"
            )
        if np.any(np.diff(self.row_start) < 0):
            raise MalformedSparseMatrix("row_start must be non-decreasing")
        if len(self.column_index) and (
            self.column_index.min() < 0 or self.column_index.max() >= n
        ):
            bad = self.column_index[(self.column_index < 0) | (self.column_index >= n)][0]
            raise MalformedSparseMatrix(f"Column index {bad} out of range for {n}x{n} matrix")
        # Unique columns per row: sort (row, col) keys and look for repeats
        if len(self.values) > 1:
            keys = self.row_indices().astype(np.int64) * n + self.column_index
            keys = np.sort(keys)
            if np.any(keys[1:] == keys[:-1]):
                dup = keys[1:][keys[1:] == keys[:-1]][0]
                raise MalformedSparseMatrix(
                    f"Duplicate entry at row {dup // n}, column {dup % n}"
                )

    @property
    def nnz(self) -> int:
        """Number of stored entries (explicit zeros included)."""
        return len(self.values)

    @property
    def shape(self) -> tuple:
        return (self.n, self.n)

    def row_indices(self) -> np.ndarray:
        """Row of each stored entry (COO row array)."""
        return np.repeat(np.arange(self.n, dtype=INDEX_DTYPE), np.diff(self.row_start))

    @property
    def is_sorted(self) -> bool:
        """True if columns are ascending within every row."""
        if self.nnz < 2:
            return True
        rows = self.row_indices()
        same_row = rows[1:] == rows[:-1]
        return bool(np.all(self.column_index[1:][same_row] > self.column_index[:-1][same_row]))

    def sorted_rows(self) -> "SparseMatrix":
        """Return the same matrix with ascending columns in every row."""
        if self.is_sorted:
            return self
        order = np.lexsort((self.column_index, self.row_indices()))
        return SparseMatrix(
            values=self.values[order],
            column_index=self.column_index[order],
            row_start=self.row_start,
            n=self.n,
        )

    def diagonal(self) -> np.ndarray:
        """Dense diagonal vector."""
        diag = np.zeros(self.n)
        rows = self.row_indices()
        on_diag = rows == self.column_index
        diag[rows[on_diag]] = self.values[on_diag]
        return diag

    def zero_rows(self) -> np.ndarray:
        """Indices of rows with no non-zero value (algebraic equations of a mass matrix)."""
        row_abs = np.zeros(self.n)
        np.add.at(row_abs, self.row_indices(), np.abs(self.values))
        return np.flatnonzero(row_abs == 0.0)

    def zero_columns(self) -> np.ndarray:
        """Indices of columns with no non-zero value (algebraic variables of a mass matrix)."""
        col_abs = np.zeros(self.n)
        np.add.at(col_abs, self.column_index, np.abs(self.values))
        return np.flatnonzero(col_abs == 0.0)

    def matvec(self, x: ArrayLike) -> np.ndarray:
        """Compute A @ x."""
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (self.n,):
            raise ValueError(f"Vector has shape {x.shape}, expected ({self.n},)")
        products = self.values * x[self.column_index]
        return np.bincount(self.row_indices(), weights=products, minlength=self.n)

    def to_dense(self) -> np.ndarray:
        """Convert to a dense numpy array."""
        dense = np.zeros((self.n, self.n))
        np.add.at(dense, (self.row_indices(), self.column_index), self.values)
        return dense

    def to_scipy(self):
        """Convert to a scipy.sparse.csr_matrix (shares no memory)."""
        import scipy.sparse as sp

        return sp.csr_matrix(
            (self.values.copy(), self.column_index.copy(), self.row_start.copy()),
            shape=self.shape,
        )

    def scaled(self, factor: float) -> "SparseMatrix":
        """Return factor * A with the same pattern."""
        return SparseMatrix(
            values=self.values * factor,
            column_index=self.column_index,
            row_start=self.row_start,
            n=self.n,
        )

    def equals(self, other: "SparseMatrix") -> bool:
        """Structural and exact value equality (same storage order)."""
        return (
            self.n == other.n
            and np.array_equal(self.row_start, other.row_start)
            and np.array_equal(self.column_index, other.column_index)
            and np.array_equal(self.values, other.values)
        )

    @classmethod
    def from_coo(
        cls, rows: ArrayLike, cols: ArrayLike, values: ArrayLike, n: int
    ) -> "SparseMatrix":
        """Build from COO triplets, summing duplicates and sorting columns.

        Args:
            rows: Row index of each entry
            cols: Column index of each entry
            values: Value of each entry
            n: Matrix dimension
        """
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        values = np.asarray(values, dtype=np.float64)
        if not (len(rows) == len(cols) == len(values)):
            raise MalformedSparseMatrix("COO arrays must have equal length")
        if len(rows) and (rows.min() < 0 or rows.max() >= n):
            raise MalformedSparseMatrix(f"Row index out of range for {n}x{n} matrix")
        if len(cols) and (cols.min() < 0 or cols.max() >= n):
            raise MalformedSparseMatrix(f"Column index out of range for {n}x{n} matrix")

        # Linear index sort groups duplicates in row-major order
        linear_idx = rows * n + cols
        unique_linear, inverse = np.unique(linear_idx, return_inverse=True)
        summed = np.bincount(inverse.ravel(), weights=values, minlength=len(unique_linear))

        csr_rows = unique_linear // n
        csr_cols = unique_linear % n
        row_counts = np.bincount(csr_rows, minlength=n)
        row_start = np.concatenate([[0], np.cumsum(row_counts)])

        return cls(values=summed, column_index=csr_cols, row_start=row_start, n=n)

    @classmethod
    def from_dense(cls, dense: ArrayLike, drop_tolerance: float = 0.0) -> "SparseMatrix":
        """Build from a dense square array, dropping |a_ij| <= drop_tolerance.

        Diagonal entries are always kept so that the pattern stays usable
        for iteration matrices.
        """
        dense = np.asarray(dense, dtype=np.float64)
        if dense.ndim != 2 or dense.shape[0] != dense.shape[1]:
            raise MalformedSparseMatrix(f"Expected a square matrix, got shape {dense.shape}")
        n = dense.shape[0]
        keep = np.abs(dense) > drop_tolerance
        keep[np.diag_indices(n)] = True
        rows, cols = np.nonzero(keep)
        return cls.from_coo(rows, cols, dense[rows, cols], n)

    @classmethod
    def identity(cls, n: int) -> "SparseMatrix":
        """N x N identity."""
        return cls.diagonal_matrix(np.ones(n))

    @classmethod
    def diagonal_matrix(cls, diag: ArrayLike) -> "SparseMatrix":
        """Diagonal matrix; zero diagonal entries are stored explicitly."""
        diag = np.asarray(diag, dtype=np.float64)
        n = len(diag)
        return cls(
            values=diag,
            column_index=np.arange(n),
            row_start=np.arange(n + 1),
            n=n,
        )


class SparseMatrixBuilder:
    """Row-by-row CSR builder with an explicit finalize step.

    Rows are appended in order, either whole (``append_row``) or entry by
    entry (``append`` then ``end_row``). ``finalize()`` closes the row
    offsets, validates the invariants and returns an immutable SparseMatrix.
    Nothing can be appended after finalize.
    """

    def __init__(self, n: int, capacity: int = 0):
        """
        Args:
            n: Matrix dimension
            capacity: Expected number of entries (pre-reserved)
        """
        if n < 1:
            raise MalformedSparseMatrix(f"Matrix dimension must be >= 1, got {n}")
        self.n = n
        self._values = np.empty(max(capacity, 0), dtype=np.float64)
        self._columns = np.empty(max(capacity, 0), dtype=INDEX_DTYPE)
        self._size = 0
        self._row_start = [0]
        self._finalized = False

    def _check_open(self) -> None:
        if self._finalized:
            raise MalformedSparseMatrix("Cannot append to a finalized sparse matrix")

    def _grow(self, needed: int) -> None:
        capacity = len(self._values)
        if needed <= capacity:
            return
        new_capacity = max(needed, 2 * capacity, 16)
        values = np.empty(new_capacity, dtype=np.float64)
        columns = np.empty(new_capacity, dtype=INDEX_DTYPE)
        values[: self._size] = self._values[: self._size]
        columns[: self._size] = self._columns[: self._size]
        self._values, self._columns = values, columns

    @property
    def rows_closed(self) -> int:
        return len(self._row_start) - 1

    @property
    def pending(self) -> int:
        """Entries appended to the current, not yet closed, row."""
        return self._size - self._row_start[-1]

    def append(self, column: int, value: float) -> None:
        """Append one entry to the current row."""
        self._check_open()
        self._grow(self._size + 1)
        self._columns[self._size] = column
        self._values[self._size] = value
        self._size += 1

    def end_row(self) -> None:
        """Close the current row (an empty row is allowed)."""
        self._check_open()
        if self.rows_closed >= self.n:
            raise MalformedSparseMatrix(f"Matrix already has {self.n} rows")
        self._row_start.append(self._size)

    def append_row(self, columns: Iterable[int], values: Iterable[float]) -> None:
        """Append a complete row."""
        self._check_open()
        columns = np.asarray(list(columns) if not isinstance(columns, np.ndarray) else columns)
        values = np.asarray(list(values) if not isinstance(values, np.ndarray) else values)
        if columns.shape != values.shape:
            raise MalformedSparseMatrix(
                f"Row has {columns.size} columns but {values.size} values"
            )
        k = columns.size
        self._grow(self._size + k)
        self._columns[self._size : self._size + k] = columns
        self._values[self._size : self._size + k] = values
        self._size += k
        self.end_row()

    def finalize(self) -> SparseMatrix:
        """Close the row offsets and return the validated matrix.

        A pending row with entries is closed first.

        Raises:
            MalformedSparseMatrix: If the row count is not n, a column index
                is out of range, or a row repeats a column
        """
        self._check_open()
        if self.pending:
            self.end_row()
        if len(self._row_start) != self.n + 1:
            raise MalformedSparseMatrix(
                f"row_start has length {len(self._row_start)}, expected {self.n + 1}"
            )
        self._finalized = True
        return SparseMatrix(
            values=self._values[: self._size].copy(),
            column_index=self._columns[: self._size].copy(),
            row_start=np.asarray(self._row_start),
            n=self.n,
        )


def as_sparse_matrix(obj, n: Optional[int] = None) -> SparseMatrix:
    """Coerce a provider return value into a SparseMatrix.

    Accepts a SparseMatrix, a (values, column_index, row_start) triple, a
    scipy.sparse matrix, or a dense 2-D array.
    """
    if isinstance(obj, SparseMatrix):
        return obj
    if isinstance(obj, tuple) and len(obj) == 3:
        values, column_index, row_start = obj
        rows = len(row_start) - 1
        return SparseMatrix(values, column_index, row_start, n if n is not None else rows)
    if hasattr(obj, "tocsr"):
        csr = obj.tocsr()
        if csr.shape[0] != csr.shape[1]:
            raise MalformedSparseMatrix(f"Expected a square matrix, got shape {csr.shape}")
        csr.sum_duplicates()
        return SparseMatrix(csr.data, csr.indices, csr.indptr, csr.shape[0])
    return SparseMatrix.from_dense(obj)
