# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Symbolic Sparse Matrix

Compressed-sparse-column container whose nonzero values are SymPy
expressions. The sparsity pattern (column pointers + row indices) is fixed
when the matrix is built; generated numeric code only replaces values.

Indices are 0-based and follow the scipy.sparse CSC convention, so the
pattern can be handed to ``scipy.sparse.csc_matrix`` unchanged.
"""

from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

import numpy as np
import sympy as sp

from bilinsym.types.bilinear import SparsityPattern
from bilinsym.types.symbolic import SubstitutionDict

# ============================================================================
# Exceptions
# ============================================================================


class DimensionMismatchError(ValueError):
    """Raised when matrix shapes or sparse structure arrays are inconsistent"""

    pass


# ============================================================================
# Symbolic CSC Matrix
# ============================================================================


@dataclass(frozen=True)
class SymbolicSparseMatrix:
    """
    Immutable CSC matrix with symbolic nonzero values.

    Attributes
    ----------
    shape : Tuple[int, int]
        (rows, columns)
    colptr : Tuple[int, ...]
        Column pointers, length ``columns + 1``, ``colptr[0] == 0``
    rowval : Tuple[int, ...]
        Row index of each stored entry (column-major)
    nzval : Tuple[sp.Expr, ...]
        Symbolic value of each stored entry

    Examples
    --------
    >>> a, b = sp.symbols('a b')
    >>> M = SymbolicSparseMatrix((2, 2), (0, 1, 2), (1, 0), (a, b))
    >>> M.to_dense()
    Matrix([
    [0, b],
    [a, 0]])
    """

    shape: Tuple[int, int]
    colptr: Tuple[int, ...]
    rowval: Tuple[int, ...]
    nzval: Tuple[sp.Expr, ...]

    def __post_init__(self):
        rows, cols = self.shape
        object.__setattr__(self, "colptr", tuple(int(p) for p in self.colptr))
        object.__setattr__(self, "rowval", tuple(int(r) for r in self.rowval))
        object.__setattr__(self, "nzval", tuple(sp.sympify(v) for v in self.nzval))

        if len(self.colptr) != cols + 1:
            raise DimensionMismatchError(
                f"colptr must have length {cols + 1} for {cols} columns, got {len(self.colptr)}"
            )
        if self.colptr[0] != 0 or self.colptr[-1] != len(self.rowval):
            raise DimensionMismatchError(
                f"colptr must start at 0 and end at nnz={len(self.rowval)}, "
                f"got {self.colptr[0]}..{self.colptr[-1]}"
            )
        if len(self.rowval) != len(self.nzval):
            raise DimensionMismatchError(
                f"rowval ({len(self.rowval)}) and nzval ({len(self.nzval)}) lengths differ"
            )
        if any(r < 0 or r >= rows for r in self.rowval):
            raise DimensionMismatchError(f"Row index out of range for {rows} rows")

    # ========================================================================
    # Structure
    # ========================================================================

    @property
    def nnz(self) -> int:
        """Number of stored entries"""
        return len(self.nzval)

    def nzrange(self, col: int) -> range:
        """Storage positions belonging to column ``col``"""
        return range(self.colptr[col], self.colptr[col + 1])

    def pattern(self) -> SparsityPattern:
        """Sparsity pattern as (colptr, rowval) integer arrays"""
        return (
            np.asarray(self.colptr, dtype=np.int32),
            np.asarray(self.rowval, dtype=np.int32),
        )

    def find(self) -> Iterator[Tuple[int, int, sp.Expr]]:
        """Iterate over (row, col, value) triplets in storage order"""
        for col in range(self.shape[1]):
            for k in self.nzrange(col):
                yield self.rowval[k], col, self.nzval[k]

    # ========================================================================
    # Conversion
    # ========================================================================

    def to_dense(self) -> sp.Matrix:
        """Dense SymPy matrix with the stored values"""
        dense = sp.zeros(*self.shape)
        for row, col, value in self.find():
            dense[row, col] += value
        return dense

    def subs(self, substitutions: SubstitutionDict) -> "SymbolicSparseMatrix":
        """
        Substitute into every stored value, keeping the pattern.

        Entries that become zero stay stored (the pattern never changes).
        """
        values = [v.subs(substitutions, simultaneous=True) for v in self.nzval]
        return SymbolicSparseMatrix(self.shape, self.colptr, self.rowval, tuple(values))

    @property
    def free_symbols(self) -> set:
        """Union of free symbols over all stored values"""
        symbols = set()
        for value in self.nzval:
            symbols |= value.free_symbols
        return symbols

    @classmethod
    def from_columns(
        cls, nrows: int, columns: Sequence[Tuple[Sequence[sp.Expr], Sequence[int]]]
    ) -> "SymbolicSparseMatrix":
        """
        Assemble from per-column (values, rows) pairs.

        Column pointers accumulate the per-column entry counts; rows and
        values are concatenated column-major.
        """
        colptr: List[int] = [0]
        rowval: List[int] = []
        nzval: List[sp.Expr] = []
        for values, rows in columns:
            if len(values) != len(rows):
                raise DimensionMismatchError(
                    f"Column has {len(values)} values but {len(rows)} row indices"
                )
            colptr.append(colptr[-1] + len(values))
            rowval.extend(rows)
            nzval.extend(values)
        return cls((nrows, len(columns)), tuple(colptr), tuple(rowval), tuple(nzval))

    def __repr__(self) -> str:
        return f"SymbolicSparseMatrix(shape={self.shape}, nnz={self.nnz})"
