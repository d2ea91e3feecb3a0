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
Sparse Kernels for Bilinear Models

Products on the CSC containers produced by ``get_sparse_arrays()`` and on
their coordinate (COO) form:

- mul_csc / mul_coo:     y = A x
- mult_csc / mult_coo:   y = Aᵀ x
- ata_csc:               y = Aᵀ A x
- bilinear_term / bilinear_term_coo:   y = Σ z_i C_i x
- continuous_bilinear_dynamics:        ẏ = A y + B u + Σ u_i C_i y + D

Kernels that take ``y`` overwrite it and return it; otherwise a new array
is allocated. Stored zeros are treated like any other entry.
"""

from typing import List, NamedTuple, Optional, Sequence

import numpy as np
from scipy import sparse

from bilinsym.types.backends import DEFAULT_DTYPE

# ============================================================================
# Coordinate Forms
# ============================================================================


class BilinearCOO(NamedTuple):
    """Stacked coordinates of a list of C matrices (entry k belongs to C[index[k]])."""

    rows: np.ndarray
    cols: np.ndarray
    values: np.ndarray
    index: np.ndarray


def column_indices(A: sparse.csc_matrix) -> np.ndarray:
    """
    Column of every stored entry of a CSC matrix, in storage order.

    Examples
    --------
    >>> A = sparse.csc_matrix(np.array([[1.0, 0.0], [2.0, 3.0]]))
    >>> column_indices(A)
    array([0, 0, 1])
    """
    counts = np.diff(A.indptr)
    return np.repeat(np.arange(A.shape[1], dtype=A.indices.dtype), counts)


def to_coo(A) -> sparse.coo_matrix:
    """COO view of ``A`` keeping stored zeros."""
    return sparse.coo_matrix(A, copy=False)


def to_bilinear_coo(C: Sequence[sparse.csc_matrix]) -> BilinearCOO:
    """Stack the entries of every C_i into one coordinate list."""
    if len(C) == 0:
        empty_int = np.zeros(0, dtype=np.int64)
        return BilinearCOO(empty_int, empty_int, np.zeros(0, dtype=DEFAULT_DTYPE), empty_int)

    rows, cols, values, index = [], [], [], []
    for i, Ci in enumerate(C):
        coo = to_coo(Ci)
        rows.append(coo.row)
        cols.append(coo.col)
        values.append(coo.data)
        index.append(np.full(coo.nnz, i, dtype=np.int64))
    return BilinearCOO(
        np.concatenate(rows),
        np.concatenate(cols),
        np.concatenate(values),
        np.concatenate(index),
    )


def _output(y: Optional[np.ndarray], size: int) -> np.ndarray:
    if y is None:
        return np.zeros(size, dtype=DEFAULT_DTYPE)
    if y.shape != (size,):
        raise ValueError(f"Output must have shape ({size},), got {y.shape}")
    y.fill(0.0)
    return y


# ============================================================================
# Matrix-Vector Products
# ============================================================================


def mul_csc(A: sparse.csc_matrix, x, y: Optional[np.ndarray] = None) -> np.ndarray:
    """y = A x, scattering each column into the rows it touches."""
    x = np.asarray(x)
    y = _output(y, A.shape[0])
    np.add.at(y, A.indices, A.data * x[column_indices(A)])
    return y


def mul_coo(Acoo: sparse.coo_matrix, x, y: Optional[np.ndarray] = None) -> np.ndarray:
    """y = A x for a COO matrix."""
    x = np.asarray(x)
    y = _output(y, Acoo.shape[0])
    np.add.at(y, Acoo.row, Acoo.data * x[Acoo.col])
    return y


def mult_csc(A: sparse.csc_matrix, x, y: Optional[np.ndarray] = None) -> np.ndarray:
    """y = Aᵀ x, one dot product per column."""
    x = np.asarray(x)
    y = _output(y, A.shape[1])
    y += np.bincount(
        column_indices(A), weights=A.data * x[A.indices], minlength=A.shape[1]
    )
    return y


def mult_coo(Acoo: sparse.coo_matrix, x, y: Optional[np.ndarray] = None) -> np.ndarray:
    """y = Aᵀ x for a COO matrix."""
    x = np.asarray(x)
    y = _output(y, Acoo.shape[1])
    np.add.at(y, Acoo.col, Acoo.data * x[Acoo.row])
    return y


def ata_csc(
    A: sparse.csc_matrix,
    x,
    y: Optional[np.ndarray] = None,
    work: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    y = Aᵀ A x without forming AᵀA.

    ``work`` (length A.shape[0]) holds the intermediate A x.
    """
    work = mul_csc(A, x, work)
    return mult_csc(A, work, y)


# ============================================================================
# Bilinear Terms
# ============================================================================


def bilinear_term(
    C: Sequence[sparse.csc_matrix], x, z, y: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    y = Σ_i z_i C_i x

    Examples
    --------
    >>> C = [sparse.csc_matrix(np.eye(2)), sparse.csc_matrix(2 * np.eye(2))]
    >>> bilinear_term(C, np.array([1.0, 1.0]), np.array([1.0, 0.5]))
    array([2., 2.])
    """
    if len(C) != len(z):
        raise ValueError(f"Got {len(C)} C matrices for {len(z)} controls")
    x = np.asarray(x)
    n = C[0].shape[0] if len(C) > 0 else len(x)
    y = _output(y, n)
    for zi, Ci in zip(z, C):
        np.add.at(y, Ci.indices, zi * Ci.data * x[column_indices(Ci)])
    return y


def bilinear_term_coo(
    Ccoo: BilinearCOO, x, z, n: int, y: Optional[np.ndarray] = None
) -> np.ndarray:
    """y = Σ_i z_i C_i x from the stacked coordinates of ``to_bilinear_coo``."""
    x = np.asarray(x)
    z = np.asarray(z)
    y = _output(y, n)
    np.add.at(y, Ccoo.rows, Ccoo.values * x[Ccoo.cols] * z[Ccoo.index])
    return y


# ============================================================================
# Continuous Dynamics
# ============================================================================


def continuous_bilinear_dynamics(
    A: sparse.csc_matrix,
    B: sparse.csc_matrix,
    C: List[sparse.csc_matrix],
    D: sparse.csc_matrix,
    y,
    u,
) -> np.ndarray:
    """
    Lifted state derivative ẏ = A y + B u + Σ u_i C_i y + D.

    Parameters
    ----------
    A, B, C, D
        Numeric matrices from ``get_sparse_arrays()`` after updating
    y : array-like
        Lifted state (length n)
    u : array-like
        Control (length m)

    Returns
    -------
    np.ndarray
        Lifted state derivative (length n)
    """
    y = np.asarray(y, dtype=DEFAULT_DTYPE)
    u = np.asarray(u, dtype=DEFAULT_DTYPE)
    if u.shape != (B.shape[1],):
        raise ValueError(f"Expected control of length {B.shape[1]}, got shape {u.shape}")

    ydot = mul_csc(A, y)
    ydot += mul_csc(B, u)
    if len(C) > 0:
        ydot += bilinear_term(C, y, u)
    ydot += mul_csc(D, np.ones(1))
    return ydot
