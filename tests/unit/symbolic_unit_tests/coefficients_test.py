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
Unit tests for sparse coefficient extraction

Tests cover:
1. Single-column coefficient extraction
2. Sparse matrix assembly
3. A, B, C, D extraction on a lifted system
"""

import sympy as sp

from bilinsym.symbolic.coefficients import (
    build_sparse_matrix,
    get_A_sym,
    get_B_sym,
    get_C_sym,
    get_coeffs,
    get_D_sym,
)

x, y, u, w = sp.symbols("x y u w")
k = sp.Symbol("k")


# ============================================================================
# Test Class 1: get_coeffs
# ============================================================================


class TestGetCoeffs:
    """Test single-column extraction"""

    def test_cross_term(self):
        e = 3 * x * y + 2 * x**2
        assert get_coeffs([e], x * y, [x, y]) == ([3], [0])

    def test_square_term(self):
        e = 3 * x * y + 2 * x**2
        assert get_coeffs([e], x**2, [x, y]) == ([2], [0])

    def test_constant_term(self):
        e = 3 * x * y + 2 * x**2
        assert get_coeffs([e + 5], sp.S.Zero, [x, y]) == ([5], [0])

    def test_linear_term_excludes_higher_order(self):
        e = 3 * x * y + 2 * x**2 + 7 * x
        assert get_coeffs([e], x, [x, y]) == ([7], [0])

    def test_rows_skip_zero_coefficients(self):
        exprs = [y, 4 * x, sp.S.Zero, x + 1]
        values, rows = get_coeffs(exprs, x, [x, y])
        assert values == [4, 1]
        assert rows == [1, 3]

    def test_symbolic_coefficients(self):
        values, rows = get_coeffs([k * x * y + k**2], x * y, [x, y])
        assert values == [k]
        assert rows == [0]

    def test_unexpanded_input(self):
        values, _ = get_coeffs([(x + y) ** 2], x * y, [x, y])
        assert values == [2]


# ============================================================================
# Test Class 2: build_sparse_matrix
# ============================================================================


class TestBuildSparseMatrix:
    """Test assembly of compressed-column structure"""

    def test_dense_equivalent(self):
        M = build_sparse_matrix([2 * x + y, x * y], [x, y, x * y], [x, y])
        assert M.to_dense() == sp.Matrix([[2, 1, 0], [0, 0, 1]])

    def test_structure(self):
        M = build_sparse_matrix([2 * x + y, x * y], [x, y, x * y], [x, y])
        assert M.shape == (2, 3)
        assert M.colptr == (0, 1, 2, 3)
        assert M.rowval == (0, 0, 1)
        assert M.nzval == (2, 1, 1)

    def test_empty_column(self):
        M = build_sparse_matrix([x, x], [x, y], [x, y])
        assert M.colptr == (0, 2, 2)


# ============================================================================
# Test Class 3: Bilinear Matrices
# ============================================================================


class TestBilinearMatrices:
    """Test A, B, C, D on a lifted system with state y = [x, x^2]"""

    def setup_method(self):
        # dx/dt = -k x + u + x u + 1 lifted to [x, x^2]
        self.y = [x, x**2]
        xdot = -k * x + u + x * u + 1
        self.ydot = [xdot, sp.expand(2 * x * xdot)]
        self.u = [u]

    def test_A(self):
        A = get_A_sym(self.ydot, self.y, self.u)
        assert A.to_dense() == sp.Matrix([[-k, 0], [2, -2 * k]])

    def test_B(self):
        B = get_B_sym(self.ydot, self.y, self.u)
        assert B.to_dense() == sp.Matrix([[1], [0]])

    def test_C(self):
        C = get_C_sym(self.ydot, self.y, self.u)
        assert len(C) == 1
        assert C[0].to_dense() == sp.Matrix([[1, 0], [2, 2]])

    def test_D(self):
        D = get_D_sym(self.ydot, self.y, self.u)
        assert D.shape == (2, 1)
        assert D.to_dense() == sp.Matrix([[1], [0]])

    def test_multiple_controls(self):
        ydot = [u * x + w, w * x**2]
        C = get_C_sym(ydot, self.y, [u, w])
        assert C[0].to_dense() == sp.Matrix([[1, 0], [0, 0]])
        assert C[1].to_dense() == sp.Matrix([[0, 0], [0, 1]])

    def test_no_controls(self):
        B = get_B_sym(self.ydot, self.y, [])
        assert B.shape == (2, 0)
        assert get_C_sym(self.ydot, self.y, []) == []
