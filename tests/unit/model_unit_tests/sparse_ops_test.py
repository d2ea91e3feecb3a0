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
Unit tests for sparse kernels

Tests cover:
1. Coordinate conversions
2. Matrix-vector products (CSC and COO)
3. Bilinear terms
4. Continuous bilinear dynamics
"""

import numpy as np
import pytest
from scipy import sparse

from bilinsym.models.sparse_ops import (
    ata_csc,
    bilinear_term,
    bilinear_term_coo,
    column_indices,
    continuous_bilinear_dynamics,
    mul_coo,
    mul_csc,
    mult_coo,
    mult_csc,
    to_bilinear_coo,
    to_coo,
)


def random_csc(rng, rows, cols, density):
    """Random CSC matrix with roughly the given fill fraction"""
    dense = rng.standard_normal((rows, cols))
    dense[rng.random((rows, cols)) > density] = 0.0
    return sparse.csc_matrix(dense)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def A(rng):
    return random_csc(rng, 20, 15, 0.2)


# ============================================================================
# Test Class 1: Coordinate Conversions
# ============================================================================


class TestConversions:
    """Test column indices and COO forms"""

    def test_column_indices(self):
        A = sparse.csc_matrix(np.array([[1.0, 0.0, 0.0], [2.0, 0.0, 3.0]]))
        np.testing.assert_array_equal(column_indices(A), [0, 0, 2])

    def test_to_coo_keeps_stored_zeros(self):
        data = np.array([0.0, 1.0])
        A = sparse.csc_matrix((data, np.array([0, 1]), np.array([0, 1, 2])), shape=(2, 2))
        assert to_coo(A).nnz == 2

    def test_bilinear_coo(self, rng):
        C = [random_csc(rng, 6, 6, 0.3) for _ in range(3)]
        Ccoo = to_bilinear_coo(C)
        assert len(Ccoo.values) == sum(Ci.nnz for Ci in C)
        assert set(Ccoo.index) <= {0, 1, 2}

    def test_empty_bilinear_coo(self):
        Ccoo = to_bilinear_coo([])
        assert len(Ccoo.rows) == 0


# ============================================================================
# Test Class 2: Products
# ============================================================================


class TestProducts:
    """Test products against scipy"""

    def test_mul_csc(self, A, rng):
        x = rng.standard_normal(15)
        np.testing.assert_allclose(mul_csc(A, x), A @ x)

    def test_mul_coo(self, A, rng):
        x = rng.standard_normal(15)
        np.testing.assert_allclose(mul_coo(to_coo(A), x), A @ x)

    def test_mult_csc(self, A, rng):
        x = rng.standard_normal(20)
        np.testing.assert_allclose(mult_csc(A, x), A.T @ x)

    def test_mult_coo(self, A, rng):
        x = rng.standard_normal(20)
        np.testing.assert_allclose(mult_coo(to_coo(A), x), A.T @ x)

    def test_ata(self, A, rng):
        x = rng.standard_normal(15)
        np.testing.assert_allclose(ata_csc(A, x), A.T @ (A @ x))

    def test_output_buffer_overwritten(self, A, rng):
        x = rng.standard_normal(15)
        y = np.full(20, 100.0)
        result = mul_csc(A, x, y)
        assert result is y
        np.testing.assert_allclose(y, A @ x)

    def test_output_buffer_shape_checked(self, A):
        with pytest.raises(ValueError):
            mul_csc(A, np.ones(15), np.zeros(3))


# ============================================================================
# Test Class 3: Bilinear Terms
# ============================================================================


class TestBilinearTerms:
    """Test Σ z_i C_i x"""

    def test_bilinear_term(self, rng):
        C = [random_csc(rng, 8, 8, 0.3) for _ in range(4)]
        x = rng.standard_normal(8)
        z = rng.standard_normal(4)
        expected = sum(z[i] * (C[i] @ x) for i in range(4))
        np.testing.assert_allclose(bilinear_term(C, x, z), expected)

    def test_bilinear_term_coo(self, rng):
        C = [random_csc(rng, 8, 8, 0.3) for _ in range(4)]
        x = rng.standard_normal(8)
        z = rng.standard_normal(4)
        expected = sum(z[i] * (C[i] @ x) for i in range(4))
        np.testing.assert_allclose(bilinear_term_coo(to_bilinear_coo(C), x, z, 8), expected)

    def test_control_count_checked(self):
        C = [sparse.identity(2, format="csc")]
        with pytest.raises(ValueError):
            bilinear_term(C, np.ones(2), np.ones(2))


# ============================================================================
# Test Class 4: Continuous Dynamics
# ============================================================================


class TestContinuousDynamics:
    """Test A y + B u + Σ u_i C_i y + D"""

    def test_matches_dense(self, rng):
        n, m = 6, 2
        A = random_csc(rng, n, n, 0.4)
        B = random_csc(rng, n, m, 0.5)
        C = [random_csc(rng, n, n, 0.3) for _ in range(m)]
        D = sparse.csc_matrix(rng.standard_normal((n, 1)))
        y = rng.standard_normal(n)
        u = rng.standard_normal(m)

        expected = A @ y + B @ u + sum(u[i] * (C[i] @ y) for i in range(m)) + D.toarray()[:, 0]
        np.testing.assert_allclose(continuous_bilinear_dynamics(A, B, C, D, y, u), expected)

    def test_no_controls(self):
        A = sparse.identity(3, format="csc")
        B = sparse.csc_matrix((3, 0))
        D = sparse.csc_matrix((3, 1))
        result = continuous_bilinear_dynamics(A, B, [], D, np.ones(3), np.zeros(0))
        np.testing.assert_allclose(result, np.ones(3))

    def test_control_length_checked(self):
        A = sparse.identity(2, format="csc")
        B = sparse.csc_matrix((2, 1))
        D = sparse.csc_matrix((2, 1))
        with pytest.raises(ValueError, match="control"):
            continuous_bilinear_dynamics(A, B, [], D, np.ones(2), np.ones(3))
