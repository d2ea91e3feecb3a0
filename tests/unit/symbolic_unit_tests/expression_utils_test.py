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
Unit tests for expression utilities

Tests cover:
1. Expression classification
2. Quotient splitting
3. Degree inspection
4. Constant extraction
5. Differential operators
"""

import pytest
import sympy as sp

from bilinsym.symbolic.expression_utils import (
    ExpressionKind,
    UnsupportedExpressionError,
    classify,
    degree,
    get_constant,
    get_differential,
    has_var,
    split_quotient,
)

x, y, z = sp.symbols("x y z")
a, b = sp.symbols("a b")


# ============================================================================
# Test Class 1: Classification
# ============================================================================


class TestClassify:
    """Test mapping of SymPy nodes onto expression kinds"""

    def test_symbol_is_variable(self):
        assert classify(x) is ExpressionKind.VARIABLE

    def test_indexed_is_variable(self):
        X = sp.IndexedBase("X")
        assert classify(X[0]) is ExpressionKind.VARIABLE

    def test_numbers_are_constants(self):
        assert classify(3) is ExpressionKind.CONSTANT
        assert classify(sp.Rational(1, 3)) is ExpressionKind.CONSTANT
        assert classify(sp.pi) is ExpressionKind.CONSTANT
        assert classify(sp.sin(2)) is ExpressionKind.CONSTANT

    def test_sum_and_product(self):
        assert classify(x + y) is ExpressionKind.SUM
        assert classify(2 * x * y) is ExpressionKind.PRODUCT

    def test_division_is_quotient(self):
        assert classify(x / y) is ExpressionKind.QUOTIENT
        assert classify(1 / x) is ExpressionKind.QUOTIENT

    def test_division_by_number_is_product(self):
        assert classify(x / 2) is ExpressionKind.PRODUCT

    def test_powers(self):
        assert classify(x**2) is ExpressionKind.POWER
        assert classify(sp.sqrt(x)) is ExpressionKind.POWER

    def test_symbolic_exponent_is_function(self):
        assert classify(x**a) is ExpressionKind.FUNCTION
        assert classify(sp.exp(x)) is ExpressionKind.FUNCTION

    def test_function_application(self):
        f = sp.Function("f")
        assert classify(sp.sin(x)) is ExpressionKind.FUNCTION
        assert classify(f(x, y)) is ExpressionKind.FUNCTION

    def test_relational_is_unsupported(self):
        with pytest.raises(UnsupportedExpressionError):
            classify(sp.Eq(x, y))


# ============================================================================
# Test Class 2: Quotient Splitting
# ============================================================================


class TestSplitQuotient:
    """Test numerator/denominator separation"""

    def test_simple_quotient(self):
        numer, denom = split_quotient(3 * x / y**2)
        assert numer == 3 * x
        assert denom == y**2

    def test_numeric_denominator_stays_in_numerator(self):
        numer, denom = split_quotient(x / 2)
        assert numer == x / 2
        assert denom == 1

    def test_compound_denominator(self):
        numer, denom = split_quotient(x / (1 + y))
        assert numer == x
        assert denom == 1 + y


# ============================================================================
# Test Class 3: Degree
# ============================================================================


class TestDegree:
    """Test total polynomial degree"""

    def test_constant(self):
        assert degree(5) == 0
        assert degree(sp.Rational(2, 7)) == 0

    def test_variable(self):
        assert degree(x) == 1

    def test_monomials(self):
        for k1, k2, k3 in [(1, 0, 0), (2, 1, 0), (1, 1, 1), (3, 2, 4)]:
            monomial = x**k1 * y**k2 * z**k3
            assert degree(monomial, [x, y, z]) == k1 + k2 + k3

    def test_sum_takes_maximum(self):
        assert degree(x**3 + y) == 3
        assert degree(x * y + x + 1) == 2

    def test_coefficient_does_not_add_degree(self):
        assert degree(7 * x**2) == 2

    def test_power_of_sum(self):
        assert degree((x + y) ** 3) == 3

    def test_designated_variables_only(self):
        assert degree(a * x**2, [x]) == 2
        assert degree(a**5, [x]) == 0

    def test_function_application(self):
        assert degree(sp.sin(x)) == 1
        assert degree(sp.sin(a), [x]) == 0

    def test_quotient_with_constant_denominator(self):
        assert degree(x**2 / (1 + a), [x]) == 2

    def test_fractional_power_fails(self):
        with pytest.raises(UnsupportedExpressionError):
            degree(sp.sqrt(x))

    def test_negative_power_fails(self):
        with pytest.raises(UnsupportedExpressionError, match="denominator"):
            degree(1 / x, [x])

    def test_fractional_power_of_constant_is_allowed(self):
        assert degree(sp.sqrt(a) * x, [x]) == 1


# ============================================================================
# Test Class 4: Constant Extraction
# ============================================================================


class TestGetConstant:
    """Test extraction of the variable-free part"""

    def test_sum(self):
        assert get_constant(a * x + 2 * a + 3, [x]) == 2 * a + 3

    def test_single_term_with_variable(self):
        assert get_constant(a * x * y, [x]) == 0

    def test_single_constant_term(self):
        assert get_constant(a * b, [x]) == a * b

    def test_all_variables_dropped(self):
        assert get_constant(x + y + x * y, [x, y]) == 0

    def test_has_var(self):
        assert has_var(sp.sin(x) + a, x)
        assert not has_var(a * b, x)


# ============================================================================
# Test Class 5: Differential Operators
# ============================================================================


class TestGetDifferential:
    """Test joint differential operators of lifted-state terms"""

    def test_variable(self):
        assert get_differential(x)(3 * x + y) == 3

    def test_cross_term_is_composed(self):
        e = 3 * x * y + 2 * x**2
        assert get_differential(x * y)(e) == 3

    def test_power_is_atom(self):
        e = 3 * x * y + 2 * x**2
        assert get_differential(x**2)(e) == 2

    def test_power_does_not_touch_other_terms(self):
        assert get_differential(x**2)(x**3 + 5 * x) == 0

    def test_mixed_term(self):
        D = get_differential(x * y**2)
        assert D(sp.expand(4 * x * y**2 + x * y)) == 4

    def test_constant_factor_rejected(self):
        with pytest.raises(ValueError):
            get_differential(2 * x)

    def test_constant_term_rejected(self):
        with pytest.raises(ValueError):
            get_differential(sp.Integer(3))
