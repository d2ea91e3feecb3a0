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
Sparse Coefficient Extraction

Extracts the bilinear coefficient matrices of a lifted polynomial system

    dy/dt ≈ A y + B u + Σ u_i C_i y + D

as symbolic sparse matrices. Each column is obtained by applying the joint
differential operator of the column variable to every row expression and
keeping the part that is constant with respect to the base variables
(degree-1 lifted states, plus controls for B, C and D).
"""

from typing import List, Optional, Sequence, Tuple

import sympy as sp

from bilinsym.symbolic.expression_utils import degree, get_constant, get_differential
from bilinsym.symbolic.sparse_matrix import SymbolicSparseMatrix


def get_coeffs(
    exprs: Sequence[sp.Expr],
    var,
    base_vars: Sequence[sp.Basic],
) -> Tuple[List[sp.Expr], List[int]]:
    """
    Linear coefficients of ``var`` in each expression.

    Any symbol not in ``base_vars`` is treated as a constant and may appear
    in the coefficients. If ``var`` is zero, the constant (offset) part of
    each expression is extracted instead.

    Parameters
    ----------
    exprs : sequence of sp.Expr
        Row expressions
    var : sp.Expr
        Column variable (lifted-state monomial, control, or 0)
    base_vars : sequence of sp.Symbol
        Variables the coefficients must not depend on

    Returns
    -------
    tuple
        (values, rows) for the nonzero coefficients, rows 0-based

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> e = 3*x*y + 2*x**2
    >>> get_coeffs([e], x*y, [x, y])
    ([3], [0])
    >>> get_coeffs([e + 5], sp.S.Zero, [x, y])
    ([5], [0])
    """
    var = sp.sympify(var)
    base_vars = tuple(base_vars)
    differential = None if var == 0 else get_differential(var)

    rows: List[int] = []
    values: List[sp.Expr] = []
    for i, expr in enumerate(exprs):
        expanded = sp.expand(expr)

        if differential is not None:
            dvar = sp.expand(differential(expanded))
        else:
            dvar = expanded

        coeff = get_constant(dvar, base_vars)
        if coeff != 0:
            rows.append(i)
            values.append(coeff)

    return values, rows


def build_sparse_matrix(
    exprs: Sequence[sp.Expr],
    variables: Sequence,
    base_vars: Sequence[sp.Basic],
) -> SymbolicSparseMatrix:
    """
    Assemble the coefficient matrix of ``exprs`` w.r.t. ``variables``.

    Row i corresponds to ``exprs[i]``, column j to ``variables[j]``.

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> M = build_sparse_matrix([2*x + y, x*y], [x, y, x*y], [x, y])
    >>> M.to_dense()
    Matrix([
    [2, 1, 0],
    [0, 0, 1]])
    """
    columns = [get_coeffs(exprs, var, base_vars) for var in variables]
    return SymbolicSparseMatrix.from_columns(len(exprs), columns)


def _base_variables(y: Sequence[sp.Expr], u: Optional[Sequence[sp.Symbol]] = None) -> List:
    basevars = [term for term in y if degree(term) == 1]
    if u is not None:
        # Must be constant with respect to both original state and control
        basevars.extend(u)
    return basevars


def get_A_sym(
    ydot: Sequence[sp.Expr],
    y: Sequence[sp.Expr],
    u: Optional[Sequence[sp.Symbol]] = None,
) -> SymbolicSparseMatrix:
    """State matrix A (n × n). Controls, when given, are base variables."""
    return build_sparse_matrix(ydot, y, _base_variables(y, u))


def get_B_sym(
    ydot: Sequence[sp.Expr],
    y: Sequence[sp.Expr],
    u: Sequence[sp.Symbol],
) -> SymbolicSparseMatrix:
    """Input matrix B (n × m)."""
    return build_sparse_matrix(ydot, u, _base_variables(y, u))


def get_C_sym(
    ydot: Sequence[sp.Expr],
    y: Sequence[sp.Expr],
    u: Sequence[sp.Symbol],
) -> List[SymbolicSparseMatrix]:
    """
    Bilinear matrices C_i (n × n), one per control.

    The dynamics are first differentiated by u_i, which isolates the
    state × control cross terms of channel i.
    """
    basevars = _base_variables(y, u)
    matrices = []
    for uk in u:
        dydot_du = [sp.diff(expr, uk) for expr in ydot]
        matrices.append(build_sparse_matrix(dydot_du, y, basevars))
    return matrices


def get_D_sym(
    ydot: Sequence[sp.Expr],
    y: Sequence[sp.Expr],
    u: Sequence[sp.Symbol],
) -> SymbolicSparseMatrix:
    """Affine term D (n × 1)."""
    return build_sparse_matrix(ydot, [sp.S.Zero], _base_variables(y, u))
