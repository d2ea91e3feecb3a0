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
State Lifting

Builds the lifted (expanded) state vector of monomials used by the
bilinear approximation.
"""

import math
from typing import List, Sequence

import sympy as sp

from bilinsym.symbolic.expression_utils import degree
from bilinsym.types.symbolic import SymbolicExpression


def trilvec(matrix: sp.Matrix) -> List[sp.Expr]:
    """
    Column-major vectorization of the lower triangle (diagonal included).

    Examples
    --------
    >>> a, b, c, d = sp.symbols('a b c d')
    >>> trilvec(sp.Matrix([[a, b], [c, d]]))
    [a, c, d]
    """
    rows, cols = matrix.shape
    return [matrix[i, j] for j in range(cols) for i in range(j, rows)]


def _unique(terms: Sequence[sp.Expr]) -> List[sp.Expr]:
    """Order-preserving deduplication by structural equality."""
    seen = set()
    result = []
    for term in terms:
        if term not in seen:
            seen.add(term)
            result.append(term)
    return result


def build_state_vector(x: Sequence[sp.Symbol], order: int) -> List[SymbolicExpression]:
    """
    Build the lifted state vector of monomials up to ``order``.

    Each round appends the pairwise products y_i*y_j (i >= j) of the
    current vector, which doubles the highest representable degree. After
    ceil(log2(order)) rounds every monomial of degree <= order is present;
    terms above ``order`` are then filtered out.

    The original states are always the first ``len(x)`` entries.

    Parameters
    ----------
    x : sequence of sp.Symbol
        Original state symbols
    order : int
        Maximum monomial degree (>= 1)

    Returns
    -------
    list of sp.Expr
        Lifted state vector without duplicates

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> build_state_vector([x, y], 2)
    [x, y, x**2, x*y, y**2]
    """
    if order < 1:
        raise ValueError(f"order must be >= 1, got {order}")

    y = list(x)
    rounds = math.ceil(math.log2(order)) if order > 1 else 0
    for _ in range(rounds):
        column = sp.Matrix(y)
        products = trilvec(column * column.T)
        y = _unique(y + products)

    return [term for term in y if degree(term) <= order]
