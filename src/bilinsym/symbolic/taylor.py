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
Taylor Expansion Engine

Builds symbolic multivariate Taylor series and substitutes them into
arbitrary expression trees.

Two entry points:
- taylor_series: series of a callable f(x_1, ..., x_n) about x0
- taylor_expand: replaces every nonlinear call inside an expression by its
  Taylor approximation about a base point

Quotients are expanded as the binary function (a, b) → a/b through the
same generic path as any other call, so the terms kept at a given order
are those of the two-argument series of the quotient.
"""

from typing import Callable, List, Optional, Sequence, Tuple

import sympy as sp

from bilinsym.symbolic.expression_utils import ExpressionKind, classify, split_quotient
from bilinsym.types.symbolic import SymbolList


def taylor_variables(
    nargs: int, name: str = "x", dummy: bool = False
) -> Tuple[SymbolList, SymbolList]:
    """
    Create the expansion variables and base-point variables of a series.

    Parameters
    ----------
    nargs : int
        Number of arguments of the expanded function
    name : str
        Prefix; variables are ``{name}_i`` and ``{name}0_i`` (1-based)
    dummy : bool
        If True, create ``sp.Dummy`` symbols that never collide with user
        symbols (or with dummies of any other call)

    Returns
    -------
    tuple
        (x, x0) lists of length ``nargs``

    Examples
    --------
    >>> x, x0 = taylor_variables(2)
    >>> x, x0
    ([x_1, x_2], [x0_1, x0_2])
    """
    factory = sp.Dummy if dummy else sp.Symbol
    x = [factory(f"{name}_{i}") for i in range(1, nargs + 1)]
    x0 = [factory(f"{name}0_{i}") for i in range(1, nargs + 1)]
    return x, x0


def taylor_series(
    f: Callable,
    nargs: int,
    order: int,
    name: str = "x",
    variables: Optional[Sequence[sp.Symbol]] = None,
    base_point: Optional[Sequence[sp.Symbol]] = None,
) -> sp.Expr:
    """
    Symbolic Taylor series of ``f`` about ``x0`` up to ``order``.

    Starting from f(x0), each level k differentiates every term of the
    previous level with respect to each x0_i and adds

        d^k f / (dx0_i1 ... dx0_ik) * (x_i1 - x0_i1) ... (x_ik - x0_ik) / k!

    Summing over all ordered index tuples gives the multivariate series.
    For a single argument this reduces to f^(k)(x0) (x - x0)^k / k!.

    Parameters
    ----------
    f : callable
        Function of ``nargs`` symbolic arguments (e.g. ``sp.sin``)
    nargs : int
        Number of arguments of ``f``
    order : int
        Highest derivative order kept (0 returns f(x0))
    name : str
        Variable prefix used when ``variables``/``base_point`` are omitted
    variables, base_point : sequence of sp.Symbol, optional
        Explicit expansion and base-point symbols

    Returns
    -------
    sp.Expr
        Series in ``variables`` and ``base_point``

    Examples
    --------
    >>> x, x0 = taylor_variables(1)
    >>> series = taylor_series(lambda a: a**2, 1, 2)
    >>> sp.expand(series)
    x_1**2
    """
    if order < 0:
        raise ValueError(f"order must be non-negative, got {order}")

    if variables is None or base_point is None:
        variables, base_point = taylor_variables(nargs, name)
    if len(variables) != nargs or len(base_point) != nargs:
        raise ValueError(
            f"Expected {nargs} expansion variables, got "
            f"{len(variables)} variables and {len(base_point)} base-point symbols"
        )

    f0 = sp.sympify(f(*base_point))

    series = f0
    # Each entry: (partial derivative at x0, product of displacements)
    previous = [(f0, sp.S.One)]
    for k in range(1, order + 1):
        current = []
        for derivative, displacement in previous:
            for i in range(nargs):
                ddx = sp.diff(derivative, base_point[i])
                if ddx == 0:
                    continue
                dx = displacement * (variables[i] - base_point[i])
                current.append((ddx, dx))
                series += ddx / sp.factorial(k) * dx
        previous = current

    return series


def _quotient(numer, denom):
    return numer / denom


def _expand_call(
    op: Callable,
    args: Sequence[sp.Expr],
    variables: Tuple[sp.Basic, ...],
    base_point: Tuple[sp.Basic, ...],
    order: int,
) -> sp.Expr:
    """Replace ``op(*args)`` by its Taylor series with expanded arguments."""
    nargs = len(args)
    dummies, dummies0 = taylor_variables(nargs, name="_x", dummy=True)
    approx = taylor_series(op, nargs, order, variables=dummies, base_point=dummies0)

    at_base_point = dict(zip(variables, base_point))
    substitutions = {}
    for i, arg in enumerate(args):
        substitutions[dummies[i]] = taylor_expand(arg, variables, base_point, order)
        substitutions[dummies0[i]] = sp.sympify(arg).subs(at_base_point, simultaneous=True)

    return approx.subs(substitutions, simultaneous=True)


def taylor_expand(
    expr,
    variables: Sequence[sp.Basic],
    base_point: Sequence[sp.Basic],
    order: int,
) -> sp.Expr:
    """
    Taylor-approximate every nonlinear call inside ``expr``.

    Walks the expression tree:
    - constants and variables pass through unchanged
    - sums and products expand each operand and recombine
    - numeric powers expand the base and reapply the exponent
    - quotients are expanded as the binary function (a, b) → a/b
    - other calls (sin, exp, symbolic powers, undefined functions) are
      replaced by their series about the call's arguments evaluated at
      ``base_point``, with each argument itself expanded

    Parameters
    ----------
    expr : sp.Expr
        Expression to approximate
    variables : sequence of sp.Symbol
        Expansion variables (e.g. the state)
    base_point : sequence of sp.Symbol
        Base-point symbols paired with ``variables``
    order : int
        Expansion order

    Returns
    -------
    sp.Expr
        Approximated expression

    Examples
    --------
    >>> x, x0 = sp.symbols('x x0')
    >>> taylor_expand(sp.sin(x), [x], [x0], 1)
    (x - x0)*cos(x0) + sin(x0)
    """
    expr = sp.sympify(expr)
    variables = tuple(variables)
    base_point = tuple(base_point)
    if len(variables) != len(base_point):
        raise ValueError("variables and base_point must have the same length")

    kind = classify(expr)

    if kind in (ExpressionKind.CONSTANT, ExpressionKind.VARIABLE):
        return expr

    if kind is ExpressionKind.SUM:
        return sp.Add(*[taylor_expand(arg, variables, base_point, order) for arg in expr.args])

    if kind is ExpressionKind.PRODUCT:
        return sp.Mul(*[taylor_expand(arg, variables, base_point, order) for arg in expr.args])

    if kind is ExpressionKind.POWER:
        return taylor_expand(expr.base, variables, base_point, order) ** expr.exp

    if kind is ExpressionKind.QUOTIENT:
        numer, denom = split_quotient(expr)
        return _expand_call(_quotient, (numer, denom), variables, base_point, order)

    if kind is ExpressionKind.FUNCTION:
        if expr in variables:
            return expr
        return _expand_call(expr.func, expr.args, variables, base_point, order)

    raise ValueError(f"Unhandled expression kind {kind}")
