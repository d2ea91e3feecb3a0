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
Expression Utilities

Structural inspection helpers shared by the Taylor engine, state lifting
and coefficient extraction:

- classify: maps a SymPy node onto a closed set of expression kinds
- degree: total polynomial degree with respect to designated variables
- get_constant: part of an expression constant w.r.t. a variable set
- get_differential: joint differential operator for a lifted-state term

Every structural operation in the pipeline dispatches through
``classify`` so that the set of supported node kinds is defined in one
place. Unsupported nodes raise ``UnsupportedExpressionError``.
"""

from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

import sympy as sp

# ============================================================================
# Exceptions
# ============================================================================


class UnsupportedExpressionError(ValueError):
    """Raised when an expression cannot be assigned a polynomial structure"""

    pass


# ============================================================================
# Expression Kinds
# ============================================================================


class ExpressionKind(Enum):
    """Closed set of expression node kinds handled by the pipeline."""

    CONSTANT = "constant"
    VARIABLE = "variable"
    SUM = "sum"
    PRODUCT = "product"
    POWER = "power"
    QUOTIENT = "quotient"
    FUNCTION = "function"


def split_quotient(expr: sp.Expr) -> Tuple[sp.Expr, sp.Expr]:
    """
    Split a product into numerator and denominator.

    A factor goes to the denominator when it is a power with a negative
    numeric exponent and a non-numeric base. Numeric factors always stay
    in the numerator.

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> split_quotient(3*x/y**2)
    (3*x, y**2)
    >>> split_quotient(x/2)
    (x/2, 1)
    """
    numer = []
    denom = []
    for factor in sp.Mul.make_args(expr):
        if (
            factor.is_Pow
            and factor.exp.is_number
            and factor.exp.is_negative
            and not factor.base.is_number
        ):
            denom.append(factor.base ** (-factor.exp))
        else:
            numer.append(factor)
    return sp.Mul(*numer), sp.Mul(*denom)


def classify(expr) -> ExpressionKind:
    """
    Classify a SymPy expression node.

    Parameters
    ----------
    expr : sp.Basic or number
        Expression to classify

    Returns
    -------
    ExpressionKind
        Kind of the outermost node

    Raises
    ------
    UnsupportedExpressionError
        If the node is not one of the supported kinds (relations,
        booleans, matrices, ...)

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> classify(x + y)
    <ExpressionKind.SUM: 'sum'>
    >>> classify(x / y)
    <ExpressionKind.QUOTIENT: 'quotient'>
    >>> classify(sp.sin(x))
    <ExpressionKind.FUNCTION: 'function'>
    """
    expr = sp.sympify(expr)

    if isinstance(expr, (sp.Symbol, sp.Indexed)):
        return ExpressionKind.VARIABLE
    if isinstance(expr, sp.Expr) and expr.is_number:
        return ExpressionKind.CONSTANT
    if expr.is_Add:
        return ExpressionKind.SUM
    if expr.is_Mul:
        _, denom = split_quotient(expr)
        if denom != 1:
            return ExpressionKind.QUOTIENT
        return ExpressionKind.PRODUCT
    if expr.is_Pow:
        if not expr.exp.is_number:
            # Symbolic exponent: treated as the binary function Pow(base, exp)
            return ExpressionKind.FUNCTION
        if expr.exp.is_negative and not expr.base.is_number:
            return ExpressionKind.QUOTIENT
        return ExpressionKind.POWER
    if isinstance(expr, sp.Function):
        return ExpressionKind.FUNCTION

    raise UnsupportedExpressionError(
        f"Unsupported expression node {type(expr).__name__}: {expr}"
    )


# ============================================================================
# Degree Inspection
# ============================================================================


def _contains_any(expr: sp.Basic, variables: Sequence[sp.Basic]) -> bool:
    return bool(variables) and expr.has(*variables)


def degree(expr, variables: Optional[Sequence[sp.Basic]] = None) -> int:
    """
    Total polynomial degree of an expression.

    When ``variables`` is None every bare symbol counts as degree 1.
    Otherwise only the given variables count and all other symbols are
    treated as constants.

    Rules
    -----
    - numeric constant → 0
    - bare variable → 1
    - product → sum of operand degrees
    - sum → maximum of operand degrees (mixed-degree sums are allowed)
    - power → base degree × exponent (non-negative integer exponents only)
    - quotient → numerator degree (denominator must be constant)
    - function application → 1 if it depends on the variables, else 0

    Parameters
    ----------
    expr : sp.Expr or number
        Expression to inspect
    variables : sequence of sp.Symbol, optional
        Designated variables

    Returns
    -------
    int
        Non-negative total degree

    Raises
    ------
    UnsupportedExpressionError
        If a variable appears under a non-integer or negative power, or in
        a denominator

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> degree(x**2 * y)
    3
    >>> degree(x**3 + y)
    3
    >>> degree(5)
    0
    >>> degree(sp.sqrt(x))  # UnsupportedExpressionError
    """
    expr = sp.sympify(expr)
    if variables is not None:
        variables = tuple(variables)
    kind = classify(expr)

    if kind is ExpressionKind.CONSTANT:
        return 0

    if kind is ExpressionKind.VARIABLE:
        if variables is None or expr in variables:
            return 1
        return 0

    if kind is ExpressionKind.SUM:
        return max(degree(arg, variables) for arg in expr.args)

    if kind is ExpressionKind.PRODUCT:
        return sum(degree(arg, variables) for arg in expr.args)

    if kind is ExpressionKind.POWER:
        base_degree = degree(expr.base, variables)
        if base_degree == 0:
            return 0
        if not expr.exp.is_Integer or expr.exp < 0:
            raise UnsupportedExpressionError(
                f"Expression has a non-integer power: {expr}"
            )
        return base_degree * int(expr.exp)

    if kind is ExpressionKind.QUOTIENT:
        numer, denom = split_quotient(expr)
        if degree(denom, variables) != 0:
            raise UnsupportedExpressionError(
                f"Expression has a variable in the denominator: {expr}"
            )
        return degree(numer, variables)

    if kind is ExpressionKind.FUNCTION:
        if variables is None or _contains_any(expr, variables):
            return 1
        return 0

    raise UnsupportedExpressionError(f"Unhandled expression kind {kind}")


# ============================================================================
# Constant Extraction
# ============================================================================


def has_var(expr, var) -> bool:
    """Check whether ``var`` appears anywhere inside ``expr``."""
    return sp.sympify(expr).has(var)


def get_constant(expr, variables: Sequence[sp.Basic]) -> sp.Expr:
    """
    Return the part of ``expr`` that is constant with respect to ``variables``.

    The result may still contain other symbols. For a sum, terms that
    contain any of ``variables`` are dropped; any other expression is kept
    whole or replaced by zero.

    Examples
    --------
    >>> x, y, a = sp.symbols('x y a')
    >>> get_constant(a*x + 2*a + 3, [x])
    2*a + 3
    >>> get_constant(a*x*y, [x])
    0
    """
    expr = sp.sympify(expr)
    variables = tuple(variables)

    if expr.is_Add:
        return sp.Add(*[get_constant(arg, variables) for arg in expr.args])

    if _contains_any(expr, variables):
        return sp.S.Zero
    return expr


# ============================================================================
# Differential Operators
# ============================================================================


def _atom_differential(atom: sp.Expr) -> Callable[[sp.Expr], sp.Expr]:
    """Derivative with respect to ``atom`` treated as an independent symbol."""

    def differential(expr):
        marker = sp.Dummy("_d")
        replaced = sp.sympify(expr).xreplace({atom: marker})
        return sp.diff(replaced, marker).xreplace({marker: atom})

    return differential


def get_differential(term) -> Callable[[sp.Expr], sp.Expr]:
    """
    Differential operator for a lifted-state term.

    For a product of distinct base variables the result is the composition
    of each factor's differential, so applying it extracts the coefficient
    of the joint term. Powers and function applications are differentiated
    as atoms.

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> get_differential(x*y)(x**2 + 2*x*y)
    2
    >>> get_differential(x**2)(x**2 + 2*x*y)
    1
    >>> D = get_differential(x*y**2)
    >>> D(sp.expand(x*(3*y**2 + 4*y) + y*x*(4 - 2*y)))
    1
    """
    term = sp.sympify(term)
    kind = classify(term)

    if kind is ExpressionKind.VARIABLE:
        return lambda expr: sp.diff(expr, term)

    if kind is ExpressionKind.PRODUCT:
        operators = []
        for factor in term.args:
            if classify(factor) is ExpressionKind.CONSTANT:
                raise ValueError(f"Cannot differentiate with respect to constant factor in {term}")
            operators.append(get_differential(factor))

        def composed(expr):
            for operator in reversed(operators):
                expr = operator(expr)
            return expr

        return composed

    if kind in (ExpressionKind.POWER, ExpressionKind.FUNCTION):
        return _atom_differential(term)

    raise ValueError(f"No differential operator for {kind.value} term {term}")
