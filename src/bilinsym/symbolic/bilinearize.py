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
Symbolic Bilinearization

Derives a bilinear approximation of nonlinear dynamics dx/dt = f(x, u):

    dy/dt ≈ A y + B u + Σ u_i C_i y + D

where y is the lifted monomial state. Pipeline:

1. Validate inputs (fails fast on a compound independent variable)
2. Taylor-approximate f about a symbolic linearization point x0
3. Lift the state to monomials up to the expansion order
4. Differentiate the lifted state in time and substitute the approximation
5. Extract A, B, C_i, D as symbolic sparse matrices

Every stored coefficient depends only on x0 and on declared constants,
so numeric matrices at any operating point are obtained by evaluating the
coefficients, never by re-deriving.
"""

import warnings
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import sympy as sp

from bilinsym.symbolic.coefficients import get_A_sym, get_B_sym, get_C_sym, get_D_sym
from bilinsym.symbolic.expression_utils import UnsupportedExpressionError, degree
from bilinsym.symbolic.sparse_matrix import DimensionMismatchError, SymbolicSparseMatrix
from bilinsym.symbolic.state_lifting import build_state_vector
from bilinsym.symbolic.taylor import taylor_expand
from bilinsym.symbolic.validator import BilinearizationValidator, ValidationError
from bilinsym.types.bilinear import SparsityInfo
from bilinsym.types.symbolic import DynamicsCallable, SymbolicExpression

# ============================================================================
# Symbolic Bilinear Dynamics
# ============================================================================


@dataclass(frozen=True)
class SymbolicBilinearDynamics:
    """
    Result of a bilinearization: symbolic sparse A, B, C, D plus metadata.

    Read-only after construction; safe to share between consumers.

    Attributes
    ----------
    n0 : int
        Original state dimension
    n : int
        Lifted state dimension
    m : int
        Control dimension
    A : SymbolicSparseMatrix
        (n, n) state matrix
    B : SymbolicSparseMatrix
        (n, m) input matrix
    C : Tuple[SymbolicSparseMatrix, ...]
        m bilinear (n, n) matrices
    D : SymbolicSparseMatrix
        (n, 1) affine term
    dynamics : callable
        Original dynamics f(states, controls)
    states, controls : tuple of sp.Symbol
        Original state and control symbols
    states0 : tuple of sp.Symbol
        Linearization-point symbols (fresh per derivation)
    constants : tuple of sp.Symbol
        Symbols held fixed in the coefficients
    expanded_states : tuple of sp.Expr
        Lifted state vector; its first n0 entries are ``states``
    """

    n0: int
    n: int
    m: int
    A: SymbolicSparseMatrix
    B: SymbolicSparseMatrix
    C: Tuple[SymbolicSparseMatrix, ...]
    D: SymbolicSparseMatrix
    dynamics: DynamicsCallable
    states: Tuple[sp.Symbol, ...]
    controls: Tuple[sp.Symbol, ...]
    states0: Tuple[sp.Symbol, ...]
    constants: Tuple[sp.Symbol, ...]
    expanded_states: Tuple[sp.Expr, ...]

    @property
    def dims(self) -> Tuple[int, int]:
        """(lifted state dimension, control dimension)"""
        return self.n, self.m

    @property
    def nnz(self) -> Dict[str, int]:
        """Stored entries per matrix (C summed over controls)"""
        return {
            "A": self.A.nnz,
            "B": self.B.nnz,
            "C": sum(Ci.nnz for Ci in self.C),
            "D": self.D.nnz,
        }

    def sparsity_info(self) -> SparsityInfo:
        return SparsityInfo(n0=self.n0, n=self.n, m=self.m, nnz=self.nnz)

    def to_dense(self) -> Tuple[sp.Matrix, sp.Matrix, List[sp.Matrix], sp.Matrix]:
        """Dense symbolic (A, B, [C_i], D)"""
        return (
            self.A.to_dense(),
            self.B.to_dense(),
            [Ci.to_dense() for Ci in self.C],
            self.D.to_dense(),
        )

    def __repr__(self) -> str:
        return (
            f"SymbolicBilinearDynamics(n0={self.n0}, n={self.n}, m={self.m}, "
            f"nnz={self.nnz})"
        )


# ============================================================================
# Derivation
# ============================================================================


def _as_expression_list(xdot) -> List[sp.Expr]:
    # Column matrices iterate element-wise like plain sequences
    return [sp.sympify(e) for e in xdot]


def lifted_time_derivative(
    y: Sequence[SymbolicExpression],
    states: Sequence[sp.Symbol],
    state_rates: Sequence[SymbolicExpression],
    t: sp.Symbol,
) -> List[SymbolicExpression]:
    """
    Time derivative of each lifted-state entry along the given state rates.

    Each state is temporarily made a function of ``t``, the lifted entry
    is differentiated in time, and dx_i/dt is replaced by ``state_rates[i]``.

    Examples
    --------
    >>> x, v, t = sp.symbols('x v t')
    >>> lifted_time_derivative([x, x**2], [x], [v], t)
    [v, 2*v*x]
    """
    trajectories = {s: sp.Function(s.name)(t) for s in states}
    rates = {sp.Derivative(trajectories[s], t): rate for s, rate in zip(states, state_rates)}
    back = {trajectory: s for s, trajectory in trajectories.items()}

    ydot = []
    for term in y:
        derivative = sp.diff(sp.sympify(term).xreplace(trajectories), t)
        ydot.append(derivative.xreplace(rates).xreplace(back))
    return ydot


def bilinearize_dynamics(
    dynamics: DynamicsCallable,
    states: Sequence[sp.Symbol],
    controls: Sequence[sp.Symbol],
    t: sp.Symbol,
    order: int,
    constants: Sequence[sp.Symbol] = (),
    validate: bool = True,
) -> SymbolicBilinearDynamics:
    """
    Derive the symbolic bilinear approximation of ``dynamics``.

    Parameters
    ----------
    dynamics : callable
        f(states, controls) → sequence (or column Matrix) of state derivatives
    states : sequence of sp.Symbol
        Original state symbols
    controls : sequence of sp.Symbol
        Control symbols (may be empty)
    t : sp.Symbol
        Independent (time) variable; must be a plain Symbol
    order : int
        Taylor order and maximum lifted monomial degree (>= 1)
    constants : sequence of sp.Symbol
        Symbols held fixed (left symbolic in the coefficients)
    validate : bool
        Run the full input validation (the independent-variable check is
        always performed)

    Returns
    -------
    SymbolicBilinearDynamics

    Raises
    ------
    ValidationError
        If inputs are invalid (e.g. ``t`` is a compound expression)
    DimensionMismatchError
        If ``dynamics`` returns a vector whose length differs from ``states``
    UnsupportedExpressionError
        If the approximation is not polynomial in the states (fractional
        powers)

    Examples
    --------
    >>> x, v, u, t = sp.symbols('x v u t')
    >>> pendulum = lambda s, c: [s[1], -sp.sin(s[0]) + c[0]]
    >>> sbd = bilinearize_dynamics(pendulum, [x, v], [u], t, order=2)
    >>> sbd.n, sbd.m
    (5, 1)
    """
    if validate:
        BilinearizationValidator(dynamics, states, controls, t, order, constants).validate(
            raise_on_error=True
        )
    elif not isinstance(t, sp.Symbol):
        raise ValidationError(f"Independent variable must be independent, got {t}")

    states = list(states)
    controls = list(controls)
    constants = list(constants)
    n0 = len(states)
    m = len(controls)

    statederivative = _as_expression_list(dynamics(states, controls))
    if len(statederivative) != n0:
        raise DimensionMismatchError(
            f"dynamics returned {len(statederivative)} derivatives for {n0} states"
        )

    # Fresh per derivation so concurrent derivations never share symbols
    states0 = [sp.Dummy(f"_x0_{i}") for i in range(1, n0 + 1)]

    approx_dynamics = []
    for i, xdot in enumerate(statederivative):
        approx = taylor_expand(xdot, states, states0, order)
        try:
            degree(sp.expand(approx), states)
        except UnsupportedExpressionError as err:
            raise UnsupportedExpressionError(
                f"Taylor approximation of component {i} ({xdot}) is not polynomial "
                f"in the states: {err}"
            ) from err
        approx_dynamics.append(approx)

    y = build_state_vector(states, order)
    n = len(y)

    ydot_approx = lifted_time_derivative(y, states, approx_dynamics, t)

    Asym = get_A_sym(ydot_approx, y, controls)
    Bsym = get_B_sym(ydot_approx, y, controls)
    Csym = get_C_sym(ydot_approx, y, controls)
    Dsym = get_D_sym(ydot_approx, y, controls)

    sbd = SymbolicBilinearDynamics(
        n0=n0,
        n=n,
        m=m,
        A=Asym,
        B=Bsym,
        C=tuple(Csym),
        D=Dsym,
        dynamics=dynamics,
        states=tuple(states),
        controls=tuple(controls),
        states0=tuple(states0),
        constants=tuple(constants),
        expanded_states=tuple(y),
    )
    _check_coefficient_symbols(sbd)
    return sbd


def _check_coefficient_symbols(sbd: SymbolicBilinearDynamics):
    """Warn when coefficients depend on symbols that were never declared."""
    allowed = set(sbd.states0) | set(sbd.constants)
    used = set()
    for matrix in (sbd.A, sbd.B, sbd.D) + sbd.C:
        used |= matrix.free_symbols
    undeclared = used - allowed
    if undeclared:
        warnings.warn(
            f"Bilinear coefficients depend on undeclared symbols "
            f"{sorted(str(s) for s in undeclared)}; declare them as constants "
            f"to evaluate the generated functions",
            UserWarning,
        )
