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
Symbolic Types

Defines the vocabulary used by the bilinearization pipeline:
- Symbolic expressions and symbol lists
- Substitution and constant dictionaries
- The dynamics callable consumed by ``bilinearize_dynamics``

Mathematical Context
-------------------
The pipeline consumes nonlinear dynamics

    dx/dt = f(x, u)

written with SymPy symbols and produces a lifted bilinear system

    dy/dt ≈ A y + B u + Σ u_i C_i y + D

whose coefficient entries are SymPy expressions of the linearization
point x0 and of declared constants.

Design Philosophy
----------------
These are TYPE DEFINITIONS only - no implementation logic.
"""

from typing import Callable, Dict, List, Sequence, Union

import sympy as sp

# ============================================================================
# Basic Symbolic Types
# ============================================================================

SymbolicExpression = sp.Expr
"""
Single symbolic expression.

Examples
--------
>>> x, u = sp.symbols('x u')
>>> expr: SymbolicExpression = x**2 + sp.sin(u)
"""

SymbolList = List[sp.Symbol]
"""
Ordered list of symbols (states, controls, linearization point).

Order matters: index i of the state list corresponds to index i of the
numeric state vector passed to generated functions.
"""

SubstitutionDict = Dict[sp.Basic, sp.Basic]
"""
Mapping from symbolic sub-expressions to replacements.

Examples
--------
>>> x, x0 = sp.symbols('x x0')
>>> subs: SubstitutionDict = {x: x0}
>>> (x**2).subs(subs)
x0**2
"""

ConstantDict = Dict[sp.Symbol, float]
"""
Numeric values for declared constants, substituted before code generation.

Examples
--------
>>> m, g = sp.symbols('m g', positive=True)
>>> constants: ConstantDict = {m: 1.0, g: 9.81}
"""

# ============================================================================
# Dynamics
# ============================================================================

DynamicsCallable = Callable[
    [Sequence[sp.Symbol], Sequence[sp.Symbol]],
    Union[Sequence[sp.Expr], sp.Matrix],
]
"""
Symbolic dynamics evaluator: (states, controls) → state derivative.

Examples
--------
>>> def pendulum(x, u):
...     theta, omega = x
...     return [omega, -sp.sin(theta) + u[0]]
"""


__all__ = [
    "SymbolicExpression",
    "SymbolList",
    "SubstitutionDict",
    "ConstantDict",
    "DynamicsCallable",
]
