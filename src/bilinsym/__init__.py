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
bilinsym
========

Symbolic bilinearization of nonlinear control systems.

Given dynamics dx/dt = f(x, u), derives a bilinear model in a lifted
monomial state y,

    dy/dt ≈ A y + B u + Σ u_i C_i y + D,

whose coefficients are symbolic functions of a linearization point x0,
and generates numeric functions that refresh sparse matrices at any x0.

>>> import sympy as sp
>>> from bilinsym import bilinearize_dynamics, BilinearCodeGenerator
>>>
>>> x, v, u, t = sp.symbols('x v u t')
>>> sbd = bilinearize_dynamics(lambda s, c: [s[1], -sp.sin(s[0]) + c[0]], [x, v], [u], t, 2)
>>> A, B, C, D = BilinearCodeGenerator(sbd).linearize([0.1, 0.0])
"""

__version__ = "0.1.0"

from .codegen import (
    BilinearCodeGenerator,
    build_bilinear_dynamics_functions,
    build_bilinear_sparsity_functions,
    build_expanded_vector_function,
)
from .models import BilinearModel, ProjectedBilinearModel, TimestepMismatchError
from .symbolic import (
    BilinearizationValidator,
    DimensionMismatchError,
    SymbolicBilinearDynamics,
    SymbolicSparseMatrix,
    UnsupportedExpressionError,
    ValidationError,
    bilinearize_dynamics,
    build_state_vector,
    taylor_expand,
    taylor_series,
)

__all__ = [
    "__version__",
    # Derivation
    "bilinearize_dynamics",
    "SymbolicBilinearDynamics",
    "SymbolicSparseMatrix",
    "BilinearizationValidator",
    "build_state_vector",
    "taylor_expand",
    "taylor_series",
    # Code generation
    "BilinearCodeGenerator",
    "build_expanded_vector_function",
    "build_bilinear_dynamics_functions",
    "build_bilinear_sparsity_functions",
    # Models
    "BilinearModel",
    "ProjectedBilinearModel",
    # Exceptions
    "UnsupportedExpressionError",
    "DimensionMismatchError",
    "ValidationError",
    "TimestepMismatchError",
]
