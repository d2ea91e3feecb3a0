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
========================

Symbolic side of the pipeline: expression inspection, Taylor expansion,
state lifting, coefficient extraction and the top-level derivation.

>>> from bilinsym.symbolic import bilinearize_dynamics
>>>
>>> sbd = bilinearize_dynamics(f, states, controls, t, order=2)
>>> sbd.A.to_dense()
"""

from .bilinearize import SymbolicBilinearDynamics, bilinearize_dynamics, lifted_time_derivative
from .coefficients import (
    build_sparse_matrix,
    get_A_sym,
    get_B_sym,
    get_C_sym,
    get_coeffs,
    get_D_sym,
)
from .expression_utils import (
    ExpressionKind,
    UnsupportedExpressionError,
    classify,
    degree,
    get_constant,
    get_differential,
    has_var,
    split_quotient,
)
from .sparse_matrix import DimensionMismatchError, SymbolicSparseMatrix
from .state_lifting import build_state_vector, trilvec
from .taylor import taylor_expand, taylor_series, taylor_variables
from .validator import BilinearizationValidator, ValidationError, ValidationResult

__all__ = [
    # Derivation
    "SymbolicBilinearDynamics",
    "bilinearize_dynamics",
    "lifted_time_derivative",
    # Coefficients
    "get_coeffs",
    "build_sparse_matrix",
    "get_A_sym",
    "get_B_sym",
    "get_C_sym",
    "get_D_sym",
    # Expression utilities
    "ExpressionKind",
    "classify",
    "degree",
    "get_constant",
    "get_differential",
    "has_var",
    "split_quotient",
    # Sparse container
    "SymbolicSparseMatrix",
    # Lifting
    "build_state_vector",
    "trilvec",
    # Taylor
    "taylor_series",
    "taylor_expand",
    "taylor_variables",
    # Validation
    "BilinearizationValidator",
    "ValidationResult",
    # Exceptions
    "UnsupportedExpressionError",
    "DimensionMismatchError",
    "ValidationError",
]
