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
Numeric code generation for symbolic bilinear models.
"""

from .bilinear_codegen import (
    BilinearCodeGenerator,
    build_bilinear_dynamics_functions,
    build_bilinear_sparsity_functions,
    build_expanded_vector_function,
    compile_coefficient_program,
    empty_csc,
)
from .expression_program import (
    SUPPORTED_FUNCTIONS,
    ExpressionProgram,
    Instruction,
    compile_expressions,
)

__all__ = [
    "BilinearCodeGenerator",
    "build_expanded_vector_function",
    "build_bilinear_dynamics_functions",
    "build_bilinear_sparsity_functions",
    "compile_coefficient_program",
    "empty_csc",
    "ExpressionProgram",
    "Instruction",
    "compile_expressions",
    "SUPPORTED_FUNCTIONS",
]
