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
Numeric bilinear models and sparse kernels.
"""

from .bilinear_model import BilinearModel, ProjectedBilinearModel, TimestepMismatchError
from .sparse_ops import (
    BilinearCOO,
    ata_csc,
    bilinear_term,
    bilinear_term_coo,
    column_indices,
    continuous_bilinear_dynamics,
    mul_coo,
    mul_csc,
    mult_coo,
    mult_csc,
    to_bilinear_coo,
    to_coo,
)

__all__ = [
    "BilinearModel",
    "ProjectedBilinearModel",
    "TimestepMismatchError",
    "BilinearCOO",
    "column_indices",
    "to_coo",
    "to_bilinear_coo",
    "mul_csc",
    "mul_coo",
    "mult_csc",
    "mult_coo",
    "ata_csc",
    "bilinear_term",
    "bilinear_term_coo",
    "continuous_bilinear_dynamics",
]
