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
Bilinear Types

Configuration and report records for bilinearization and code generation.

Usage
-----
>>> from bilinsym.types.bilinear import BilinearizationConfig
>>>
>>> config: BilinearizationConfig = {"order": 2, "validate": True}
>>> sbd = bilinearize_dynamics(f, x, u, t, **config)
"""

from typing import Dict, Optional, Tuple, TypedDict

import numpy as np

# ============================================================================
# Numeric Containers
# ============================================================================

SparsityPattern = Tuple[np.ndarray, np.ndarray]
"""
Fixed CSC structure: (column pointers, row indices), both 0-based.

Fixed at derivation time; generated update functions only overwrite values.
"""

# ============================================================================
# Configuration
# ============================================================================


class BilinearizationConfig(TypedDict, total=False):
    """
    Options accepted by ``bilinearize_dynamics``.

    Attributes
    ----------
    order : int
        Taylor expansion order and maximum lifted monomial degree (>= 1)
    constants : tuple
        Symbols held fixed (kept symbolic in the coefficients)
    validate : bool
        Run ``BilinearizationValidator`` before deriving (default True)

    Examples
    --------
    >>> config: BilinearizationConfig = {
    ...     'order': 3,
    ...     'constants': (m, g),
    ... }
    """

    order: int
    constants: tuple
    validate: bool


# ============================================================================
# Reports
# ============================================================================


class CompilationTimings(TypedDict, total=False):
    """
    Wall-clock generation time (seconds) per generated function family.

    A value of None marks a family that failed to generate.
    """

    expand: Optional[float]
    update: Optional[float]
    sparsity: Optional[float]
    programs: Optional[float]


class SparsityInfo(TypedDict):
    """
    Summary of a symbolic bilinear model's sparsity.

    Examples
    --------
    >>> info = sbd.sparsity_info()
    >>> info['nnz']['A']
    7
    """

    n0: int
    n: int
    m: int
    nnz: Dict[str, int]


__all__ = [
    "SparsityPattern",
    "BilinearizationConfig",
    "CompilationTimings",
    "SparsityInfo",
]
