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
Backend Types

Defines the numerical backends that generated bilinear programs can be
evaluated on, together with defaults and validation helpers.

Backends
--------
- numpy: Reference implementation. Sparse containers (scipy CSC) are
  NumPy-only, so in-place matrix updates always run on NumPy.
- torch: Differentiable evaluation of coefficient programs.
- jax: Functional evaluation (returns new arrays, never mutates).

Usage
-----
>>> from bilinsym.types.backends import Backend, validate_backend
>>>
>>> backend: Backend = validate_backend("numpy")
"""

from typing import Literal

import numpy as np

# ============================================================================
# Backend Types
# ============================================================================

Backend = Literal["numpy", "torch", "jax"]
"""
Numerical backend used to evaluate generated expression programs.

Examples
--------
>>> backend: Backend = "numpy"
>>> values = program(x0, backend=backend)
"""

# ============================================================================
# Constants - Valid Values
# ============================================================================

VALID_BACKENDS = ("numpy", "torch", "jax")
"""
Tuple of valid backend names.

Use for validation:
>>> if backend not in VALID_BACKENDS:
...     raise ValueError(f"Invalid backend: {backend}")
"""

DEFAULT_BACKEND: Backend = "numpy"
"""
Default backend if not specified.

NumPy is default because scipy sparse containers (the runtime
representation of A, B, C, D) are NumPy arrays.
"""

DEFAULT_DTYPE = np.float64
"""
Default numerical precision for generated buffers.

Examples
--------
>>> values = np.zeros(nnz, dtype=DEFAULT_DTYPE)
"""

# ============================================================================
# Validation
# ============================================================================


def validate_backend(backend: str) -> Backend:
    """
    Validate and normalize backend string.

    Parameters
    ----------
    backend : str
        Backend name to validate

    Returns
    -------
    Backend
        Validated backend (typed)

    Raises
    ------
    ValueError
        If backend is not valid

    Examples
    --------
    >>> validate_backend('numpy')
    'numpy'
    >>> validate_backend('pytorch')  # ValueError
    """
    if backend not in VALID_BACKENDS:
        raise ValueError(f"Invalid backend '{backend}'. " f"Choose from: {VALID_BACKENDS}")
    return backend


__all__ = [
    "Backend",
    "VALID_BACKENDS",
    "DEFAULT_BACKEND",
    "DEFAULT_DTYPE",
    "validate_backend",
]
