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
Discrete Bilinear Models

Numeric discrete-time bilinear models in a lifted state y:

    y[k+1] = A y[k] + B u[k] + Σ u_i[k] C_i y[k] + D

together with the maps between the original state x and the lifted state
(``expand``: x → y, ``g``: y → x).

``BilinearModel.from_symbolic`` turns a ``SymbolicBilinearDynamics`` into
such a model by evaluating the coefficients at an operating point and
applying an explicit Euler step. ``ProjectedBilinearModel`` exposes the
same model on the original state.
"""

import math
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from scipy import sparse

from bilinsym.codegen.bilinear_codegen import BilinearCodeGenerator
from bilinsym.symbolic.bilinearize import SymbolicBilinearDynamics
from bilinsym.symbolic.sparse_matrix import DimensionMismatchError
from bilinsym.types.backends import DEFAULT_DTYPE
from bilinsym.types.symbolic import ConstantDict

TIMESTEP_RTOL = math.sqrt(np.finfo(np.float64).eps)
"""Relative tolerance of the timestep check."""

# ============================================================================
# Exceptions
# ============================================================================


class TimestepMismatchError(ValueError):
    """Raised when a model is stepped with a timestep other than its own"""

    pass


# ============================================================================
# Helpers
# ============================================================================


def _dense(M) -> np.ndarray:
    if sparse.issparse(M):
        return M.toarray()
    return np.asarray(M, dtype=DEFAULT_DTYPE)


def _identity(x):
    return x


# ============================================================================
# Bilinear Model
# ============================================================================


class BilinearModel:
    """
    Discrete-time bilinear model with a fixed timestep.

    Matrices may be dense arrays or scipy sparse matrices.

    Attributes
    ----------
    A : (p, n) matrix
    B : (p, m) matrix
    C : list of m (p, n) matrices
    D : np.ndarray or None
        Affine term of length p
    g : (n0, p) matrix or None
        Lifted → original state map (identity when None)
    expand : callable or None
        Original → lifted state map (identity when None)
    dt : float
        Timestep the model was built for
    name : str

    Examples
    --------
    >>> model = BilinearModel(A, B, [C1], dt=0.1)
    >>> y_next = model.discrete_dynamics(y, u, 0.0, 0.1)
    >>> model.discrete_dynamics(y, u, 0.0, 0.2)
    Traceback (most recent call last):
    ...
    TimestepMismatchError: Timestep must be 0.1, got 0.2
    """

    def __init__(
        self,
        A,
        B,
        C: Sequence,
        dt: float,
        g=None,
        expand: Optional[Callable] = None,
        name: str = "bilinear",
        D=None,
    ):
        p, n = A.shape
        m = len(C)

        if B.shape[0] != p:
            raise DimensionMismatchError("B should have the same number of rows as A.")
        if B.shape[1] == 0:
            B = np.zeros((p, m))
        if any(Ci.shape != (p, n) for Ci in C):
            raise DimensionMismatchError("All C matrices should be the same size as A.")
        if D is not None:
            D = _dense(D).reshape(-1)
            if D.shape != (p,):
                raise DimensionMismatchError(f"D should have length {p}, got {D.shape[0]}")

        self.A = A
        self.B = B
        self.C = list(C)
        self.D = D
        self.g = g
        self.expand = expand
        self.dt = float(dt)
        self.name = name

    # ========================================================================
    # Dimensions
    # ========================================================================

    @property
    def state_dim(self) -> int:
        return self.A.shape[1]

    @property
    def output_dim(self) -> int:
        return self.A.shape[0]

    @property
    def control_dim(self) -> int:
        return self.B.shape[1]

    @property
    def original_state_dim(self) -> int:
        if self.g is None:
            return self.state_dim
        return self.g.shape[0]

    @property
    def dims(self):
        """(state dimension, control dimension)"""
        return self.state_dim, self.control_dim

    # ========================================================================
    # Dynamics
    # ========================================================================

    def _check_timestep(self, h: float):
        if not math.isclose(h, self.dt, rel_tol=TIMESTEP_RTOL):
            raise TimestepMismatchError(f"Timestep must be {self.dt}, got {h}")

    def discrete_dynamics(self, y, u, t: float, h: float, out: Optional[np.ndarray] = None):
        """
        Next lifted state.

        Parameters
        ----------
        y : array-like
            Lifted state (length n)
        u : array-like
            Control (length m)
        t : float
            Time (unused; the model is time-invariant)
        h : float
            Timestep; must match ``dt``
        out : np.ndarray, optional
            Buffer of length p to write the result into

        Returns
        -------
        np.ndarray
        """
        self._check_timestep(h)
        y = np.asarray(y, dtype=DEFAULT_DTYPE)
        u = np.asarray(u, dtype=DEFAULT_DTYPE)

        yn = self.A @ y + self.B @ u
        for ui, Ci in zip(u, self.C):
            yn = yn + ui * (Ci @ y)
        if self.D is not None:
            yn = yn + self.D
        yn = np.asarray(yn).reshape(-1)

        if out is None:
            return yn
        out[:] = yn
        return out

    def jacobian(self, y, u, t: float, h: float) -> np.ndarray:
        """
        Jacobian [∂y⁺/∂y, ∂y⁺/∂u] of shape (p, n + m).

        ∂y⁺/∂y = A + Σ u_i C_i,  ∂y⁺/∂u_i = B[:, i] + C_i y
        """
        self._check_timestep(h)
        y = np.asarray(y, dtype=DEFAULT_DTYPE)
        u = np.asarray(u, dtype=DEFAULT_DTYPE)
        n, m = self.dims

        J = np.zeros((self.output_dim, n + m))
        J[:, :n] = _dense(self.A)
        J[:, n:] = _dense(self.B)
        for i, Ci in enumerate(self.C):
            J[:, :n] += u[i] * _dense(Ci)
            J[:, n + i] += np.asarray(Ci @ y).reshape(-1)
        return J

    def expand_state(self, x) -> np.ndarray:
        """Original → lifted state"""
        return (self.expand or _identity)(x)

    def original_state(self, y) -> np.ndarray:
        """Lifted → original state"""
        if self.g is None:
            return y
        return np.asarray(self.g @ y).reshape(-1)

    def original_dynamics(self, x, u, t: float, h: float) -> np.ndarray:
        """Next original state: expand, step, project"""
        self._check_timestep(h)
        y = self.expand_state(x)
        return self.original_state(self.discrete_dynamics(y, u, t, h))

    # ========================================================================
    # Copying and Serialization
    # ========================================================================

    def copy(self) -> "BilinearModel":
        """Copy with independent matrices (maps are shared)."""
        return BilinearModel(
            self.A.copy(),
            self.B.copy(),
            [Ci.copy() for Ci in self.C],
            self.dt,
            g=None if self.g is None else self.g.copy(),
            expand=self.expand,
            name=self.name,
            D=None if self.D is None else self.D.copy(),
        )

    def get_model_data(self) -> Dict:
        return {
            "A": self.A,
            "B": self.B,
            "C": self.C,
            "D": self.D,
            "g": self.g,
            "expand": self.expand,
            "dt": self.dt,
            "name": self.name,
        }

    @classmethod
    def from_model_data(cls, data: Dict) -> "BilinearModel":
        return cls(
            data["A"],
            data["B"],
            data["C"],
            data["dt"],
            g=data.get("g"),
            expand=data.get("expand"),
            name=data.get("name", "bilinear"),
            D=data.get("D"),
        )

    # ========================================================================
    # Construction from Symbolic Models
    # ========================================================================

    @classmethod
    def from_symbolic(
        cls,
        sbd: SymbolicBilinearDynamics,
        x0,
        dt: float,
        constant_values: Optional[ConstantDict] = None,
        name: str = "bilinear",
    ) -> "BilinearModel":
        """
        Explicit-Euler discretization of a symbolic bilinear model at ``x0``.

        A_d = I + dt A,  B_d = dt B,  C_d = dt C_i,  D_d = dt D

        Parameters
        ----------
        sbd : SymbolicBilinearDynamics
        x0 : array-like
            Operating point (length n0)
        dt : float
            Timestep
        constant_values : dict, optional
            Numeric values of declared constants

        Examples
        --------
        >>> model = BilinearModel.from_symbolic(sbd, np.zeros(2), dt=0.01)
        >>> x_next = model.original_dynamics(np.array([0.1, 0.0]), [0.0], 0.0, 0.01)
        """
        code_gen = BilinearCodeGenerator(sbd, constant_values)
        A, B, C, D = code_gen.linearize(x0)

        identity = sparse.identity(sbd.n, dtype=DEFAULT_DTYPE, format="csc")
        A_d = (identity + dt * A).tocsc()
        B_d = (dt * B).tocsc()
        C_d: List[sparse.csc_matrix] = [(dt * Ci).tocsc() for Ci in C]
        D_d = dt * D.toarray().reshape(-1)

        g = sparse.eye(sbd.n0, sbd.n, dtype=DEFAULT_DTYPE, format="csc")
        return cls(A_d, B_d, C_d, dt, g=g, expand=code_gen.generate_expand(), name=name, D=D_d)

    def __repr__(self) -> str:
        return (
            f"BilinearModel(name='{self.name}', n={self.state_dim}, m={self.control_dim}, "
            f"dt={self.dt})"
        )


# ============================================================================
# Projected Model
# ============================================================================


class ProjectedBilinearModel:
    """
    Bilinear model viewed on the original state.

    Each step expands x, advances the lifted state and projects back.
    """

    def __init__(self, model: BilinearModel):
        self.model = model

    @property
    def state_dim(self) -> int:
        return self.model.original_state_dim

    @property
    def control_dim(self) -> int:
        return self.model.control_dim

    @property
    def dt(self) -> float:
        return self.model.dt

    def discrete_dynamics(self, x, u, t: float, h: float, out: Optional[np.ndarray] = None):
        y = self.model.expand_state(x)
        xn = self.model.original_state(self.model.discrete_dynamics(y, u, t, h))
        if out is None:
            return xn
        out[:] = xn
        return out

    def __repr__(self) -> str:
        return f"ProjectedBilinearModel({self.model!r})"
