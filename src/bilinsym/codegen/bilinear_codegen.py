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
Code Generator for SymbolicBilinearDynamics

Turns the symbolic output of ``bilinearize_dynamics`` into numeric
functions:

- expand(x): original state → lifted state
- update_A / update_B / update_C / update_D: overwrite the nonzero values
  of scipy CSC containers at a new linearization point x0
- get_sparse_arrays(): allocate zero-valued CSC containers with the fixed
  sparsity pattern

The sparsity pattern is fixed at derivation time; update functions only
write ``matrix.data``. Generated functions hold no mutable state, so they
can be called concurrently as long as each caller owns its matrices.

``BilinearCodeGenerator`` is the high-level orchestrator that caches the
generated functions for one model.
"""

import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import sympy as sp
from scipy import sparse

from bilinsym.codegen.expression_program import ExpressionProgram, compile_expressions
from bilinsym.symbolic.bilinearize import SymbolicBilinearDynamics
from bilinsym.symbolic.expression_utils import degree
from bilinsym.symbolic.sparse_matrix import DimensionMismatchError, SymbolicSparseMatrix
from bilinsym.types.backends import DEFAULT_BACKEND, DEFAULT_DTYPE, Backend
from bilinsym.types.bilinear import CompilationTimings
from bilinsym.types.symbolic import ConstantDict

UpdateFunctions = Tuple[Callable, Callable, Callable, Callable]

# ============================================================================
# State Expansion
# ============================================================================


def build_expanded_vector_function(
    source: Union[SymbolicBilinearDynamics, Sequence[sp.Expr]],
) -> Callable:
    """
    Generate ``expand(x, out=None)`` mapping an original state to the
    lifted state.

    Parameters
    ----------
    source : SymbolicBilinearDynamics or sequence of sp.Expr
        Model, or a lifted state vector whose degree-1 entries are the
        original states

    Returns
    -------
    callable
        expand(x, out=None) → np.ndarray of lifted length

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> expand = build_expanded_vector_function([x, y, x**2, x*y, y**2])
    >>> expand(np.array([2.0, 3.0]))
    array([2., 3., 4., 6., 9.])
    """
    if isinstance(source, SymbolicBilinearDynamics):
        lifted = list(source.expanded_states)
    else:
        lifted = [sp.sympify(term) for term in source]

    states = [term for term in lifted if degree(term) == 1]
    n0 = len(states)
    x = [sp.Dummy(f"_x_{i}") for i in range(1, n0 + 1)]
    subs = dict(zip(states, x))

    program = compile_expressions([term.xreplace(subs) for term in lifted], x)

    def expand(x, out: Optional[np.ndarray] = None) -> np.ndarray:
        return program(x, out=out)

    return expand


# ============================================================================
# Coefficient Programs
# ============================================================================


def _bind_constants(
    matrix: SymbolicSparseMatrix, constant_values: Optional[ConstantDict]
) -> SymbolicSparseMatrix:
    if not constant_values:
        return matrix
    return matrix.subs(constant_values)


def compile_coefficient_program(
    matrix: SymbolicSparseMatrix,
    states0: Sequence[sp.Symbol],
    constant_values: Optional[ConstantDict] = None,
) -> ExpressionProgram:
    """
    Compile the nonzero values of ``matrix`` as a function of x0.

    Raises
    ------
    ValueError
        If a value depends on a symbol that is neither a linearization-point
        symbol nor a constant with a supplied value
    """
    bound = _bind_constants(matrix, constant_values)
    try:
        return compile_expressions(bound.nzval, states0)
    except ValueError as err:
        raise ValueError(
            f"Cannot generate update function for {matrix}: {err}. "
            f"Supply numeric values for all declared constants."
        ) from err


def _check_storage(matrix, program: ExpressionProgram, name: str):
    if matrix.nnz != len(program):
        raise DimensionMismatchError(
            f"{name} stores {matrix.nnz} entries but the model has {len(program)} nonzeros; "
            f"allocate it with get_sparse_arrays()"
        )


def build_bilinear_dynamics_functions(
    sbd: SymbolicBilinearDynamics,
    constant_values: Optional[ConstantDict] = None,
) -> UpdateFunctions:
    """
    Generate in-place update functions for A, B, C and D.

    Each function takes the CSC container(s) returned by
    ``get_sparse_arrays()`` and a numeric linearization point ``x0``
    (length n0), overwrites the stored values and returns the container(s).

    Parameters
    ----------
    sbd : SymbolicBilinearDynamics
        Symbolic model
    constant_values : dict, optional
        Numeric values of declared constants, bound at generation time

    Returns
    -------
    tuple
        (update_A, update_B, update_C, update_D)

    Examples
    --------
    >>> update_A, update_B, update_C, update_D = build_bilinear_dynamics_functions(sbd)
    >>> A, B, C, D = build_bilinear_sparsity_functions(sbd)()
    >>> update_A(A, x0)
    >>> update_C(C, x0)  # updates every C_i
    """
    states0 = list(sbd.states0)
    A_prog = compile_coefficient_program(sbd.A, states0, constant_values)
    B_prog = compile_coefficient_program(sbd.B, states0, constant_values)
    C_progs = [compile_coefficient_program(Ci, states0, constant_values) for Ci in sbd.C]
    D_prog = compile_coefficient_program(sbd.D, states0, constant_values)

    def update_A(A: sparse.csc_matrix, x0) -> sparse.csc_matrix:
        _check_storage(A, A_prog, "A")
        A_prog(x0, out=A.data)
        return A

    def update_B(B: sparse.csc_matrix, x0) -> sparse.csc_matrix:
        _check_storage(B, B_prog, "B")
        B_prog(x0, out=B.data)
        return B

    def update_C(C: List[sparse.csc_matrix], x0) -> List[sparse.csc_matrix]:
        if len(C) != len(C_progs):
            raise DimensionMismatchError(f"Expected {len(C_progs)} C matrices, got {len(C)}")
        for i, (Ci, program) in enumerate(zip(C, C_progs)):
            _check_storage(Ci, program, f"C[{i}]")
            program(x0, out=Ci.data)
        return C

    def update_D(D: sparse.csc_matrix, x0) -> sparse.csc_matrix:
        _check_storage(D, D_prog, "D")
        D_prog(x0, out=D.data)
        return D

    return update_A, update_B, update_C, update_D


# ============================================================================
# Sparse Structure
# ============================================================================


def empty_csc(matrix: SymbolicSparseMatrix) -> sparse.csc_matrix:
    """Zero-valued CSC matrix with the pattern of ``matrix`` (explicit zeros kept)."""
    colptr, rowval = matrix.pattern()
    data = np.zeros(matrix.nnz, dtype=DEFAULT_DTYPE)
    return sparse.csc_matrix((data, rowval.copy(), colptr.copy()), shape=matrix.shape)


def build_bilinear_sparsity_functions(sbd: SymbolicBilinearDynamics) -> Callable:
    """
    Generate ``get_sparse_arrays()`` allocating (A, B, [C_i], D).

    Every call returns new, independent containers with the model's fixed
    sparsity pattern and zero values.

    Examples
    --------
    >>> get_sparse_arrays = build_bilinear_sparsity_functions(sbd)
    >>> A, B, C, D = get_sparse_arrays()
    >>> A.shape == (sbd.n, sbd.n)
    True
    """
    A_sym, B_sym, C_sym, D_sym = sbd.A, sbd.B, sbd.C, sbd.D

    def get_sparse_arrays():
        A = empty_csc(A_sym)
        B = empty_csc(B_sym)
        C = [empty_csc(Ci) for Ci in C_sym]
        D = empty_csc(D_sym)
        return A, B, C, D

    return get_sparse_arrays


# ============================================================================
# Orchestrator
# ============================================================================


class BilinearCodeGenerator:
    """
    Orchestrates code generation and caching for a symbolic bilinear model.

    Example:
        >>> code_gen = BilinearCodeGenerator(sbd, constant_values={m: 1.0})
        >>>
        >>> expand = code_gen.generate_expand()
        >>> update_A, update_B, update_C, update_D = code_gen.generate_update_functions()
        >>> A, B, C, D = code_gen.linearize(x0)
        >>>
        >>> # Differentiable coefficient values
        >>> values = code_gen.evaluate_coefficients(x0_tensor, backend='torch')
    """

    def __init__(
        self,
        sbd: SymbolicBilinearDynamics,
        constant_values: Optional[ConstantDict] = None,
    ):
        """
        Initialize code generator for a model.

        Args:
            sbd: Symbolic bilinear model to generate code for
            constant_values: Numeric values for the model's declared constants
        """
        self.sbd = sbd
        self.constant_values = dict(constant_values) if constant_values else {}

        self._expand_func: Optional[Callable] = None
        self._update_funcs: Optional[UpdateFunctions] = None
        self._sparsity_func: Optional[Callable] = None
        self._programs: Optional[Dict[str, object]] = None

    # ========================================================================
    # Generation
    # ========================================================================

    def generate_expand(self) -> Callable:
        """Generate (or return cached) expand(x, out=None)."""
        if self._expand_func is None:
            self._expand_func = build_expanded_vector_function(self.sbd)
        return self._expand_func

    def generate_update_functions(self) -> UpdateFunctions:
        """Generate (or return cached) (update_A, update_B, update_C, update_D)."""
        if self._update_funcs is None:
            self._update_funcs = build_bilinear_dynamics_functions(
                self.sbd, self.constant_values
            )
        return self._update_funcs

    def generate_sparsity(self) -> Callable:
        """Generate (or return cached) get_sparse_arrays()."""
        if self._sparsity_func is None:
            self._sparsity_func = build_bilinear_sparsity_functions(self.sbd)
        return self._sparsity_func

    def generate_programs(self) -> Dict[str, object]:
        """
        Coefficient programs keyed by matrix name ('C' maps to a list).

        Programs can be evaluated on any backend.
        """
        if self._programs is None:
            states0 = list(self.sbd.states0)
            self._programs = {
                "A": compile_coefficient_program(self.sbd.A, states0, self.constant_values),
                "B": compile_coefficient_program(self.sbd.B, states0, self.constant_values),
                "C": [
                    compile_coefficient_program(Ci, states0, self.constant_values)
                    for Ci in self.sbd.C
                ],
                "D": compile_coefficient_program(self.sbd.D, states0, self.constant_values),
            }
        return self._programs

    # ========================================================================
    # Evaluation
    # ========================================================================

    def linearize(self, x0) -> Tuple[sparse.csc_matrix, sparse.csc_matrix, list, sparse.csc_matrix]:
        """
        Fresh (A, B, [C_i], D) evaluated at the linearization point ``x0``.
        """
        A, B, C, D = self.generate_sparsity()()
        update_A, update_B, update_C, update_D = self.generate_update_functions()
        x0 = np.asarray(x0, dtype=DEFAULT_DTYPE)
        return update_A(A, x0), update_B(B, x0), update_C(C, x0), update_D(D, x0)

    def evaluate_coefficients(self, x0, backend: Backend = DEFAULT_BACKEND) -> Dict[str, object]:
        """
        Nonzero values of A, B, C_i, D at ``x0`` as backend arrays.

        Returns:
            Dict with keys 'A', 'B', 'D' (1D arrays) and 'C' (list of 1D arrays)
        """
        programs = self.generate_programs()
        return {
            "A": programs["A"](x0, backend=backend),
            "B": programs["B"](x0, backend=backend),
            "C": [program(x0, backend=backend) for program in programs["C"]],
            "D": programs["D"](x0, backend=backend),
        }

    # ========================================================================
    # Compilation and Cache Management
    # ========================================================================

    def compile_all(self, verbose: bool = False) -> CompilationTimings:
        """
        Generate every function family and report generation times.

        A family that fails to generate is reported as None (and the error
        printed when ``verbose``).
        """
        timings: CompilationTimings = {}
        families = (
            ("expand", self.generate_expand),
            ("update", self.generate_update_functions),
            ("sparsity", self.generate_sparsity),
            ("programs", self.generate_programs),
        )
        for name, generate in families:
            try:
                start = time.time()
                generate()
                timings[name] = time.time() - start
                if verbose:
                    print(f"  {name}: {timings[name]:.3f}s")
            except ValueError as e:
                if verbose:
                    print(f"  {name}: FAILED ({e})")
                timings[name] = None
        return timings

    def reset_cache(self):
        """Clear all generated functions."""
        self._expand_func = None
        self._update_funcs = None
        self._sparsity_func = None
        self._programs = None

    def is_compiled(self) -> Dict[str, bool]:
        """
        Check which function families are generated.

        Example:
            >>> code_gen.is_compiled()
            {'expand': True, 'update': False, 'sparsity': True, 'programs': False}
        """
        return {
            "expand": self._expand_func is not None,
            "update": self._update_funcs is not None,
            "sparsity": self._sparsity_func is not None,
            "programs": self._programs is not None,
        }

    def get_info(self) -> Dict[str, object]:
        """Compilation status plus model dimensions and sparsity."""
        return {
            "compiled": self.is_compiled(),
            "sparsity": self.sbd.sparsity_info(),
            "constants": sorted(str(c) for c in self.constant_values),
        }

    # ========================================================================
    # String Representations
    # ========================================================================

    def __repr__(self) -> str:
        compiled = [name for name, done in self.is_compiled().items() if done]
        return f"BilinearCodeGenerator(n={self.sbd.n}, m={self.sbd.m}, compiled={compiled})"

    def __str__(self) -> str:
        status = self.is_compiled()
        return f"BilinearCodeGenerator({sum(status.values())}/{len(status)} families generated)"
