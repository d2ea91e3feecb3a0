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
Expression Programs

Compiles SymPy expressions into a flat instruction list and evaluates it
with a small fixed interpreter. No source code is generated or compiled at
runtime.

Each instruction writes one register:
- ("input", (), i)        register = inputs[i]
- ("const", (), value)    register = value
- ("add", (r1, ..., rk))  register = sum of registers
- ("mul", (r1, ..., rk))  register = product of registers
- ("pow", (rb, re))       register = rb ** re
- ("call", (r1, ...), f)  register = f(r1, ...)

Identical sub-expressions are compiled once (registers are shared), and
outputs are register indices in the order of the compiled expressions.

All backends (NumPy, PyTorch, JAX) run the same program; only the function
table differs. Evaluation keeps no state between calls: registers are
allocated per call, so a program can be shared across threads as long as
each caller supplies its own output buffer.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import sympy as sp

from bilinsym.types.backends import DEFAULT_BACKEND, DEFAULT_DTYPE, Backend, validate_backend

# ============================================================================
# Function Tables
# ============================================================================


def _numpy_min(*args):
    """
    Handle SymPy Min for NumPy backend.

    SymPy's Min can take arbitrary number of arguments: Min(x, y, z)
    NumPy's np.minimum only takes 2 arguments.
    """
    if len(args) == 0:
        raise ValueError("Min requires at least one argument")
    result = args[0]
    for arg in args[1:]:
        result = np.minimum(result, arg)
    return result


def _numpy_max(*args):
    """Handle SymPy Max for NumPy backend (variable argument count)."""
    if len(args) == 0:
        raise ValueError("Max requires at least one argument")
    result = args[0]
    for arg in args[1:]:
        result = np.maximum(result, arg)
    return result


NUMPY_FUNCTIONS: Dict[str, Callable] = {
    # Trigonometric
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "atan2": np.arctan2,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    # Exponential/Logarithmic
    "exp": np.exp,
    "log": np.log,
    "sqrt": np.sqrt,
    # Absolute value and sign
    "Abs": np.abs,
    "sign": np.sign,
    # Min/Max
    "Min": _numpy_min,
    "Max": _numpy_max,
    # Rounding
    "floor": np.floor,
    "ceiling": np.ceil,
}
"""SymPy function name → NumPy implementation."""


def _torch_functions() -> Dict[str, Callable]:
    import torch

    def _as_tensor(a):
        return a if isinstance(a, torch.Tensor) else torch.as_tensor(a)

    def _torch_min(*args):
        if len(args) == 0:
            raise ValueError("Min requires at least one argument")
        tensors = [_as_tensor(a) for a in args]
        result = tensors[0]
        for t in tensors[1:]:
            result = torch.minimum(result, t)
        return result

    def _torch_max(*args):
        if len(args) == 0:
            raise ValueError("Max requires at least one argument")
        tensors = [_as_tensor(a) for a in args]
        result = tensors[0]
        for t in tensors[1:]:
            result = torch.maximum(result, t)
        return result

    def _torch_atan2(a, b):
        return torch.atan2(_as_tensor(a), _as_tensor(b))

    return {
        "sin": torch.sin,
        "cos": torch.cos,
        "tan": torch.tan,
        "asin": torch.asin,
        "acos": torch.acos,
        "atan": torch.atan,
        "atan2": _torch_atan2,
        "sinh": torch.sinh,
        "cosh": torch.cosh,
        "tanh": torch.tanh,
        "exp": torch.exp,
        "log": torch.log,
        "sqrt": torch.sqrt,
        "Abs": torch.abs,
        "sign": torch.sign,
        "Min": _torch_min,
        "Max": _torch_max,
        "floor": torch.floor,
        "ceiling": torch.ceil,
    }


def _jax_functions() -> Dict[str, Callable]:
    import jax.numpy as jnp

    def _jax_min(*args):
        if len(args) == 0:
            raise ValueError("Min requires at least one argument")
        result = args[0]
        for arg in args[1:]:
            result = jnp.minimum(result, arg)
        return result

    def _jax_max(*args):
        if len(args) == 0:
            raise ValueError("Max requires at least one argument")
        result = args[0]
        for arg in args[1:]:
            result = jnp.maximum(result, arg)
        return result

    return {
        "sin": jnp.sin,
        "cos": jnp.cos,
        "tan": jnp.tan,
        "asin": jnp.arcsin,
        "acos": jnp.arccos,
        "atan": jnp.arctan,
        "atan2": jnp.arctan2,
        "sinh": jnp.sinh,
        "cosh": jnp.cosh,
        "tanh": jnp.tanh,
        "exp": jnp.exp,
        "log": jnp.log,
        "sqrt": jnp.sqrt,
        "Abs": jnp.abs,
        "sign": jnp.sign,
        "Min": _jax_min,
        "Max": _jax_max,
        "floor": jnp.floor,
        "ceiling": jnp.ceil,
    }


SUPPORTED_FUNCTIONS = frozenset(NUMPY_FUNCTIONS)
"""Names of SymPy functions that can appear in compiled programs."""


# ============================================================================
# Program Representation
# ============================================================================


@dataclass(frozen=True)
class Instruction:
    """
    Single register-writing instruction.

    Attributes
    ----------
    op : str
        One of 'input', 'const', 'add', 'mul', 'pow', 'call'
    operands : Tuple[int, ...]
        Registers read by the instruction
    payload : Any
        Input index ('input'), float value ('const'), function name ('call')
    """

    op: str
    operands: Tuple[int, ...] = ()
    payload: Any = None


@dataclass(frozen=True)
class ExpressionProgram:
    """
    Compiled list of expressions over a fixed input vector.

    Examples
    --------
    >>> x, y = sp.symbols('x y')
    >>> program = compile_expressions([x*y + 1, sp.sin(x)], [x, y])
    >>> program(np.array([2.0, 3.0]))
    array([7.        , 0.90929743])
    """

    n_inputs: int
    instructions: Tuple[Instruction, ...]
    outputs: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.outputs)

    @property
    def n_registers(self) -> int:
        return len(self.instructions)

    def _run(self, inputs, functions: Dict[str, Callable]) -> List:
        registers: List = [None] * len(self.instructions)
        for k, ins in enumerate(self.instructions):
            op = ins.op
            if op == "input":
                registers[k] = inputs[ins.payload]
            elif op == "const":
                registers[k] = ins.payload
            elif op == "add":
                acc = registers[ins.operands[0]]
                for r in ins.operands[1:]:
                    acc = acc + registers[r]
                registers[k] = acc
            elif op == "mul":
                acc = registers[ins.operands[0]]
                for r in ins.operands[1:]:
                    acc = acc * registers[r]
                registers[k] = acc
            elif op == "pow":
                registers[k] = registers[ins.operands[0]] ** registers[ins.operands[1]]
            elif op == "call":
                registers[k] = functions[ins.payload](*[registers[r] for r in ins.operands])
            else:
                raise ValueError(f"Unknown instruction '{op}'")
        return [registers[r] for r in self.outputs]

    def __call__(
        self, inputs, out: Optional[np.ndarray] = None, backend: Backend = DEFAULT_BACKEND
    ):
        """
        Evaluate all outputs.

        Parameters
        ----------
        inputs : array-like
            Input vector of length ``n_inputs``
        out : np.ndarray, optional
            NumPy buffer to write into (NumPy backend only)
        backend : Backend
            'numpy', 'torch' or 'jax'

        Returns
        -------
        ArrayLike
            1D array of length ``len(self)``; ``out`` when given
        """
        backend = validate_backend(backend)
        if len(inputs) != self.n_inputs:
            raise ValueError(f"Expected {self.n_inputs} inputs, got {len(inputs)}")

        if backend == "numpy":
            inputs = np.asarray(inputs, dtype=DEFAULT_DTYPE)
            values = self._run(inputs, NUMPY_FUNCTIONS)
            if out is None:
                out = np.empty(len(values), dtype=DEFAULT_DTYPE)
            elif out.shape != (len(values),):
                raise ValueError(f"Output buffer must have shape ({len(values)},), got {out.shape}")
            for i, value in enumerate(values):
                out[i] = value
            return out

        if out is not None:
            raise ValueError("Output buffers are only supported for the numpy backend")

        if backend == "torch":
            import torch

            inputs = torch.as_tensor(inputs)
            if not torch.is_floating_point(inputs):
                inputs = inputs.to(torch.float64)
            values = self._run(inputs, _torch_functions())
            if not values:
                return torch.zeros(0, dtype=inputs.dtype)
            return torch.stack([torch.as_tensor(v, dtype=inputs.dtype) for v in values])

        import jax.numpy as jnp

        inputs = jnp.asarray(inputs)
        if not jnp.issubdtype(inputs.dtype, jnp.floating):
            # float64 when jax_enable_x64 is set, float32 otherwise
            inputs = inputs.astype(jnp.result_type(float))
        values = self._run(inputs, _jax_functions())
        if not values:
            return jnp.zeros(0, dtype=inputs.dtype)
        return jnp.stack([jnp.asarray(v, dtype=inputs.dtype) for v in values])

    def __repr__(self) -> str:
        return (
            f"ExpressionProgram(n_inputs={self.n_inputs}, "
            f"outputs={len(self.outputs)}, registers={self.n_registers})"
        )


# ============================================================================
# Compilation
# ============================================================================


class _ProgramBuilder:
    """Post-order compiler from SymPy trees to registers."""

    def __init__(self, inputs: Sequence[sp.Symbol]):
        self.input_index = {sym: i for i, sym in enumerate(inputs)}
        self.instructions: List[Instruction] = []
        self.registers: Dict[sp.Basic, int] = {}

    def _push(self, expr: sp.Basic, instruction: Instruction) -> int:
        self.instructions.append(instruction)
        register = len(self.instructions) - 1
        self.registers[expr] = register
        return register

    def emit(self, expr: sp.Basic) -> int:
        if expr in self.registers:
            return self.registers[expr]

        if expr in self.input_index:
            return self._push(expr, Instruction("input", (), self.input_index[expr]))

        if expr.is_number:
            if not expr.is_real:
                raise ValueError(f"Cannot compile non-real constant {expr}")
            return self._push(expr, Instruction("const", (), float(expr)))

        if expr.is_Add:
            operands = tuple(self.emit(arg) for arg in expr.args)
            return self._push(expr, Instruction("add", operands))

        if expr.is_Mul:
            operands = tuple(self.emit(arg) for arg in expr.args)
            return self._push(expr, Instruction("mul", operands))

        if expr.is_Pow:
            if expr.exp == sp.S.Half:
                operands = (self.emit(expr.base),)
                return self._push(expr, Instruction("call", operands, "sqrt"))
            operands = (self.emit(expr.base), self.emit(expr.exp))
            return self._push(expr, Instruction("pow", operands))

        name = expr.func.__name__
        # Min/Max are lattice operations rather than Function subclasses
        if isinstance(expr, (sp.Function, sp.Min, sp.Max)) and name in SUPPORTED_FUNCTIONS:
            operands = tuple(self.emit(arg) for arg in expr.args)
            return self._push(expr, Instruction("call", operands, name))

        raise ValueError(f"Cannot compile {type(expr).__name__} expression: {expr}")


def compile_expressions(
    exprs: Sequence[sp.Expr], inputs: Sequence[sp.Symbol]
) -> ExpressionProgram:
    """
    Compile expressions into an ``ExpressionProgram`` over ``inputs``.

    Parameters
    ----------
    exprs : sequence of sp.Expr
        Expressions to evaluate, in output order
    inputs : sequence of sp.Symbol
        Input symbols; position i reads ``inputs[i]`` of the numeric vector

    Returns
    -------
    ExpressionProgram

    Raises
    ------
    ValueError
        If an expression has free symbols outside ``inputs`` or uses an
        unsupported function

    Examples
    --------
    >>> x = sp.Symbol('x')
    >>> program = compile_expressions([x**2, 3*x], [x])
    >>> program([2.0])
    array([4., 6.])
    """
    inputs = list(inputs)
    exprs = [sp.sympify(e) for e in exprs]

    allowed = set(inputs)
    undefined = set()
    for expr in exprs:
        undefined |= expr.free_symbols - allowed
    if undefined:
        raise ValueError(
            f"Expressions contain symbols that are not inputs: "
            f"{sorted(str(s) for s in undefined)}"
        )

    builder = _ProgramBuilder(inputs)
    outputs = tuple(builder.emit(expr) for expr in exprs)
    return ExpressionProgram(
        n_inputs=len(inputs),
        instructions=tuple(builder.instructions),
        outputs=outputs,
    )
