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
Unit tests for expression programs

Tests cover:
1. Compilation
2. NumPy evaluation
3. Output buffers
4. PyTorch and JAX evaluation
"""

import numpy as np
import pytest
import sympy as sp

# Conditional imports
torch_available = True
try:
    import torch
except ImportError:
    torch_available = False

jax_available = True
try:
    import jax
    import jax.numpy as jnp
except ImportError:
    jax_available = False

from bilinsym.codegen.expression_program import (
    SUPPORTED_FUNCTIONS,
    ExpressionProgram,
    Instruction,
    compile_expressions,
)

x, y = sp.symbols("x y")
a = sp.Symbol("a")


# ============================================================================
# Test Class 1: Compilation
# ============================================================================


class TestCompilation:
    """Test compilation into instruction lists"""

    def test_returns_program(self):
        program = compile_expressions([x * y + 1], [x, y])
        assert isinstance(program, ExpressionProgram)
        assert program.n_inputs == 2
        assert len(program) == 1

    def test_instructions_are_flat(self):
        program = compile_expressions([x + 2], [x])
        assert all(isinstance(ins, Instruction) for ins in program.instructions)
        ops = {ins.op for ins in program.instructions}
        assert ops <= {"input", "const", "add", "mul", "pow", "call"}

    def test_shared_subexpressions(self):
        shared = compile_expressions([sp.sin(x), sp.sin(x) + 1], [x])
        calls = [ins for ins in shared.instructions if ins.op == "call"]
        assert len(calls) == 1

    def test_unknown_symbol_rejected(self):
        with pytest.raises(ValueError, match="not inputs"):
            compile_expressions([a * x], [x])

    def test_unsupported_function_rejected(self):
        f = sp.Function("f")
        with pytest.raises(ValueError, match="Cannot compile"):
            compile_expressions([f(x)], [x])

    def test_complex_constant_rejected(self):
        with pytest.raises(ValueError, match="non-real"):
            compile_expressions([sp.I * x], [x])

    def test_supported_functions(self):
        assert {"sin", "cos", "exp", "sqrt"} <= SUPPORTED_FUNCTIONS

    def test_repr(self):
        program = compile_expressions([x, y], [x, y])
        assert "ExpressionProgram(n_inputs=2" in repr(program)


# ============================================================================
# Test Class 2: NumPy Evaluation
# ============================================================================


class TestNumpyEvaluation:
    """Test evaluation with the NumPy backend"""

    def test_polynomial(self):
        program = compile_expressions([x * y + 1, x**2 - y], [x, y])
        np.testing.assert_allclose(program(np.array([2.0, 3.0])), [7.0, 1.0])

    def test_functions(self):
        program = compile_expressions([sp.sin(x), sp.exp(x), sp.sqrt(x)], [x])
        np.testing.assert_allclose(
            program([0.5]), [np.sin(0.5), np.exp(0.5), np.sqrt(0.5)]
        )

    def test_rational_and_negative_powers(self):
        program = compile_expressions([x / 3, 1 / x, x ** sp.Rational(3, 2)], [x])
        np.testing.assert_allclose(program([4.0]), [4.0 / 3.0, 0.25, 8.0])

    def test_constant_expression(self):
        program = compile_expressions([sp.Integer(5), sp.pi], [x])
        np.testing.assert_allclose(program([1.0]), [5.0, np.pi])

    def test_min_max(self):
        program = compile_expressions([sp.Min(x, y, 1), sp.Max(x, y)], [x, y])
        np.testing.assert_allclose(program([2.0, 3.0]), [1.0, 3.0])

    def test_input_length_checked(self):
        program = compile_expressions([x], [x])
        with pytest.raises(ValueError, match="Expected 1 inputs"):
            program([1.0, 2.0])

    def test_deterministic(self):
        program = compile_expressions([sp.cos(x) * y + x**3], [x, y])
        first = program([0.3, 1.7])
        second = program([0.3, 1.7])
        assert np.array_equal(first, second)

    def test_empty_program(self):
        program = compile_expressions([], [x])
        assert program([1.0]).shape == (0,)


# ============================================================================
# Test Class 3: Output Buffers
# ============================================================================


class TestOutputBuffers:
    """Test in-place evaluation"""

    def test_writes_into_buffer(self):
        program = compile_expressions([x + 1, 2 * x], [x])
        out = np.zeros(2)
        result = program([1.0], out=out)
        assert result is out
        np.testing.assert_allclose(out, [2.0, 2.0])

    def test_buffer_shape_checked(self):
        program = compile_expressions([x + 1, 2 * x], [x])
        with pytest.raises(ValueError, match="shape"):
            program([1.0], out=np.zeros(3))

    def test_buffer_only_for_numpy(self):
        program = compile_expressions([x], [x])
        with pytest.raises(ValueError, match="numpy"):
            program([1.0], out=np.zeros(1), backend="torch")


# ============================================================================
# Test Class 4: PyTorch and JAX
# ============================================================================


class TestOtherBackends:
    """Test evaluation on PyTorch and JAX"""

    def test_invalid_backend(self):
        program = compile_expressions([x], [x])
        with pytest.raises(ValueError):
            program([1.0], backend="tensorflow")

    @pytest.mark.skipif(not torch_available, reason="PyTorch not installed")
    def test_torch(self):
        program = compile_expressions([sp.sin(x) * y, x**2 + 1], [x, y])
        result = program(torch.tensor([0.5, 2.0], dtype=torch.float64), backend="torch")
        assert isinstance(result, torch.Tensor)
        np.testing.assert_allclose(result.numpy(), [2.0 * np.sin(0.5), 1.25])

    @pytest.mark.skipif(not torch_available, reason="PyTorch not installed")
    def test_torch_gradient(self):
        program = compile_expressions([x**2 * y], [x, y])
        inputs = torch.tensor([3.0, 2.0], dtype=torch.float64, requires_grad=True)
        program(inputs, backend="torch").sum().backward()
        np.testing.assert_allclose(inputs.grad.numpy(), [12.0, 9.0])

    @pytest.mark.skipif(not torch_available, reason="PyTorch not installed")
    def test_torch_constant_output(self):
        program = compile_expressions([sp.Integer(2), x], [x])
        result = program(torch.tensor([1.0], dtype=torch.float64), backend="torch")
        np.testing.assert_allclose(result.numpy(), [2.0, 1.0])

    @pytest.mark.skipif(not jax_available, reason="JAX not installed")
    def test_jax(self):
        program = compile_expressions([sp.cos(x) + y], [x, y])
        result = program(jnp.array([0.0, 1.0]), backend="jax")
        np.testing.assert_allclose(np.asarray(result), [2.0], rtol=1e-6)

    @pytest.mark.skipif(not jax_available, reason="JAX not installed")
    def test_jax_integer_inputs_use_default_float(self):
        program = compile_expressions([x / 2], [x])
        result = program(jnp.array([3]), backend="jax")
        assert result.dtype == jnp.asarray([0.0]).dtype
        np.testing.assert_allclose(np.asarray(result), [1.5])

    @pytest.mark.skipif(not torch_available, reason="PyTorch not installed")
    def test_torch_integer_inputs_use_float64(self):
        program = compile_expressions([x / 2], [x])
        result = program(torch.tensor([3]), backend="torch")
        assert result.dtype == torch.float64

    @pytest.mark.skipif(not jax_available, reason="JAX not installed")
    def test_jax_grad(self):
        program = compile_expressions([x**3], [x])
        grad = jax.grad(lambda z: program(z, backend="jax")[0])(jnp.array([2.0]))
        np.testing.assert_allclose(np.asarray(grad), [12.0], rtol=1e-6)
