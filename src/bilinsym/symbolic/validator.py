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
Bilinearization Input Validator

Validates the inputs of ``bilinearize_dynamics`` before any symbolic work
is performed.

Checks:
- Dynamics is callable
- State, control and constant lists contain SymPy Symbols
- Independent variable is a plain Symbol (not a compound expression)
- No duplicates or overlaps between states, controls, constants and time
- Expansion order is a positive integer

Non-fatal issues (large orders, large lifted dimensions) are reported as
warnings.
"""

import math
import warnings
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

import sympy as sp

# ============================================================================
# Exceptions
# ============================================================================


class ValidationError(ValueError):
    """Raised when bilinearization inputs fail validation"""

    pass


# ============================================================================
# Validation Result Container
# ============================================================================


@dataclass
class ValidationResult:
    """
    Container for validation results.

    Attributes
    ----------
    is_valid : bool
        True if the inputs passed all validation checks
    errors : List[str]
        List of validation errors (empty if valid)
    warnings : List[str]
        List of validation warnings (non-fatal issues)
    info : Dict
        Dimensions of the validated problem
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]
    info: Dict


# ============================================================================
# Validator
# ============================================================================

LARGE_ORDER = 4
"""Orders above this produce very large symbolic expressions."""

LARGE_LIFTED_DIMENSION = 200
"""Lifted dimensions above this make coefficient extraction slow."""


def lifted_dimension(n0: int, order: int) -> int:
    """Number of monomials of degree 1..order in n0 variables."""
    return math.comb(n0 + order, order) - 1


class BilinearizationValidator:
    """
    Validates inputs of a bilinearization request.

    Examples
    --------
    >>> validator = BilinearizationValidator(f, [x, v], [u], t, order=2)
    >>> result = validator.validate(raise_on_error=False)
    >>> result.is_valid
    True
    >>>
    >>> BilinearizationValidator(f, [x], [u], x*t, 2).validate()
    Traceback (most recent call last):
    ...
    ValidationError: ...
    """

    def __init__(
        self,
        dynamics: Callable,
        states: Sequence,
        controls: Sequence,
        t,
        order,
        constants: Sequence = (),
    ):
        self.dynamics = dynamics
        self.states = states
        self.controls = controls
        self.t = t
        self.order = order
        self.constants = constants
        self._errors: List[str] = []
        self._warnings: List[str] = []

    # ========================================================================
    # Public API
    # ========================================================================

    def validate(self, raise_on_error: bool = True) -> ValidationResult:
        """
        Validate the bilinearization inputs.

        Parameters
        ----------
        raise_on_error : bool
            If True, raise ValidationError on validation failure

        Returns
        -------
        ValidationResult
            Validation results with errors, warnings, and info

        Raises
        ------
        ValidationError
            If validation fails and raise_on_error=True
        """
        self._errors = []
        self._warnings = []

        # The independent variable is a precondition: check it first
        self._validate_independent_variable()
        self._validate_dynamics()
        self._validate_symbol_lists()
        self._validate_order()

        if len(self._errors) == 0:
            self._validate_overlaps()
            self._check_problem_size()

        is_valid = len(self._errors) == 0

        result = ValidationResult(
            is_valid=is_valid,
            errors=self._errors.copy(),
            warnings=self._warnings.copy(),
            info=self._build_info(),
        )

        if result.warnings:
            self._issue_warnings(result.warnings)

        if not is_valid and raise_on_error:
            raise ValidationError(self._format_error_message())

        return result

    # ========================================================================
    # Validation Checks
    # ========================================================================

    def _validate_independent_variable(self):
        t = self.t
        if not isinstance(t, sp.Symbol):
            self._errors.append(
                f"Independent variable must be independent: {t} is a "
                f"{type(t).__name__}, not a SymPy Symbol"
            )

    def _validate_dynamics(self):
        if not callable(self.dynamics):
            self._errors.append(
                f"dynamics must be callable as f(states, controls), "
                f"got {type(self.dynamics).__name__}"
            )

    def _validate_symbol_lists(self):
        if self.states is None or len(self.states) == 0:
            self._errors.append("states is empty - at least one state variable required")

        for label, symbols in (
            ("states", self.states),
            ("controls", self.controls),
            ("constants", self.constants),
        ):
            if symbols is None:
                self._errors.append(f"{label} must be a sequence (can be empty: [])")
                continue
            for i, var in enumerate(symbols):
                if not isinstance(var, sp.Symbol):
                    self._errors.append(
                        f"{label}[{i}] = {var} is not a SymPy Symbol "
                        f"(got {type(var).__name__})"
                    )

    def _validate_order(self):
        order = self.order
        if isinstance(order, bool) or not isinstance(order, int):
            self._errors.append(f"order must be int, got {type(order).__name__}")
        elif order < 1:
            self._errors.append(f"order must be >= 1, got {order}")

    def _validate_overlaps(self):
        groups = {
            "states": list(self.states),
            "controls": list(self.controls),
            "constants": list(self.constants),
        }
        for label, symbols in groups.items():
            duplicates = sorted({str(s) for s in symbols if symbols.count(s) > 1})
            if duplicates:
                self._errors.append(f"Duplicate {label}: {duplicates}")

        labels = list(groups)
        for i, first in enumerate(labels):
            for second in labels[i + 1 :]:
                shared = set(groups[first]) & set(groups[second])
                if shared:
                    self._errors.append(
                        f"Symbols appear in both {first} and {second}: "
                        f"{sorted(str(s) for s in shared)}"
                    )
            if self.t in groups[first]:
                self._errors.append(
                    f"Independent variable {self.t} must not appear in {first}"
                )

    def _check_problem_size(self):
        if self.order > LARGE_ORDER:
            self._warnings.append(
                f"Expansion order {self.order} is large; symbolic expressions "
                f"grow quickly with order"
            )
        n = lifted_dimension(len(self.states), self.order)
        if n > LARGE_LIFTED_DIMENSION:
            self._warnings.append(
                f"Lifted state dimension {n} exceeds {LARGE_LIFTED_DIMENSION}; "
                f"coefficient extraction may be slow"
            )

    # ========================================================================
    # Reporting
    # ========================================================================

    def _build_info(self) -> Dict:
        info = {}
        try:
            info["n0"] = len(self.states)
            info["m"] = len(self.controls)
            info["n_constants"] = len(self.constants)
        except TypeError:
            return info
        if isinstance(self.order, int) and self.order >= 1:
            info["n"] = lifted_dimension(info["n0"], self.order)
        return info

    def _issue_warnings(self, messages: List[str]):
        for warning in messages:
            warnings.warn(f"Bilinearization warning: {warning}", UserWarning)

    def _format_error_message(self) -> str:
        lines = ["Bilinearization input validation failed:"]
        for i, error in enumerate(self._errors, 1):
            lines.append(f"  {i}. {error}")
        return "\n".join(lines)
