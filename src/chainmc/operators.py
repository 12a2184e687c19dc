"""
Operator Base Classes

An operator is a proposal mechanism: it mutates the current state and
returns the log Hastings ratio of the move. The engine never type-tests
operators; it reads three capability flags instead:

    uses_density          - operate() receives the joint density
    is_guaranteed_accept  - exact conditional (Gibbs) draw, never tested
    is_coercable          - exposes a tunable parameter for adaptive coercion

Every operator keeps its own acceptance tally, which the schedule uses for
the diagnostic warm-up rule and the diagnostics module for reporting.

To add a new operator:
1. Subclass MCMCOperator (or CoercableOperator / GibbsOperator)
2. Implement operate(), raising OperatorFailedError for impossible moves
3. For coercable operators, implement get/set_coercable_parameter so that
   the parameter decreases as acceptance probability increases
"""

from enum import IntEnum
from typing import Optional

import numpy as np


# Default target acceptance probability for coercable operators
# (Roberts, Gelman & Gilks 1997)
DEFAULT_TARGET_ACCEPTANCE = 0.234


# ============================================================================
# COERCION MODE ENUMERATION
# ============================================================================

class CoercionMode(IntEnum):
    """
    Per-operator coercion policy.

    DEFAULT defers to the chain's use_coercion flag.
    """
    DEFAULT = 0
    COERCION_ON = 1
    COERCION_OFF = 2

    def __str__(self):
        return self.name.replace('_', ' ').title()


# ============================================================================
# BASE OPERATOR
# ============================================================================

class MCMCOperator:
    """
    Base class for all operators.

    Fields:
        weight: Relative selection weight used by the schedule
        accept_count / reject_count: Decisions since the last reset()
        sum_deviation: Sum of (new score - old score) over accepted moves
        total_evaluation_time: Milliseconds spent evaluating this operator's proposals
    """

    uses_density = False
    is_guaranteed_accept = False
    is_coercable = False

    def __init__(self, weight: float = 1.0, name: Optional[str] = None):
        if weight <= 0:
            raise ValueError(f"Operator weight must be > 0, got {weight}")
        self.weight = float(weight)
        self._name = name
        self.reset()

    def __repr__(self):
        return f"{type(self).__name__}({self.operator_name!r})"

    @property
    def operator_name(self) -> str:
        return self._name if self._name else type(self).__name__

    def operate(self, *args) -> float:
        """Propose a new state and return the log Hastings ratio."""
        raise NotImplementedError

    # --- Tally ---

    def accept(self, deviation: float) -> None:
        self.accept_count += 1
        self.sum_deviation += deviation

    def reject(self) -> None:
        self.reject_count += 1

    def reset(self) -> None:
        self.accept_count = 0
        self.reject_count = 0
        self.sum_deviation = 0.0
        self.total_evaluation_time = 0.0

    def add_evaluation_time(self, ms: float) -> None:
        self.total_evaluation_time += ms

    @property
    def operation_count(self) -> int:
        return self.accept_count + self.reject_count

    @property
    def acceptance_probability(self) -> float:
        count = self.operation_count
        return self.accept_count / count if count > 0 else 0.0

    @property
    def mean_deviation(self) -> float:
        return self.sum_deviation / self.accept_count if self.accept_count > 0 else 0.0

    @property
    def mean_evaluation_time(self) -> float:
        count = self.operation_count
        return self.total_evaluation_time / count if count > 0 else 0.0


class CoercableOperator(MCMCOperator):
    """
    Operator with a continuously tunable parameter.

    The engine nudges the parameter towards target_acceptance_probability
    after every decision when coercion applies (see CoercionMode). The
    parameter must be a decreasing function of acceptance probability.
    """

    is_coercable = True

    def __init__(self, weight: float = 1.0, mode: CoercionMode = CoercionMode.DEFAULT,
                 target_acceptance_probability: float = DEFAULT_TARGET_ACCEPTANCE,
                 name: Optional[str] = None):
        super().__init__(weight=weight, name=name)
        self.mode = CoercionMode(mode)
        if not 0.0 < target_acceptance_probability < 1.0:
            raise ValueError(
                f"target_acceptance_probability must be in (0, 1), got {target_acceptance_probability}"
            )
        self.target_acceptance_probability = float(target_acceptance_probability)

    def get_coercable_parameter(self) -> float:
        raise NotImplementedError

    def set_coercable_parameter(self, value: float) -> None:
        raise NotImplementedError

    @property
    def raw_parameter(self) -> float:
        """Tuning value in natural units, for reports."""
        return self.get_coercable_parameter()


class GibbsOperator(MCMCOperator):
    """Draws from an exact conditional; always accepted by the engine."""

    is_guaranteed_accept = True


def uniform_index(rng: np.random.Generator, dimension: int) -> int:
    """Pick one element of a parameter to update."""
    return int(rng.integers(dimension)) if dimension > 1 else 0
