"""
Operator Schedule

Chooses which operator runs next. The engine treats the schedule as an opaque
strategy and only uses the methods below:

    get_next_operator_index()            - index of the next operator
    get_operator(index)                  - resolve an index
    operator_count                       - number of operators
    get_minimum_accept_and_reject_count() - smallest tally over all operators
    get_optimization_transform(count)    - step-size index for coercion

SimpleOperatorSchedule picks operators at random in proportion to their
weights.
"""

import math
from enum import IntEnum
from typing import List, Optional, Sequence

import numpy as np

from .operators import MCMCOperator


class OptimizationTransform(IntEnum):
    """
    Maps an operator's completed operation count to the coercion step index.

    LINEAR gives the classic 1/(n+1) Robbins-Monro step. LOG and SQRT decay
    more slowly and keep adapting for longer.
    """
    LINEAR = 0
    LOG = 1
    SQRT = 2

    def __str__(self):
        return self.name.title()


class SimpleOperatorSchedule:
    """
    Weight-proportional random operator selection.

    Args:
        operators: Initial operators
        rng: numpy Generator (a fresh one seeded with `seed` if omitted)
        transform: OptimizationTransform used for coercion step sizes
        seed: Seed for the default Generator
    """

    def __init__(self, operators: Sequence[MCMCOperator] = (),
                 rng: Optional[np.random.Generator] = None,
                 transform: OptimizationTransform = OptimizationTransform.LINEAR,
                 seed: Optional[int] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.transform = OptimizationTransform(transform)
        self._operators: List[MCMCOperator] = []
        self._probabilities = np.zeros(0)
        for op in operators:
            self.add_operator(op)

    def add_operator(self, operator: MCMCOperator) -> None:
        self._operators.append(operator)
        self._update_probabilities()

    def _update_probabilities(self) -> None:
        weights = np.array([op.weight for op in self._operators], dtype=np.float64)
        self._probabilities = weights / np.sum(weights)

    @property
    def operators(self) -> List[MCMCOperator]:
        return list(self._operators)

    @property
    def operator_count(self) -> int:
        return len(self._operators)

    def get_operator(self, index: int) -> MCMCOperator:
        return self._operators[index]

    def get_next_operator_index(self) -> int:
        if not self._operators:
            raise ValueError("Operator schedule is empty")
        if len(self._operators) == 1:
            return 0
        return int(self.rng.choice(len(self._operators), p=self._probabilities))

    def get_minimum_accept_and_reject_count(self) -> int:
        if not self._operators:
            return 0
        return min(op.operation_count for op in self._operators)

    def get_optimization_transform(self, count: float) -> float:
        if self.transform == OptimizationTransform.LOG:
            return math.log(count) if count > 0 else 0.0
        if self.transform == OptimizationTransform.SQRT:
            return math.sqrt(count) if count > 0 else 0.0
        return float(count)
