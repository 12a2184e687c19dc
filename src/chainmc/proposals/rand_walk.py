"""
Random Walk Operator

Uniform random walk on one element of a parameter.

Proposal: x'_i = x_i + U(-w, w), with i chosen uniformly
where:
    - w is the window size

Hastings ratio: 0 (symmetric proposal, q(x'|x) = q(x|x'))

Coercable parameter: log(w). A wider window lowers the acceptance
probability, so log(w) decreases as acceptance increases, as coercion
requires.

Proposals outside the parameter's bounds raise OperatorFailedError and are
rejected by the engine without evaluating the density.
"""

import math
from typing import Optional

import numpy as np

from ..error_handling import OperatorFailedError
from ..model import Parameter
from ..operators import (
    CoercableOperator,
    CoercionMode,
    DEFAULT_TARGET_ACCEPTANCE,
    uniform_index,
)


class RandomWalkOperator(CoercableOperator):
    """
    Uniform random walk with a coercable window size.

    Args:
        parameter: Parameter to update
        window_size: Half-width of the uniform window (> 0)
        weight: Schedule weight
        mode: CoercionMode
        target_acceptance_probability: Coercion target
        rng: numpy Generator
        name: Operator name (default 'randomWalk(<parameter id>)')
    """

    def __init__(self, parameter: Parameter, window_size: float, weight: float = 1.0,
                 mode: CoercionMode = CoercionMode.DEFAULT,
                 target_acceptance_probability: float = DEFAULT_TARGET_ACCEPTANCE,
                 rng: Optional[np.random.Generator] = None,
                 name: Optional[str] = None):
        if window_size <= 0:
            raise ValueError(f"window_size must be > 0, got {window_size}")
        super().__init__(weight=weight, mode=mode,
                         target_acceptance_probability=target_acceptance_probability,
                         name=name if name else f"randomWalk({parameter.id})")
        self.parameter = parameter
        self.window_size = float(window_size)
        self.rng = rng if rng is not None else np.random.default_rng()

    def operate(self) -> float:
        index = uniform_index(self.rng, self.parameter.dimension)
        new_value = self.parameter.get_value(index) + self.rng.uniform(-self.window_size, self.window_size)

        if not math.isfinite(new_value):
            raise OperatorFailedError(
                f"proposed value {new_value} for '{self.parameter.id}' is not finite"
            )
        if new_value < self.parameter.lower or new_value > self.parameter.upper:
            raise OperatorFailedError(
                f"proposed value {new_value} outside bounds of '{self.parameter.id}'"
            )

        self.parameter.set_value(index, new_value)
        return 0.0

    def get_coercable_parameter(self) -> float:
        return math.log(self.window_size)

    def set_coercable_parameter(self, value: float) -> None:
        try:
            window_size = math.exp(value)
        except OverflowError:
            return
        # uniform(-w, w) needs 2w to be finite; log(0) is undefined
        if window_size > 0.0 and math.isfinite(2.0 * window_size):
            self.window_size = window_size

    @property
    def raw_parameter(self) -> float:
        return self.window_size
