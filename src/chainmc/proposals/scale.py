"""
Scale Operator

Multiplicative move on one element of a positive parameter.

Proposal: x'_i = c * x_i, with c ~ U(s, 1/s) and i chosen uniformly
where:
    - s in (0, 1) is the scale factor (closer to 1 = smaller moves)

Hastings ratio: -log(c)

Coercable parameter: log(1/s - 1). Smaller s means larger moves and lower
acceptance, and log(1/s - 1) grows as s shrinks.
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


class ScaleOperator(CoercableOperator):
    """
    Scale move with a coercable scale factor.

    Args:
        parameter: Parameter to update (values should be positive)
        scale_factor: s in (0, 1)
        weight: Schedule weight
        mode: CoercionMode
        target_acceptance_probability: Coercion target
        rng: numpy Generator
        name: Operator name (default 'scale(<parameter id>)')
    """

    def __init__(self, parameter: Parameter, scale_factor: float = 0.75, weight: float = 1.0,
                 mode: CoercionMode = CoercionMode.DEFAULT,
                 target_acceptance_probability: float = DEFAULT_TARGET_ACCEPTANCE,
                 rng: Optional[np.random.Generator] = None,
                 name: Optional[str] = None):
        if not 0.0 < scale_factor < 1.0:
            raise ValueError(f"scale_factor must be in (0, 1), got {scale_factor}")
        super().__init__(weight=weight, mode=mode,
                         target_acceptance_probability=target_acceptance_probability,
                         name=name if name else f"scale({parameter.id})")
        self.parameter = parameter
        self.scale_factor = float(scale_factor)
        self.rng = rng if rng is not None else np.random.default_rng()

    def operate(self) -> float:
        s = self.scale_factor
        scale = s + self.rng.random() * (1.0 / s - s)

        index = uniform_index(self.rng, self.parameter.dimension)
        new_value = self.parameter.get_value(index) * scale

        if not math.isfinite(new_value):
            raise OperatorFailedError(
                f"proposed value {new_value} for '{self.parameter.id}' is not finite"
            )
        if new_value < self.parameter.lower or new_value > self.parameter.upper:
            raise OperatorFailedError(
                f"proposed value {new_value} outside bounds of '{self.parameter.id}'"
            )

        self.parameter.set_value(index, new_value)
        return -math.log(scale)

    def get_coercable_parameter(self) -> float:
        return math.log(1.0 / self.scale_factor - 1.0)

    def set_coercable_parameter(self, value: float) -> None:
        # s must stay strictly inside (0, 1) with a finite 1/s
        try:
            scale_factor = 1.0 / (math.exp(value) + 1.0)
            valid = 0.0 < scale_factor < 1.0 and math.isfinite(1.0 / scale_factor)
        except OverflowError:
            return
        if valid:
            self.scale_factor = scale_factor

    @property
    def raw_parameter(self) -> float:
        return self.scale_factor
