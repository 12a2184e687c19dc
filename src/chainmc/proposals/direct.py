"""
Direct Sample Operator

Gibbs-style operator that replaces a parameter with a draw from its exact
full conditional, supplied by the model as a function:

    sampler_fn(rng, current_values) -> new_values

Because the draw is exact, the engine accepts it without a Metropolis test.
The Hastings ratio is 0. A draw outside the parameter's bounds, or of the
wrong shape, raises OperatorFailedError.
"""

from typing import Callable, Optional

import numpy as np

from ..error_handling import OperatorFailedError
from ..model import Parameter
from ..operators import GibbsOperator


class DirectSampleOperator(GibbsOperator):
    """
    Exact conditional draw for one parameter.

    Args:
        parameter: Parameter to update
        sampler_fn: fn(rng, current_values) -> new values
        weight: Schedule weight
        rng: numpy Generator
        name: Operator name (default 'direct(<parameter id>)')
    """

    def __init__(self, parameter: Parameter, sampler_fn: Callable, weight: float = 1.0,
                 rng: Optional[np.random.Generator] = None,
                 name: Optional[str] = None):
        super().__init__(weight=weight, name=name if name else f"direct({parameter.id})")
        self.parameter = parameter
        self.sampler_fn = sampler_fn
        self.rng = rng if rng is not None else np.random.default_rng()

    def operate(self) -> float:
        draw = np.atleast_1d(np.asarray(self.sampler_fn(self.rng, self.parameter.values),
                                        dtype=np.float64))
        if draw.shape != (self.parameter.dimension,):
            raise OperatorFailedError(
                f"sampler for '{self.parameter.id}' returned shape {draw.shape}"
            )
        if np.any(draw < self.parameter.lower) or np.any(draw > self.parameter.upper):
            raise OperatorFailedError(f"draw outside bounds of '{self.parameter.id}'")

        self.parameter.set_values(draw)
        return 0.0
