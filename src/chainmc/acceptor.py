"""
Acceptors

An acceptor maps (old score, new score, log Hastings ratio) to an
AcceptDecision. The decision also carries log_r, the log acceptance ratio
capped at zero, which the engine uses for adaptive coercion.
"""

import math
from collections import namedtuple
from typing import Optional

import numpy as np


AcceptDecision = namedtuple('AcceptDecision', ['accepted', 'log_r'])
AcceptDecision.__doc__ = "Outcome of one acceptance test: (accepted, log_r)."


class MetropolisHastingsAcceptor:
    """
    Metropolis-Hastings criterion with an optional temperature.

        log_r = min(0, (new - old) / temperature + hastings_ratio)
        accept if log_r >= log(u),  u ~ U(0, 1]

    A new score of -inf is never accepted. A NaN log_r is never accepted.
    """

    def __init__(self, temperature: float = 1.0,
                 rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None):
        if temperature <= 0:
            raise ValueError(f"temperature must be > 0, got {temperature}")
        self.temperature = float(temperature)
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def accept(self, old_score: float, new_score: float, hastings_ratio: float) -> AcceptDecision:
        log_r = (new_score - old_score) / self.temperature + hastings_ratio
        if log_r > 0.0:
            log_r = 0.0
        # 1 - U[0, 1) lies in (0, 1], so the log is always finite
        accepted = bool(log_r >= math.log(1.0 - self.rng.random()))
        return AcceptDecision(accepted, log_r)
