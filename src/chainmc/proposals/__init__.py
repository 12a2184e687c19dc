"""
Generic Operators for MCMC Sampling

Model-agnostic operators that work on any Parameter:
- RandomWalkOperator: uniform window random walk, coercable log-window
- ScaleOperator: multiplicative move for positive parameters, coercable
- DirectSampleOperator: exact conditional (Gibbs) draw from a user sampler

Each operator computes its own log Hastings ratio and raises
OperatorFailedError for moves outside the parameter's bounds. Model-specific
operators subclass the bases in chainmc.operators in the same way.
"""

from .rand_walk import RandomWalkOperator
from .scale import ScaleOperator
from .direct import DirectSampleOperator

__all__ = [
    'RandomWalkOperator',
    'ScaleOperator',
    'DirectSampleOperator',
]
