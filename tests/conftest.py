"""
Pytest configuration and shared fixtures for chainmc tests.
"""

import math

import pytest
import numpy as np

from chainmc.acceptor import AcceptDecision
from chainmc.densities import Density, FunctionDensity
from chainmc.error_handling import OperatorFailedError
from chainmc.model import Parameter
from chainmc.operators import CoercableOperator, CoercionMode, GibbsOperator, MCMCOperator
from chainmc.mcmc.listeners import ChainDelegate, ChainListener


# ============================================================================
# HELPER DENSITIES
# ============================================================================

class ConstantDensity(Density):
    """Returns the same score whatever its parameters hold."""

    def __init__(self, value, parameters=(), id='constant'):
        super().__init__(id=id, parameters=parameters)
        self.value = value
        self.calls = 0

    def calculate_log_likelihood(self):
        self.calls += 1
        return self.value


class StaleDensity(Density):
    """
    Ignores parameter changes, so its cached score goes stale after a move.

    Only a make_dirty() forces recomputation.
    """

    def __init__(self, parameter, id='stale'):
        super().__init__(id=id, parameters=[parameter])
        self.parameter = parameter

    def variable_changed(self, variable, index):
        pass

    def calculate_log_likelihood(self):
        return -0.5 * float(np.sum(self.parameter.values ** 2))


def normal_density(parameter, id='normal'):
    """Standard normal log-density (up to a constant) over every element."""
    return FunctionDensity(lambda v: -0.5 * float(np.sum(v ** 2)), [parameter], id=id)


def nan_above_density(parameter, threshold, id='nan_above'):
    """Normal density that returns NaN once the first element exceeds threshold."""
    def fn(v):
        return math.nan if v[0] > threshold else -0.5 * float(np.sum(v ** 2))
    return FunctionDensity(fn, [parameter], id=id)


# ============================================================================
# HELPER OPERATORS
# ============================================================================

class ShiftGibbsOperator(GibbsOperator):
    """Guaranteed-accept operator adding a fixed amount to element 0."""

    def __init__(self, parameter, shift=1.0, name=None):
        super().__init__(name=name)
        self.parameter = parameter
        self.shift = shift

    def operate(self):
        self.parameter.set_value(0, self.parameter.get_value(0) + self.shift)
        return 0.0


class FailingOperator(MCMCOperator):
    """Always signals an operator failure, after perturbing its parameter."""

    def __init__(self, parameter=None, name=None):
        super().__init__(name=name)
        self.parameter = parameter
        self.calls = 0

    def operate(self):
        self.calls += 1
        if self.parameter is not None:
            self.parameter.set_value(0, 1e6)
        raise OperatorFailedError("always fails")


class SetValueOperator(MCMCOperator):
    """Sets element 0 to a fixed value and returns a fixed Hastings ratio."""

    def __init__(self, parameter, value, hastings_ratio=0.0, name=None):
        super().__init__(name=name)
        self.parameter = parameter
        self.value = value
        self.hastings_ratio = hastings_ratio

    def operate(self):
        self.parameter.set_value(0, self.value)
        return self.hastings_ratio


class DensityAwareOperator(MCMCOperator):
    """Records the density it was given; proposes no change."""

    uses_density = True

    def __init__(self, name=None):
        super().__init__(name=name)
        self.seen = []

    def operate(self, density):
        self.seen.append(density)
        return 0.0


class FakeCoercableOperator(CoercableOperator):
    """Coercable operator holding its parameter directly; proposes no change."""

    def __init__(self, parameter=0.0, mode=CoercionMode.DEFAULT, target=0.234,
                 fail=False, name=None):
        super().__init__(mode=mode, target_acceptance_probability=target, name=name)
        self.parameter = parameter
        self.fail = fail
        self.history = []

    def operate(self):
        if self.fail:
            raise OperatorFailedError("no move")
        return 0.0

    def get_coercable_parameter(self):
        return self.parameter

    def set_coercable_parameter(self, value):
        self.history.append(value)
        self.parameter = value


class FixedAcceptor:
    """Acceptor with a scripted decision."""

    def __init__(self, accepted=True, log_r=0.0):
        self.decision = AcceptDecision(accepted, log_r)
        self.calls = []

    def accept(self, old_score, new_score, hastings_ratio):
        self.calls.append((old_score, new_score, hastings_ratio))
        return self.decision


# ============================================================================
# HELPER OBSERVERS
# ============================================================================

class RecordingListener(ChainListener):
    """Appends every notification to a shared event list."""

    def __init__(self, events, tag='listener'):
        self.events = events
        self.tag = tag

    def best_state(self, iteration, model):
        self.events.append((self.tag, 'best', iteration))

    def current_state(self, iteration, model):
        self.events.append((self.tag, 'current', iteration))

    def finished(self, total_iterations):
        self.events.append((self.tag, 'finished', total_iterations))


class RecordingDelegate(ChainDelegate):
    """Appends every notification to a shared event list."""

    def __init__(self, events, tag='delegate'):
        self.events = events
        self.tag = tag

    def current_state(self, iteration):
        self.events.append((self.tag, 'current', iteration))

    def current_state_end(self, iteration):
        self.events.append((self.tag, 'end', iteration))

    def finished(self, total_iterations):
        self.events.append((self.tag, 'finished', total_iterations))


class ScoreRecorder(ChainListener):
    """Records the chain's best and current score at the top of every iteration."""

    def __init__(self):
        self.chain = None
        self.best_scores = []
        self.current_scores = []

    def current_state(self, iteration, model):
        self.best_scores.append(self.chain.best_score)
        self.current_scores.append(self.chain.current_score)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def rng_seed():
    """Default RNG seed for reproducible tests."""
    return 42


@pytest.fixture
def rng(rng_seed):
    return np.random.default_rng(rng_seed)


@pytest.fixture
def scalar_parameter():
    return Parameter([0.5], id='x')


@pytest.fixture
def vector_parameter():
    return Parameter([0.1, -0.2, 0.3], id='theta')


@pytest.fixture
def basic_chain_config():
    """Basic chain configuration for tests."""
    return {
        'chain_length': 200,
        'full_evaluation_count': 50,
        'rng_seed': 42,
        'use_double': True,
    }
