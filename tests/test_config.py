"""
Configuration Tests

Tests for chain configuration defaults, validation and chain construction.
Run with: pytest tests/test_config.py -v
"""

import logging
import math

import numpy as np
import pytest

from chainmc import MarkovChain, MetropolisHastingsAcceptor, Parameter, SimpleOperatorSchedule
from chainmc.error_handling import diagnose_chain_issues, validate_chain_config
from chainmc.mcmc.config import build_default_acceptor, clean_chain_config, configure_chain

from .conftest import FailingOperator, ShiftGibbsOperator, normal_density


# ============================================================================
# DEFAULTS
# ============================================================================

class TestCleanChainConfig:
    """Test default filling."""

    def test_defaults(self):
        config = clean_chain_config({'chain_length': 10})

        assert config == {
            'chain_length': 10,
            'full_evaluation_count': 2000,
            'min_operator_count_for_full_evaluation': 1,
            'evaluation_test_threshold': 0.1,
            'use_coercion': True,
            'coercion_delay': 0,
            'log_every': 0,
            'rng_seed': 42,
            'use_double': True,
            'impossible_state_allowed': (),
        }

    def test_does_not_mutate_input(self):
        original = {'chain_length': 10, 'use_coercion': False}
        config = clean_chain_config(original)

        assert original == {'chain_length': 10, 'use_coercion': False}
        assert config['use_coercion'] is False

    def test_unknown_key_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger='chainmc'):
            config = clean_chain_config({'chain_length': 10, 'chain_lenght': 5})

        assert "Ignoring unknown chain config keys: ['chain_lenght']" in caplog.text
        assert config['chain_lenght'] == 5


# ============================================================================
# VALIDATION
# ============================================================================

class TestValidateChainConfig:
    """Test that invalid configurations are rejected."""

    def test_valid_config(self):
        validate_chain_config(clean_chain_config({'chain_length': 100, 'coercion_delay': 100}))

    def test_missing_chain_length(self):
        with pytest.raises(ValueError, match="Missing required config key: 'chain_length'"):
            validate_chain_config({'full_evaluation_count': 10})

    def test_all_errors_reported_together(self):
        config = {
            'chain_length': -1,
            'full_evaluation_count': -5,
            'min_operator_count_for_full_evaluation': -1,
            'log_every': -2,
            'use_coercion': 1,
        }
        with pytest.raises(ValueError) as exc_info:
            validate_chain_config(config)

        message = str(exc_info.value)
        assert message.startswith("Invalid chain configuration:")
        for fragment in ["chain_length must be >= 0",
                         "full_evaluation_count must be >= 0",
                         "min_operator_count_for_full_evaluation must be >= 0",
                         "log_every must be >= 0",
                         "use_coercion must be True or False"]:
            assert fragment in message

    @pytest.mark.parametrize("threshold", [math.inf, math.nan, -0.1])
    def test_bad_threshold(self, threshold):
        with pytest.raises(ValueError, match="evaluation_test_threshold"):
            validate_chain_config({'chain_length': 10, 'evaluation_test_threshold': threshold})

    def test_coercion_delay_limits(self):
        with pytest.raises(ValueError, match="cannot exceed chain_length"):
            validate_chain_config({'chain_length': 10, 'coercion_delay': 11})
        with pytest.raises(ValueError, match="coercion_delay must be >= 0"):
            validate_chain_config({'chain_length': 10, 'coercion_delay': -1})


# ============================================================================
# CHAIN CONSTRUCTION
# ============================================================================

class TestConfigureChain:
    """Test building a MarkovChain from a config dict."""

    def test_settings_applied(self, scalar_parameter):
        config = {
            'chain_length': 10,
            'full_evaluation_count': 7,
            'min_operator_count_for_full_evaluation': 3,
            'evaluation_test_threshold': 0.5,
            'use_coercion': False,
            'impossible_state_allowed': ['shift'],
        }
        schedule = SimpleOperatorSchedule([FailingOperator()], seed=0)
        chain = configure_chain(config, normal_density(scalar_parameter), schedule)

        assert isinstance(chain, MarkovChain)
        assert chain.full_evaluation_count == 7
        assert chain.min_operator_count_for_full_evaluation == 3
        assert chain.evaluation_test_threshold == 0.5
        assert chain.use_coercion is False
        assert chain.impossible_state_allowed == frozenset({'shift'})
        assert chain.schedule is schedule
        assert chain.current_score == pytest.approx(-0.125)

    def test_invalid_config_raises(self, scalar_parameter):
        schedule = SimpleOperatorSchedule([FailingOperator()], seed=0)
        with pytest.raises(ValueError, match="Invalid chain configuration"):
            configure_chain({'chain_length': -1}, normal_density(scalar_parameter), schedule)

    def test_explicit_acceptor_used(self, scalar_parameter):
        acceptor = MetropolisHastingsAcceptor(temperature=2.0, seed=0)
        schedule = SimpleOperatorSchedule([FailingOperator()], seed=0)
        chain = configure_chain({'chain_length': 1}, normal_density(scalar_parameter),
                                schedule, acceptor=acceptor)
        assert chain.acceptor is acceptor

    def test_default_acceptor_seeded(self):
        first = build_default_acceptor({'rng_seed': 9})
        second = build_default_acceptor({'rng_seed': 9})

        draws_first = [first.accept(0.0, -1.0, 0.0).accepted for _ in range(50)]
        draws_second = [second.accept(0.0, -1.0, 0.0).accepted for _ in range(50)]

        assert draws_first == draws_second
        assert first.temperature == 1.0

    def test_configured_chain_runs(self):
        x = Parameter([0.0], id='x')
        op = ShiftGibbsOperator(x, shift=0.5)
        schedule = SimpleOperatorSchedule([op], seed=0)
        chain = configure_chain({'chain_length': 10}, normal_density(x), schedule)

        assert chain.run(10) == 10
        np.testing.assert_allclose(x.values, [5.0])


# ============================================================================
# POST-RUN DIAGNOSIS
# ============================================================================

def _results(current_score=-1.0, operators=None, trace=None, iterations=10):
    return {
        'iterations': iterations,
        'best_score': -0.5,
        'current_score': current_score,
        'operators': operators if operators is not None else [
            {'name': 'op', 'accept_count': 5, 'reject_count': 5},
        ],
        'trace': trace,
    }


class TestDiagnoseChainIssues:
    """Test post-run issue detection."""

    def test_clean_run(self):
        diagnostics = diagnose_chain_issues(_results(trace=np.array([-2.0, -1.0])), {'x': 1})

        assert diagnostics['issues'] == []
        assert diagnostics['warnings'] == []
        assert diagnostics['x'] == 1
        assert "Best score: -0.5000" in diagnostics['info']

    def test_impossible_final_state(self):
        diagnostics = diagnose_chain_issues(_results(current_score=-math.inf), {})
        assert any("impossible state" in issue for issue in diagnostics['issues'])

    def test_non_finite_trace(self):
        diagnostics = diagnose_chain_issues(_results(trace=np.array([-1.0, math.nan])), {})
        assert any("NaN or Inf" in issue for issue in diagnostics['issues'])

    def test_never_accepted_and_stuck(self):
        operators = [{'name': 'rw', 'accept_count': 0, 'reject_count': 10}]
        diagnostics = diagnose_chain_issues(_results(operators=operators), {})

        assert "1 operator(s) never accepted a move: rw" in diagnostics['warnings']
        assert "Chain appears stuck (no move was ever accepted)" in diagnostics['warnings']
