"""
Runner Tests

Tests for run_mcmc: results, coercion delay, observers, resume and
checkpointing, early stop and post-run diagnostics.
Run with: pytest tests/test_runner.py -v
"""

import logging
import math

import numpy as np
import pytest

from chainmc import Parameter, RandomWalkOperator, SimpleOperatorSchedule, run_mcmc
from chainmc.mcmc.listeners import ChainDelegate

from .conftest import (
    ConstantDensity,
    FailingOperator,
    FakeCoercableOperator,
    FixedAcceptor,
    RecordingDelegate,
    RecordingListener,
    normal_density,
)


def walk_model(seed=0):
    x = Parameter([0.5], id='x')
    op = RandomWalkOperator(x, 1.0, rng=np.random.default_rng(seed))
    schedule = SimpleOperatorSchedule([op], seed=seed)
    return normal_density(x), schedule, x, op


# ============================================================================
# BASIC RUN
# ============================================================================

class TestRunMcmc:
    """Test a complete run."""

    def test_results(self, basic_chain_config):
        density, schedule, _, op = walk_model()

        results, chain = run_mcmc(basic_chain_config, density, schedule)

        for key in ['iterations', 'initial_score', 'best_score', 'current_score',
                    'stopped', 'wall_time', 'operators', 'diagnostics', 'trace']:
            assert key in results
        assert results['iterations'] == 200
        assert results['iterations_run'] == 200
        assert results['stopped'] is False
        assert results['wall_time'] >= 0.0
        assert results['current_score'] == chain.current_score
        assert results['best_score'] >= results['current_score']
        assert results['initial_score'] == pytest.approx(-0.125)
        assert len(results['trace']) == 200
        np.testing.assert_array_equal(results['trace_iterations'], np.arange(200))
        assert results['trace'][0] == pytest.approx(-0.125)

        summary = results['operators'][0]
        assert summary['name'] == 'randomWalk(x)'
        assert summary['accept_count'] + summary['reject_count'] == 200
        assert summary['tuning'] == op.window_size

    def test_diagnostics_attached(self, basic_chain_config):
        density, schedule, _, _ = walk_model()
        results, _ = run_mcmc(basic_chain_config, density, schedule)

        diagnostics = results['diagnostics']
        assert diagnostics['issues'] == []
        assert "Total iterations: 200" in diagnostics['info']
        assert diagnostics['total_iterations'] == 200

    def test_stuck_chain_reported(self, caplog):
        density = ConstantDensity(-1.0)
        schedule = SimpleOperatorSchedule([FailingOperator(name='failing')], seed=0)

        with caplog.at_level(logging.WARNING, logger='chainmc'):
            results, _ = run_mcmc({'chain_length': 20}, density, schedule)

        warnings = results['diagnostics']['warnings']
        assert "1 operator(s) never accepted a move: failing" in warnings
        assert "Chain appears stuck (no move was ever accepted)" in warnings
        assert "Chain appears stuck" in caplog.text

    def test_invalid_config(self):
        density, schedule, _, _ = walk_model()
        with pytest.raises(ValueError, match="coercion_delay"):
            run_mcmc({'chain_length': 10, 'coercion_delay': 20}, density, schedule)

    def test_explicit_acceptor(self):
        density, schedule, x, op = walk_model()
        results, chain = run_mcmc({'chain_length': 30}, density, schedule,
                                  acceptor=FixedAcceptor(accepted=False, log_r=-5.0))

        assert op.accept_count == 0
        assert results['current_score'] == pytest.approx(-0.125)
        assert x.get_value(0) == 0.5

    def test_log_every(self, caplog):
        density, schedule, _, _ = walk_model()

        with caplog.at_level(logging.INFO, logger='chainmc'):
            run_mcmc({'chain_length': 20, 'log_every': 10}, density, schedule)

        assert "state 0: score" in caplog.text
        assert "state 10: score" in caplog.text
        assert "chain finished after 20 states" in caplog.text

    def test_operator_table_logged(self, caplog):
        density, schedule, _, _ = walk_model()

        with caplog.at_level(logging.INFO, logger='chainmc'):
            run_mcmc({'chain_length': 20}, density, schedule)

        assert "Pr(accept)" in caplog.text
        assert "randomWalk(x)" in caplog.text


# ============================================================================
# COERCION DELAY
# ============================================================================

class TestCoercionDelay:
    """Test the initial phase with coercion disabled."""

    def test_delay_phase(self):
        op = FakeCoercableOperator(parameter=1.0)
        schedule = SimpleOperatorSchedule([op], seed=0)

        results, chain = run_mcmc({'chain_length': 100, 'coercion_delay': 40},
                                  ConstantDensity(-1.0), schedule,
                                  acceptor=FixedAcceptor(accepted=True, log_r=0.0))

        assert len(op.history) == 60
        assert op.operation_count == 60
        assert chain.current_length == 100
        assert results['iterations'] == 100

    def test_step_sizes_restart_after_delay(self):
        op = FakeCoercableOperator(parameter=0.0, target=0.5)
        schedule = SimpleOperatorSchedule([op], seed=0)

        run_mcmc({'chain_length': 12, 'coercion_delay': 10},
                 ConstantDensity(-1.0), schedule,
                 acceptor=FixedAcceptor(accepted=True, log_r=0.0))

        # Tallies were reset, so the first coerced step is 1/2
        assert op.history == pytest.approx([0.25, 0.25 + 0.5 / 3.0])

    def test_whole_run_delayed(self):
        op = FakeCoercableOperator(parameter=1.0)
        schedule = SimpleOperatorSchedule([op], seed=0)

        run_mcmc({'chain_length': 30, 'coercion_delay': 30},
                 ConstantDensity(-1.0), schedule,
                 acceptor=FixedAcceptor(accepted=True, log_r=0.0))

        assert op.history == []
        assert op.operation_count == 0


# ============================================================================
# OBSERVERS AND STOPPING
# ============================================================================

class TestObserversAndStop:
    """Test user observers and early stop through the runner."""

    def test_user_observers_notified(self):
        events = []
        density, schedule, _, _ = walk_model()

        run_mcmc({'chain_length': 5}, density, schedule,
                 listeners=[RecordingListener(events)],
                 delegates=[RecordingDelegate(events)])

        currents = [e[2] for e in events if e[0] == 'listener' and e[1] == 'current']
        ends = [e[2] for e in events if e[0] == 'delegate' and e[1] == 'end']
        assert currents == [0, 1, 2, 3, 4]
        assert ends == [0, 1, 2, 3, 4]
        assert events[-2:] == [('listener', 'finished', 5), ('delegate', 'finished', 5)]

    def test_stop_reported(self, monkeypatch):
        from chainmc.mcmc import runner

        built = []
        configure = runner.configure_chain

        def configure_and_keep(*args, **kwargs):
            built.append(configure(*args, **kwargs))
            return built[-1]

        monkeypatch.setattr(runner, 'configure_chain', configure_and_keep)

        class Stopper(ChainDelegate):
            def current_state_end(self, iteration):
                if iteration == 4:
                    built[0].request_stop()

        density, schedule, _, _ = walk_model()
        results, chain = run_mcmc({'chain_length': 50}, density, schedule,
                                  delegates=[Stopper()])

        assert chain is built[0]
        assert results['stopped'] is True
        assert results['iterations'] == 5
        assert results['iterations_run'] == 5
        assert chain.is_stopped


# ============================================================================
# CHECKPOINT AND RESUME
# ============================================================================

class TestResume:
    """Test saving at the end of a run and resuming from it."""

    def test_save_and_resume(self, tmp_path):
        path = tmp_path / 'run.npz'
        density, schedule, x, op = walk_model(seed=1)
        first, first_chain = run_mcmc({'chain_length': 50}, density, schedule,
                                      save_checkpoint_to=str(path))
        assert path.exists()

        density2, schedule2, x2, op2 = walk_model(seed=2)
        second, second_chain = run_mcmc({'chain_length': 30}, density2, schedule2,
                                        resume_from=str(path))

        assert second['iterations'] == 80
        assert second['iterations_run'] == 30
        assert second['initial_score'] == first['initial_score']
        assert second['best_score'] >= first['best_score']
        assert op2.operation_count == op.operation_count + 30
        np.testing.assert_array_equal(second['trace_iterations'], np.arange(50, 80))
        assert second['trace'][0] == pytest.approx(first['current_score'])

    def test_resume_missing_checkpoint(self, tmp_path):
        density, schedule, _, _ = walk_model()
        with pytest.raises(FileNotFoundError):
            run_mcmc({'chain_length': 5}, density, schedule,
                     resume_from=str(tmp_path / 'nothing.npz'))

    def test_zero_length_run(self):
        x = Parameter([0.5], id='x')
        density = ConstantDensity(-1.0, [x])
        results, chain = run_mcmc({'chain_length': 0}, density,
                                  SimpleOperatorSchedule([FailingOperator()], seed=0))

        assert results['iterations'] == 0
        assert results['initial_score'] == -1.0
        assert results['best_score'] == -1.0
        assert math.isfinite(results['current_score'])
        assert len(results['trace']) == 0
        assert results['diagnostics']['issues'] == []
