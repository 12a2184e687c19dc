"""
Markov Chain Engine.

MarkovChain drives one chain through repeated propose / evaluate /
accept-or-reject cycles. It is agnostic to the model (any joint density with
get_log_likelihood/make_dirty) and to the proposal mechanisms (any operator
exposing the capability flags in chainmc.operators).

Per iteration:
    1. notify listeners/delegates, honour a pending stop request
    2. pick an operator from the schedule
    3. checkpoint every connected storable
    4. propose (OperatorFailedError = rejection)
    5. evaluate the joint density; +inf/NaN is logged and becomes -inf
    6. accept (guaranteed-accept operators) or ask the acceptor
    7. commit or roll back every storable, update the operator tally
    8. during warm-up, re-evaluate from scratch and compare
    9. coerce the operator's tunable parameter
   10. close the warm-up window when every operator has enough decisions

The engine is single-threaded. request_stop() may be called from any thread;
the flag is read once per iteration boundary, so an in-flight iteration
always completes.
"""

import math
import sys
import time
from typing import Iterable, Optional

import numpy as np

from ..error_handling import (
    EvaluationMismatchError,
    NumericalLikelihoodError,
    OperatorFailedError,
    ZeroInitialLikelihoodError,
)
from ..operators import CoercionMode
from ..registry import ConnectedRegistry
from .types import ChainState

import logging
logger = logging.getLogger('chainmc')

__all__ = [
    'MarkovChain',
    'EVALUATION_TEST_THRESHOLD',
    'DEFAULT_FULL_EVALUATION_COUNT',
    'DEFAULT_MIN_OPERATOR_COUNT',
]


# Largest tolerated |full re-evaluation - tracked score| during warm-up
EVALUATION_TEST_THRESHOLD = 1e-1

# Iterations run in diagnostic (full evaluation) mode
DEFAULT_FULL_EVALUATION_COUNT = 2000

# Decisions each operator must have made before diagnostic mode can end
DEFAULT_MIN_OPERATOR_COUNT = 1

# log_r used for coercion when no acceptance test was made (probability 0)
NO_DECISION_LOG_R = -sys.float_info.max


def _diagnosis(density) -> str:
    return getattr(density, 'diagnosis', '') or ''


class MarkovChain:
    """
    A single Markov chain over a joint density.

    Args:
        joint_density: Density evaluated each iteration
        schedule: Operator schedule
        acceptor: Acceptance criterion for non-Gibbs operators
        full_evaluation_count: Iterations in diagnostic mode (0 disables it)
        min_operator_count_for_full_evaluation: Accept+reject count every
            operator needs before diagnostic mode can end
        evaluation_test_threshold: Tolerance of the diagnostic comparison
        use_coercion: Chain-wide coercion flag for operators in DEFAULT mode
        registry: Run-scoped ConnectedRegistry (a new one if omitted)
        impossible_state_allowed: Names (operator_name or class name) of
            guaranteed-accept operators that may legitimately produce a
            zero-density state without a warning
    """

    def __init__(self, joint_density, schedule, acceptor,
                 full_evaluation_count: int = DEFAULT_FULL_EVALUATION_COUNT,
                 min_operator_count_for_full_evaluation: int = DEFAULT_MIN_OPERATOR_COUNT,
                 evaluation_test_threshold: float = EVALUATION_TEST_THRESHOLD,
                 use_coercion: bool = True,
                 registry: Optional[ConnectedRegistry] = None,
                 impossible_state_allowed: Iterable[str] = ()):
        self.joint_density = joint_density
        self._schedule = schedule
        self._acceptor = acceptor

        self.full_evaluation_count = int(full_evaluation_count)
        self.min_operator_count_for_full_evaluation = int(min_operator_count_for_full_evaluation)
        self.evaluation_test_threshold = float(evaluation_test_threshold)
        self.use_coercion = bool(use_coercion)
        self.impossible_state_allowed = frozenset(impossible_state_allowed)

        self.registry = registry if registry is not None else ConnectedRegistry()
        self.registry.connect(joint_density)
        self.registry.warn_unconnected()

        self._listeners = []
        self._delegates = []
        self._using_full_evaluation = False

        self._state = ChainState()
        self._state.current_score = self.evaluate()
        self._state.initial_score = self._state.current_score

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    def run(self, length: int, disable_coercion: bool = False) -> int:
        """
        Run the chain for `length` more iterations.

        Args:
            length: Number of iterations to run
            disable_coercion: Skip coercion for this call only

        Returns:
            The chain's total iteration count after this call

        Raises:
            ZeroInitialLikelihoodError: Starting score is -inf
            NumericalLikelihoodError: Starting score is +inf or NaN
            EvaluationMismatchError: A warm-up re-evaluation disagreed with the
                tracked score (raised when the warm-up window closes)
        """
        state = self._state
        density = self.joint_density

        density.make_dirty()
        state.current_score = self.evaluate()
        self._check_initial_score(state.current_score)

        current_state = state.current_length
        model = self.model

        if current_state == 0:
            state.initial_score = state.current_score
            state.best_score = state.current_score
            self._fire_best_state(current_state, model)

        state.stop_requested = False
        state.is_stopped = False

        storables = self.registry.storables
        end_state = current_state + length

        # Diagnostic mode is scoped to this call
        self._using_full_evaluation = self.full_evaluation_count > 0
        full_evaluation_error = False

        while current_state < end_state:
            self._fire_current_state(current_state, model)

            if state.stop_requested:
                state.is_stopped = True
                break

            operator = self._schedule.get_operator(self._schedule.get_next_operator_index())

            old_score = state.current_score
            diagnosis_start = _diagnosis(density) if self._using_full_evaluation else ''

            for storable in storables:
                storable.store_state()

            operator_succeeded = True
            hastings_ratio = 0.0
            try:
                if operator.uses_density:
                    hastings_ratio = operator.operate(density)
                else:
                    hastings_ratio = operator.operate()
            except OperatorFailedError:
                operator_succeeded = False

            accept = False
            log_r = NO_DECISION_LOG_R
            score = math.nan

            if operator_succeeded:
                score = self._evaluate_proposal(operator, current_state)

                if self._using_full_evaluation:
                    diagnosis_operator = _diagnosis(density)
                    if not self._verify_score(
                            score, current_state, operator, diagnosis_operator,
                            "State was not correctly calculated after an operator move",
                            "Likelihood evaluation", "Full likelihood evaluation"):
                        full_evaluation_error = True

                if operator.is_guaranteed_accept:
                    accept = True
                else:
                    decision = self._acceptor.accept(old_score, score, hastings_ratio)
                    accept, log_r = decision.accepted, decision.log_r

            if accept:
                operator.accept(score - old_score)
                for storable in storables:
                    storable.accept_state()
                state.current_score = score

                if score > state.best_score:
                    state.best_score = score
                    self._fire_best_state(current_state, model)
            else:
                operator.reject()
                for storable in storables:
                    storable.restore_state()

                if self._using_full_evaluation:
                    if not self._verify_score(
                            old_score, current_state, operator, diagnosis_start,
                            "State was not correctly restored after reject step",
                            "Likelihood before", "Likelihood after"):
                        full_evaluation_error = True

            if not disable_coercion and operator.is_coercable and self._is_coercable(operator):
                self._coerce_acceptance_probability(operator, log_r)

            if self._using_full_evaluation:
                if (self._schedule.get_minimum_accept_and_reject_count()
                        >= self.min_operator_count_for_full_evaluation
                        and current_state >= self.full_evaluation_count):
                    self._using_full_evaluation = False
                    if full_evaluation_error:
                        raise EvaluationMismatchError(
                            "One or more evaluation errors occurred during the test phase of this\n"
                            "run. These errors imply critical errors which may produce incorrect\n"
                            "results."
                        )

            self._fire_current_state_end(current_state)

            current_state += 1

        state.current_length = current_state

        return current_state

    def _check_initial_score(self, score: float) -> None:
        if score == -math.inf:
            raise ZeroInitialLikelihoodError(self._with_diagnosis("The initial likelihood is zero"))
        if score == math.inf or math.isnan(score):
            raise NumericalLikelihoodError(
                self._with_diagnosis("A likelihood returned with a numerical error")
            )

    def _with_diagnosis(self, message: str) -> str:
        diagnosis = _diagnosis(self.joint_density)
        return f"{message}: {diagnosis}" if diagnosis else f"{message}."

    def _evaluate_proposal(self, operator, current_state: int) -> float:
        start = time.perf_counter()
        score = self.evaluate()
        operator.add_evaluation_time((time.perf_counter() - start) * 1000.0)

        if score == -math.inf and operator.is_guaranteed_accept:
            if not self._is_impossible_state_allowed(operator):
                logger.warning(
                    f"State {current_state}: A Gibbs operator, {operator.operator_name}, "
                    f"returned a state with zero likelihood."
                )

        if score == math.inf or math.isnan(score):
            diagnosis = _diagnosis(self.joint_density)
            logger.error(
                f"State {current_state}: A likelihood returned with a numerical error"
                + (f":\n{diagnosis}" if diagnosis else ".")
            )
            # Downgraded so the state is rejected and sampling continues
            score = -math.inf

        return score

    def _verify_score(self, expected: float, current_state: int, operator,
                      diagnosis_before: str, message: str,
                      expected_label: str, test_label: str) -> bool:
        """Re-evaluate from scratch and compare with the tracked score."""
        self.joint_density.make_dirty()
        test_score = self.evaluate()
        # Same downgrade as the tracked score
        if test_score == math.inf or math.isnan(test_score):
            test_score = -math.inf

        if abs(test_score - expected) > self.evaluation_test_threshold:
            diagnosis_after = _diagnosis(self.joint_density)
            details = (f"\n\nDetails\nBefore: {diagnosis_before}\nAfter: {diagnosis_after}"
                       if diagnosis_before else "")
            logger.error(
                f"State {current_state}: {message}.\n"
                f"{expected_label}: {expected}\n"
                f"{test_label}: {test_score}\n"
                f"Operator: {operator!r} {operator.operator_name}"
                f"{details}\n"
            )
            return False
        return True

    def _is_impossible_state_allowed(self, operator) -> bool:
        return (operator.operator_name in self.impossible_state_allowed
                or type(operator).__name__ in self.impossible_state_allowed)

    # =========================================================================
    # ADAPTIVE COERCION
    # =========================================================================

    def _is_coercable(self, operator) -> bool:
        return (operator.mode == CoercionMode.COERCION_ON
                or (operator.mode != CoercionMode.COERCION_OFF and self.use_coercion))

    def _coerce_acceptance_probability(self, operator, log_r: float) -> None:
        """
        Robbins-Monro update of the operator's tunable parameter.

        Relies on the parameter being a decreasing function of acceptance
        probability. Updates leaving the representable range are dropped.
        """
        p = operator.get_coercable_parameter()
        i = self._schedule.get_optimization_transform(operator.operation_count)
        target = operator.target_acceptance_probability

        with np.errstate(over='ignore'):
            acceptance = float(np.exp(log_r))
        new_p = p + (1.0 / (i + 1.0)) * (acceptance - target)

        if -sys.float_info.max < new_p < sys.float_info.max:
            operator.set_coercable_parameter(new_p)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def reset(self) -> None:
        """Zero the iteration counter and every operator's tally."""
        self._state.current_length = 0
        for i in range(self._schedule.operator_count):
            self._schedule.get_operator(i).reset()

    def terminate(self) -> None:
        self._fire_finished(self._state.current_length)

    def request_stop(self) -> None:
        """Ask the chain to stop at the next iteration boundary. Thread-safe."""
        self._state.stop_requested = True

    def evaluate(self) -> float:
        return self.joint_density.get_log_likelihood()

    def set_current_length(self, current_length: int) -> None:
        self._state.current_length = int(current_length)

    def set_reference_scores(self, initial_score: float, best_score: float) -> None:
        """Restore initial and best scores, e.g. when resuming from a checkpoint."""
        self._state.initial_score = float(initial_score)
        self._state.best_score = float(best_score)

    @property
    def model(self):
        return getattr(self.joint_density, 'model', self.joint_density)

    @property
    def schedule(self):
        return self._schedule

    @property
    def acceptor(self):
        return self._acceptor

    @property
    def initial_score(self) -> float:
        return self._state.initial_score

    @property
    def best_score(self) -> float:
        return self._state.best_score

    @property
    def current_score(self) -> float:
        return self._state.current_score

    @property
    def current_length(self) -> int:
        return self._state.current_length

    @property
    def is_stopped(self) -> bool:
        return self._state.is_stopped

    @property
    def using_full_evaluation(self) -> bool:
        return self._using_full_evaluation

    # =========================================================================
    # LISTENERS AND DELEGATES
    # =========================================================================

    def add_listener(self, listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener) -> None:
        self._listeners.remove(listener)

    def add_delegate(self, delegate) -> None:
        self._delegates.append(delegate)

    def remove_delegate(self, delegate) -> None:
        self._delegates.remove(delegate)

    def _fire_best_state(self, iteration: int, model) -> None:
        for listener in tuple(self._listeners):
            listener.best_state(iteration, model)

    def _fire_current_state(self, iteration: int, model) -> None:
        for listener in tuple(self._listeners):
            listener.current_state(iteration, model)
        for delegate in tuple(self._delegates):
            delegate.current_state(iteration)

    def _fire_current_state_end(self, iteration: int) -> None:
        for delegate in tuple(self._delegates):
            delegate.current_state_end(iteration)

    def _fire_finished(self, chain_length: int) -> None:
        for listener in tuple(self._listeners):
            listener.finished(chain_length)
        for delegate in tuple(self._delegates):
            delegate.finished(chain_length)
