"""
Chain Listeners and Delegates.

Passive observers notified synchronously, in registration order, on the
sampling thread. They are used for logging and tracing, never for control
flow (apart from requesting a stop), and should return quickly since they
gate throughput.

Listener hooks:
    best_state(iteration, model)    - a new best score was accepted
    current_state(iteration, model) - fired at the top of every iteration
    finished(total_iterations)      - the chain was terminated

Delegate hooks:
    current_state(iteration)        - fired at the top of every iteration
    current_state_end(iteration)    - fired after the iteration completed
    finished(total_iterations)      - the chain was terminated

Provided implementations:
- LoggingListener: periodic progress lines through the package logger
- ScoreTrace: records the joint density score every `every` iterations
"""

from typing import List, Optional

import numpy as np

import logging
logger = logging.getLogger('chainmc')


class ChainListener:
    """Listener base class; every hook is a no-op."""

    def best_state(self, iteration: int, model) -> None:
        pass

    def current_state(self, iteration: int, model) -> None:
        pass

    def finished(self, total_iterations: int) -> None:
        pass


class ChainDelegate:
    """Delegate base class; every hook is a no-op."""

    def current_state(self, iteration: int) -> None:
        pass

    def current_state_end(self, iteration: int) -> None:
        pass

    def finished(self, total_iterations: int) -> None:
        pass


class LoggingListener(ChainListener):
    """
    Logs the joint density every `log_every` iterations and on new best states.

    Args:
        joint_density: Density whose (cached) score is reported
        log_every: Logging period in iterations (> 0)
    """

    def __init__(self, joint_density, log_every: int):
        if log_every < 1:
            raise ValueError(f"log_every must be >= 1, got {log_every}")
        self.joint_density = joint_density
        self.log_every = log_every

    def current_state(self, iteration: int, model) -> None:
        if iteration % self.log_every == 0:
            logger.info(f"  state {iteration}: score {self.joint_density.get_log_likelihood():.4f}")

    def best_state(self, iteration: int, model) -> None:
        logger.debug(f"  state {iteration}: new best score {self.joint_density.get_log_likelihood():.4f}")

    def finished(self, total_iterations: int) -> None:
        logger.info(f"  chain finished after {total_iterations} states")


class ScoreTrace(ChainListener):
    """
    Records (iteration, score) pairs every `every` iterations.

    The score is read at the top of the iteration, i.e. it is the committed
    score of the state the chain is in.
    """

    def __init__(self, joint_density, every: int = 1):
        if every < 1:
            raise ValueError(f"every must be >= 1, got {every}")
        self.joint_density = joint_density
        self.every = every
        self.iterations: List[int] = []
        self.scores: List[float] = []
        self.total_iterations: Optional[int] = None

    def current_state(self, iteration: int, model) -> None:
        if iteration % self.every == 0:
            self.iterations.append(iteration)
            self.scores.append(self.joint_density.get_log_likelihood())

    def finished(self, total_iterations: int) -> None:
        self.total_iterations = total_iterations

    def to_array(self) -> np.ndarray:
        """Trace as an (n, 2) array of [iteration, score]."""
        return np.column_stack([
            np.asarray(self.iterations, dtype=np.float64),
            np.asarray(self.scores, dtype=np.float64),
        ]) if self.iterations else np.zeros((0, 2))
