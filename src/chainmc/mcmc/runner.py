"""
Chain Runner - full lifecycle of one chain.

This module provides run_mcmc() and its helper functions for a complete
sampling run: validate configuration, build the chain, optionally resume from
a checkpoint, run a coercion-delay phase, run the remaining iterations,
terminate, report and optionally save a checkpoint.

Helper functions:
- _attach_observers: Register listeners/delegates (and the logging listener)
- _run_iterations: Coercion-delay phase followed by the main phase
- _build_results: Assemble the results dict
"""

import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from ..checkpoint_io import load_checkpoint, restore_from_checkpoint, save_checkpoint
from ..error_handling import diagnose_chain_issues, print_diagnostics, validate_chain_config
from ..registry import ConnectedRegistry
from .chain import MarkovChain
from .config import clean_chain_config, configure_chain
from .diagnostics import format_operator_analysis, operator_summaries, print_acceptance_summary
from .listeners import LoggingListener, ScoreTrace

import logging
logger = logging.getLogger('chainmc')

__all__ = [
    'run_mcmc',
]


def _attach_observers(chain: MarkovChain, chain_config: Dict[str, Any],
                      listeners: Sequence, delegates: Sequence) -> ScoreTrace:
    """Register observers in order; returns the score trace the runner keeps."""
    trace = ScoreTrace(chain.joint_density)
    chain.add_listener(trace)

    if chain_config['log_every'] > 0:
        chain.add_listener(LoggingListener(chain.joint_density, chain_config['log_every']))

    for listener in listeners:
        chain.add_listener(listener)
    for delegate in delegates:
        chain.add_delegate(delegate)

    return trace


def _run_iterations(chain: MarkovChain, chain_length: int, coercion_delay: int) -> float:
    """
    Run the chain, first with coercion disabled for `coercion_delay` iterations.

    Operator tallies are reset after the delay phase so that acceptance
    statistics and coercion step sizes start from the tuned phase.

    Returns:
        Wall clock time in seconds
    """
    start_time = time.perf_counter()

    remaining = chain_length
    if coercion_delay > 0:
        logger.info(f"Running {coercion_delay} iterations with coercion disabled...")
        chain.run(coercion_delay, disable_coercion=True)
        remaining -= coercion_delay

        schedule = chain.schedule
        for i in range(schedule.operator_count):
            schedule.get_operator(i).reset()

    # run(0) still checks the starting score and records initial/best scores
    if not chain.is_stopped:
        chain.run(remaining, disable_coercion=False)

    return time.perf_counter() - start_time


def _build_results(chain: MarkovChain, trace: ScoreTrace, wall_time: float,
                   iterations_run: int) -> Dict[str, Any]:
    """Assemble the results dict from the chain's final state."""
    return {
        'iterations': chain.current_length,
        'iterations_run': iterations_run,
        'initial_score': chain.initial_score,
        'best_score': chain.best_score,
        'current_score': chain.current_score,
        'stopped': chain.is_stopped,
        'wall_time': wall_time,
        'operators': operator_summaries(chain.schedule),
        'trace': trace.to_array()[:, 1],
        'trace_iterations': trace.to_array()[:, 0].astype(np.int64),
    }


def run_mcmc(
    chain_config: Dict[str, Any],
    joint_density,
    schedule,
    acceptor=None,
    listeners: Sequence = (),
    delegates: Sequence = (),
    registry: Optional[ConnectedRegistry] = None,
    resume_from: Optional[str] = None,
    save_checkpoint_to: Optional[str] = None,
) -> Tuple[Dict[str, Any], MarkovChain]:
    """
    Run one chain from configuration to results.

    Args:
        chain_config: Chain configuration dict (see mcmc.config)
        joint_density: Joint density to sample
        schedule: Operator schedule
        acceptor: Acceptance criterion (seeded Metropolis-Hastings if omitted)
        listeners: Extra chain listeners, notified after the built-in ones
        delegates: Chain delegates
        registry: Run-scoped ConnectedRegistry
        resume_from: Optional checkpoint to continue from
        save_checkpoint_to: Optional path to write a checkpoint after the run

    Returns:
        results: Dict with iterations, scores, stopped flag, wall_time,
            per-operator summaries, score trace and diagnostics
        chain: The MarkovChain, for further runs or inspection

    Notes:
        - chain_length counts iterations run by this call; when resuming, the
          chain's iteration counter continues from the checkpoint
        - the coercion delay applies to this call only
    """
    # --- 1. VALIDATE CONFIGURATION ---
    logger.info("Validating chain configuration...")
    chain_config = clean_chain_config(chain_config)
    try:
        validate_chain_config(chain_config)
        logger.info("Configuration is valid")
    except ValueError as e:
        logger.info(f"Invalid configuration:\n{e}")
        raise

    # --- 2. BUILD CHAIN ---
    chain = configure_chain(chain_config, joint_density, schedule, acceptor, registry)

    # --- 3. RESUME (if requested) ---
    if resume_from is not None:
        logger.info(f"Loading checkpoint from {resume_from}...")
        restore_from_checkpoint(chain, load_checkpoint(resume_from))

    trace = _attach_observers(chain, chain_config, listeners, delegates)

    chain_length = chain_config['chain_length']
    start_length = chain.current_length
    logger.info(f"Starting chain of {chain_length} states at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    # --- 4. RUN ---
    wall_time = _run_iterations(chain, chain_length, chain_config['coercion_delay'])
    chain.terminate()

    iterations_run = chain.current_length - start_length
    logger.info("\n--- Chain Run Summary ---")
    logger.info(f"  Iterations: {iterations_run}{' (stopped early)' if chain.is_stopped else ''}")
    logger.info(f"  Total Wall Time: {timedelta(seconds=int(wall_time))} ({wall_time:.2f}s)")
    if iterations_run > 0:
        logger.info(f"  Per-iteration: {1000.0 * wall_time / iterations_run:.4f}ms")

    print_acceptance_summary(chain.schedule)
    logger.info("\n" + format_operator_analysis(chain.schedule))

    # --- 5. POST-RUN DIAGNOSTICS ---
    results = _build_results(chain, trace, wall_time, iterations_run)

    diagnostics = {
        'wall_time': wall_time,
        'total_iterations': chain.current_length,
    }
    logger.info("\n--- Post-Run Diagnostics ---")
    diagnostics = diagnose_chain_issues(results, diagnostics)
    print_diagnostics(diagnostics)
    results['diagnostics'] = diagnostics

    # --- 6. SAVE CHECKPOINT ---
    if save_checkpoint_to is not None:
        save_checkpoint(save_checkpoint_to, chain, metadata={'chain_length': chain_length})

    return results, chain
