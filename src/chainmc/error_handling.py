"""
Error Handling and Validation Utilities for the Chain Engine

This module defines the exception taxonomy raised by the chain engine and
provides validation and post-run diagnostic helpers.

Exception hierarchy:
    ChainError (RuntimeError)
        InitialLikelihoodError (also ValueError) - bad starting state
            ZeroInitialLikelihoodError - initial score is -inf
            NumericalLikelihoodError  - initial score is +inf or NaN
        EvaluationMismatchError - full re-evaluation disagreed during warm-up
    OperatorFailedError - expected, non-fatal proposal failure
"""

from typing import Any, Dict

import numpy as np

import logging
logger = logging.getLogger('chainmc')


class ChainError(RuntimeError):
    """Base class for fatal chain engine errors."""


class InitialLikelihoodError(ChainError, ValueError):
    """The starting state cannot be sampled from."""


class ZeroInitialLikelihoodError(InitialLikelihoodError):
    """The joint density of the starting state is zero (log score is -inf)."""


class NumericalLikelihoodError(InitialLikelihoodError):
    """The joint density of the starting state is +inf or NaN."""


class EvaluationMismatchError(ChainError):
    """
    One or more full re-evaluations disagreed with the tracked score.

    Raised when the warm-up diagnostic window closes, not at the moment of
    the mismatch, so every mismatch of the window is logged first.
    """


class OperatorFailedError(Exception):
    """
    Raised by an operator whose proposal cannot be made (e.g. out of bounds).

    The engine treats this as a rejection. It is not logged.
    """


def validate_chain_config(chain_config: Dict[str, Any]) -> None:
    """
    Validates that a chain configuration is sensible.

    Args:
        chain_config: Configuration dictionary (lowercase keys)

    Raises:
        ValueError: If configuration is invalid
    """
    errors = []

    required_keys = ['chain_length']
    for key in required_keys:
        if key not in chain_config:
            errors.append(f"Missing required config key: '{key}'")

    if 'chain_length' in chain_config:
        if chain_config['chain_length'] < 0:
            errors.append("chain_length must be >= 0")

    if 'full_evaluation_count' in chain_config:
        if chain_config['full_evaluation_count'] < 0:
            errors.append("full_evaluation_count must be >= 0")

    if 'min_operator_count_for_full_evaluation' in chain_config:
        if chain_config['min_operator_count_for_full_evaluation'] < 0:
            errors.append("min_operator_count_for_full_evaluation must be >= 0")

    if 'evaluation_test_threshold' in chain_config:
        threshold = chain_config['evaluation_test_threshold']
        if not np.isfinite(threshold) or threshold < 0:
            errors.append(f"evaluation_test_threshold must be finite and >= 0, got {threshold}")

    if 'coercion_delay' in chain_config:
        delay = chain_config['coercion_delay']
        if delay < 0:
            errors.append("coercion_delay must be >= 0")
        length = chain_config.get('chain_length', 0)
        if length >= 0 and delay > length:
            errors.append(
                f"coercion_delay ({delay}) cannot exceed chain_length ({length})"
            )

    if 'log_every' in chain_config:
        if chain_config['log_every'] < 0:
            errors.append("log_every must be >= 0")

    if 'use_coercion' in chain_config:
        if not isinstance(chain_config['use_coercion'], bool):
            errors.append("use_coercion must be True or False")

    if errors:
        raise ValueError("Invalid chain configuration:\n  " + "\n  ".join(errors))


def diagnose_chain_issues(results: Dict[str, Any], diagnostics: Dict[str, Any]) -> Dict[str, Any]:
    """
    Analyzes a finished run to identify common issues.

    Args:
        results: Results dict from run_mcmc (scores, operators, trace)
        diagnostics: Existing diagnostics dict to extend

    Returns:
        diagnostics: Dictionary with issues, warnings, and info
    """
    diagnostics = diagnostics | {
        'issues': [],
        'warnings': [],
        'info': []
    }

    if not np.isfinite(results['current_score']):
        diagnostics['issues'].append(
            f"Final score is {results['current_score']} - chain ended in an impossible state"
        )

    trace = results.get('trace')
    if trace is not None and len(trace) > 0 and not np.all(np.isfinite(trace)):
        diagnostics['issues'].append(
            "Score trace contains NaN or Inf values - density became unstable"
        )

    never_accepted = [
        op['name'] for op in results['operators']
        if op['accept_count'] == 0 and op['reject_count'] > 0
    ]
    if never_accepted:
        diagnostics['warnings'].append(
            f"{len(never_accepted)} operator(s) never accepted a move: {', '.join(never_accepted)}"
        )

    total_accepted = sum(op['accept_count'] for op in results['operators'])
    if results['iterations'] > 0 and total_accepted == 0:
        diagnostics['warnings'].append("Chain appears stuck (no move was ever accepted)")

    diagnostics['info'].append(f"Total iterations: {results['iterations']}")
    diagnostics['info'].append(f"Number of operators: {len(results['operators'])}")
    diagnostics['info'].append(f"Best score: {results['best_score']:.4f}")

    return diagnostics


def print_diagnostics(diagnostics: Dict[str, Any]) -> None:
    """Pretty-print diagnostics from diagnose_chain_issues."""
    if diagnostics['issues']:
        logger.error("\n[ERROR] ISSUES:")
        for issue in diagnostics['issues']:
            logger.error(f"  - {issue}")

    if diagnostics['warnings']:
        logger.warning("\n[WARN] WARNINGS:")
        for warning in diagnostics['warnings']:
            logger.warning(f"  - {warning}")

    if diagnostics['info']:
        logger.info("\n[INFO] INFO:")
        for info in diagnostics['info']:
            logger.info(f"  - {info}")

    if not diagnostics['issues'] and not diagnostics['warnings']:
        logger.info("\n[OK] No issues detected")
