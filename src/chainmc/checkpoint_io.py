"""
Checkpoint I/O utilities for saving and loading chain progress.

This module provides functions for:
- Saving a chain's progress to disk (.npz) for resumable runs
- Loading checkpoints
- Restoring a freshly built chain to a checkpointed position

A checkpoint holds the iteration count, the initial/best/current scores, each
operator's tally (decisions, score deviation, evaluation time) and coercable
parameter, and the values of every identified Parameter connected to the chain.
The model structure itself is not saved; the chain must be rebuilt the same
way before restoring.
"""

from typing import Any, Dict, Optional

import numpy as np
from pathlib import Path

from .model import Parameter

import logging
logger = logging.getLogger('chainmc')

_PARAM_PREFIX = 'param__'


def _checkpoint_parameters(chain) -> Dict[str, Parameter]:
    """Identified Parameters connected to the chain, keyed by id."""
    parameters = {}
    for storable in chain.registry.storables:
        if isinstance(storable, Parameter) and storable.id:
            if storable.id in parameters and parameters[storable.id] is not storable:
                raise ValueError(f"Duplicate parameter id '{storable.id}' cannot be checkpointed")
            parameters[storable.id] = storable
    return parameters


def save_checkpoint(filepath: str, chain, metadata: Optional[Dict[str, Any]] = None) -> None:
    """
    Save chain progress to disk for resuming later.

    Args:
        filepath: Path to save checkpoint (.npz file)
        chain: MarkovChain to save
        metadata: Optional dict of additional metadata

    Saves:
        - Iteration count and scores
        - Operator names, accept/reject counts, score deviations,
          evaluation times and coercable parameters
        - Values of every identified Parameter
    """
    schedule = chain.schedule
    operators = [schedule.get_operator(i) for i in range(schedule.operator_count)]

    checkpoint = {
        'iteration': int(chain.current_length),
        'initial_score': float(chain.initial_score),
        'best_score': float(chain.best_score),
        'current_score': float(chain.current_score),
        'operator_names': np.array([op.operator_name for op in operators], dtype=str),
        'accept_counts': np.array([op.accept_count for op in operators], dtype=np.int64),
        'reject_counts': np.array([op.reject_count for op in operators], dtype=np.int64),
        'sum_deviations': np.array([op.sum_deviation for op in operators], dtype=np.float64),
        'evaluation_times': np.array([op.total_evaluation_time for op in operators], dtype=np.float64),
        'coercable_parameters': np.array(
            [op.get_coercable_parameter() if op.is_coercable else np.nan for op in operators],
            dtype=np.float64,
        ),
    }

    for param_id, parameter in _checkpoint_parameters(chain).items():
        checkpoint[_PARAM_PREFIX + param_id] = np.array(parameter.values)

    if metadata:
        checkpoint['metadata'] = metadata

    filepath = Path(filepath)
    np.savez_compressed(filepath, **checkpoint)
    logger.info(f"Checkpoint saved to {filepath} (iteration {checkpoint['iteration']})")


def load_checkpoint(filepath: str) -> Dict[str, Any]:
    """
    Load a chain checkpoint from disk.

    Args:
        filepath: Path to checkpoint file (.npz)

    Returns:
        Dict with iteration, scores, operator arrays, and a 'parameters' dict
        mapping parameter id to values
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Checkpoint not found: {filepath}")

    with np.load(filepath, allow_pickle=True) as data:
        checkpoint = {
            'iteration': int(data['iteration']),
            'initial_score': float(data['initial_score']),
            'best_score': float(data['best_score']),
            'current_score': float(data['current_score']),
            'operator_names': [str(name) for name in data['operator_names']],
            'accept_counts': data['accept_counts'],
            'reject_counts': data['reject_counts'],
            'sum_deviations': data['sum_deviations'],
            'evaluation_times': data['evaluation_times'],
            'coercable_parameters': data['coercable_parameters'],
            'parameters': {
                key[len(_PARAM_PREFIX):]: data[key]
                for key in data.files if key.startswith(_PARAM_PREFIX)
            },
        }

        if 'metadata' in data.files:
            checkpoint['metadata'] = data['metadata'].item()

    return checkpoint


def validate_checkpoint_compatibility(checkpoint: Dict[str, Any], chain) -> None:
    """
    Check that a checkpoint was written by a chain built like this one.

    Raises:
        ValueError: If operators or parameters do not match
    """
    schedule = chain.schedule
    names = [schedule.get_operator(i).operator_name for i in range(schedule.operator_count)]
    if names != list(checkpoint['operator_names']):
        raise ValueError(
            f"Checkpoint operator mismatch: checkpoint has {list(checkpoint['operator_names'])}, "
            f"but the chain's schedule has {names}."
        )

    parameters = _checkpoint_parameters(chain)
    missing = sorted(set(checkpoint['parameters']) - set(parameters))
    if missing:
        raise ValueError(f"Checkpoint parameters not found in the chain: {missing}")

    for param_id, values in checkpoint['parameters'].items():
        expected = parameters[param_id].values.shape
        if np.shape(values) != expected:
            raise ValueError(
                f"Checkpoint shape mismatch for parameter '{param_id}': "
                f"checkpoint has {np.shape(values)}, chain expects {expected}."
            )


def restore_from_checkpoint(chain, checkpoint: Dict[str, Any]) -> None:
    """
    Restore a chain to a checkpointed position.

    The current score is recomputed from the restored parameters by the next
    call to run().
    """
    validate_checkpoint_compatibility(checkpoint, chain)

    parameters = _checkpoint_parameters(chain)
    for param_id, values in checkpoint['parameters'].items():
        parameters[param_id].set_values(values)

    schedule = chain.schedule
    for i in range(schedule.operator_count):
        op = schedule.get_operator(i)
        op.accept_count = int(checkpoint['accept_counts'][i])
        op.reject_count = int(checkpoint['reject_counts'][i])
        op.sum_deviation = float(checkpoint['sum_deviations'][i])
        op.total_evaluation_time = float(checkpoint['evaluation_times'][i])
        coercable = float(checkpoint['coercable_parameters'][i])
        if op.is_coercable and np.isfinite(coercable):
            op.set_coercable_parameter(coercable)

    chain.set_current_length(checkpoint['iteration'])
    chain.set_reference_scores(checkpoint['initial_score'], checkpoint['best_score'])

    logger.info(f"Restored chain from checkpoint at iteration {checkpoint['iteration']}")
