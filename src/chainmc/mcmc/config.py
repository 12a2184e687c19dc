"""
Chain Configuration.

This module handles setting up and validating chain configurations:
- clean_chain_config: Fill in defaults
- configure_chain: Validate config and build a MarkovChain
- build_default_acceptor: Seeded Metropolis-Hastings acceptor

All config keys use lowercase with underscores (e.g., 'chain_length',
'full_evaluation_count').
"""

from typing import Any, Dict, Optional

from ..acceptor import MetropolisHastingsAcceptor
from ..error_handling import validate_chain_config
from ..jax_config import configure_precision
from ..registry import ConnectedRegistry
from .chain import (
    MarkovChain,
    DEFAULT_FULL_EVALUATION_COUNT,
    DEFAULT_MIN_OPERATOR_COUNT,
    EVALUATION_TEST_THRESHOLD,
)

import logging
logger = logging.getLogger('chainmc')


def clean_chain_config(chain_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Returns a copy of the config with defaults set.
    All config keys use lowercase with underscores.
    """
    chain_config = dict(chain_config)

    chain_config.setdefault('full_evaluation_count', DEFAULT_FULL_EVALUATION_COUNT)
    chain_config.setdefault('min_operator_count_for_full_evaluation', DEFAULT_MIN_OPERATOR_COUNT)
    chain_config.setdefault('evaluation_test_threshold', EVALUATION_TEST_THRESHOLD)
    chain_config.setdefault('use_coercion', True)
    chain_config.setdefault('coercion_delay', 0)
    chain_config.setdefault('log_every', 0)
    chain_config.setdefault('rng_seed', 42)
    chain_config.setdefault('use_double', True)
    chain_config.setdefault('impossible_state_allowed', ())

    unknown = set(chain_config) - _KNOWN_KEYS
    if unknown:
        logger.warning(f"Ignoring unknown chain config keys: {sorted(unknown)}")

    return chain_config


_KNOWN_KEYS = {
    'chain_length',
    'full_evaluation_count',
    'min_operator_count_for_full_evaluation',
    'evaluation_test_threshold',
    'use_coercion',
    'coercion_delay',
    'log_every',
    'rng_seed',
    'use_double',
    'impossible_state_allowed',
}


def build_default_acceptor(chain_config: Dict[str, Any]) -> MetropolisHastingsAcceptor:
    """Metropolis-Hastings acceptor seeded from chain_config['rng_seed']."""
    return MetropolisHastingsAcceptor(seed=chain_config.get('rng_seed', 42))


def configure_chain(
    chain_config: Dict[str, Any],
    joint_density,
    schedule,
    acceptor=None,
    registry: Optional[ConnectedRegistry] = None,
) -> MarkovChain:
    """
    Build a MarkovChain from a config dict.

    Args:
        chain_config: Chain configuration (see clean_chain_config for defaults)
        joint_density: Joint density to sample
        schedule: Operator schedule
        acceptor: Acceptance criterion (seeded Metropolis-Hastings if omitted)
        registry: Run-scoped ConnectedRegistry

    Returns:
        A MarkovChain with its initial score evaluated

    Raises:
        ValueError: If the configuration is invalid
    """
    chain_config = clean_chain_config(chain_config)
    validate_chain_config(chain_config)

    # JAX densities compile on the first evaluation, inside the constructor
    configure_precision(chain_config['use_double'])

    if acceptor is None:
        acceptor = build_default_acceptor(chain_config)

    return MarkovChain(
        joint_density,
        schedule,
        acceptor,
        full_evaluation_count=chain_config['full_evaluation_count'],
        min_operator_count_for_full_evaluation=chain_config['min_operator_count_for_full_evaluation'],
        evaluation_test_threshold=chain_config['evaluation_test_threshold'],
        use_coercion=chain_config['use_coercion'],
        registry=registry,
        impossible_state_allowed=chain_config['impossible_state_allowed'],
    )
