"""
MCMC Subpackage - Core chain engine.

This package contains the chain engine and its run lifecycle:
- chain: MarkovChain, the propose / evaluate / accept-or-reject loop
- runner: Single-chain entry point (run_mcmc) and helpers
- config: Configuration defaults and chain construction
- diagnostics: Operator acceptance summaries and tables
- listeners: Listener/delegate bases, logging listener, score trace
- types: Core data structures (ChainState)
"""

# Import types first (needed by other modules)
from .types import ChainState

from .chain import MarkovChain
from .listeners import ChainListener, ChainDelegate, LoggingListener, ScoreTrace
from .config import clean_chain_config, configure_chain, build_default_acceptor
from .diagnostics import operator_summaries, print_acceptance_summary, format_operator_analysis

# Import main entry point
from .runner import run_mcmc

__all__ = [
    # Main entry point
    'run_mcmc',
    # Engine
    'MarkovChain',
    'ChainState',
    # Observers
    'ChainListener',
    'ChainDelegate',
    'LoggingListener',
    'ScoreTrace',
    # Config
    'clean_chain_config',
    'configure_chain',
    'build_default_acceptor',
    # Diagnostics
    'operator_summaries',
    'print_acceptance_summary',
    'format_operator_analysis',
]
