"""
chainmc - Generic Markov chain Monte Carlo engine

Public API:
    Model:
        Parameter - Vector-valued storable parameter with bounds
        Storable - Checkpoint/commit/rollback base class
        Density - Cached log-density base class
        FunctionDensity - Log-density from a numpy function
        JaxDensity - Log-density from a JIT-compiled JAX function
        CompoundDensity - Sum of densities (e.g. prior + likelihood)
        ConnectedRegistry - Run-scoped set of created/connected components

    Operators:
        MCMCOperator, CoercableOperator, GibbsOperator - Operator bases
        CoercionMode - Per-operator coercion policy (DEFAULT, COERCION_ON, COERCION_OFF)
        RandomWalkOperator, ScaleOperator, DirectSampleOperator - Generic operators
        SimpleOperatorSchedule - Weight-proportional operator selection
        OptimizationTransform - Coercion step-size transform (LINEAR, LOG, SQRT)
        MetropolisHastingsAcceptor, AcceptDecision - Acceptance criterion

    Chain:
        MarkovChain - The chain engine
        run_mcmc - Configure, run, report and checkpoint one chain
        configure_chain - Build a MarkovChain from a config dict
        ChainListener, ChainDelegate - Observer bases
        LoggingListener, ScoreTrace - Provided observers

    Checkpointing:
        save_checkpoint - Save chain progress to disk for resuming
        load_checkpoint - Load chain progress from disk
        restore_from_checkpoint - Restore a rebuilt chain to a checkpoint

    Errors:
        ChainError, ZeroInitialLikelihoodError, NumericalLikelihoodError,
        EvaluationMismatchError, OperatorFailedError

Example:
    import numpy as np
    from chainmc import Parameter, FunctionDensity, RandomWalkOperator
    from chainmc import SimpleOperatorSchedule, run_mcmc

    x = Parameter([0.0], id='x')
    density = FunctionDensity(lambda v: -0.5 * float(np.sum(v ** 2)), [x], id='normal')
    schedule = SimpleOperatorSchedule([RandomWalkOperator(x, 1.0)], seed=1)

    results, chain = run_mcmc({'chain_length': 10000}, density, schedule)
"""
# CRITICAL: Import jax_config FIRST to set environment variables before JAX loads
from . import jax_config  # noqa: F401

from .error_handling import (
    ChainError,
    InitialLikelihoodError,
    ZeroInitialLikelihoodError,
    NumericalLikelihoodError,
    EvaluationMismatchError,
    OperatorFailedError,
)
from .model import Storable, Parameter
from .densities import Density, FunctionDensity, JaxDensity, CompoundDensity
from .registry import ConnectedRegistry
from .operators import (
    MCMCOperator,
    CoercableOperator,
    GibbsOperator,
    CoercionMode,
    DEFAULT_TARGET_ACCEPTANCE,
)
from .proposals import RandomWalkOperator, ScaleOperator, DirectSampleOperator
from .schedule import SimpleOperatorSchedule, OptimizationTransform
from .acceptor import MetropolisHastingsAcceptor, AcceptDecision
from .checkpoint_io import save_checkpoint, load_checkpoint, restore_from_checkpoint

# Main chain entry points
from .mcmc import (
    MarkovChain,
    ChainListener,
    ChainDelegate,
    LoggingListener,
    ScoreTrace,
    configure_chain,
    run_mcmc,
)
