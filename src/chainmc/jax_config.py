"""
JAX Configuration - import before any JAX-backed density is compiled.

Sets environment variables for JAX:
- Persistent compilation cache directory, so JaxDensity kernels are reused
  across sessions
- Minimum compile time threshold for caching
- Suppressed XLA C++ warnings

configure_precision() switches JAX between 32- and 64-bit floats. Chain
scores are compared against a tolerance during the diagnostic warm-up, so
64-bit is the default.
"""
import os
from pathlib import Path

import logging
logger = logging.getLogger('chainmc')

os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

_JAX_CACHE_DIR = Path.home() / ".cache" / "jax" / "chainmc_cache"
os.environ.setdefault("JAX_COMPILATION_CACHE_DIR", str(_JAX_CACHE_DIR))
os.environ.setdefault("JAX_PERSISTENT_CACHE_MIN_COMPILE_TIME_SECS", "1.0")


def configure_precision(use_double: bool = True) -> None:
    """Enable or disable JAX 64-bit mode for JAX-backed densities."""
    import jax

    jax.config.update("jax_enable_x64", bool(use_double))
    logger.debug(f"JAX precision: {'float64' if use_double else 'float32'}")
