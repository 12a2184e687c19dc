"""
Joint Density Components

Densities compute a scalar log-density for the current state of their
parameters. They cache the last value and recompute only when dirty: a
parameter change marks the dependent density dirty, and make_dirty() forces a
full recomputation (used by the engine's diagnostic re-evaluation).

The cached score is itself storable state, so a rejected proposal restores
the cache along with the parameters and no recomputation is needed.

Classes:
- Density: Base class with caching and the storable contract
- FunctionDensity: Wraps a plain Python/numpy log-density function
- JaxDensity: Wraps a JAX log-density function, JIT-compiled once
- CompoundDensity: Sum of component densities with a per-component diagnosis
"""

from typing import Callable, List, Optional, Sequence

import numpy as np

from .model import Parameter, Storable


def _format_score(value: float) -> str:
    if np.isnan(value):
        return "NaN"
    if np.isposinf(value):
        return "Inf"
    if np.isneginf(value):
        return "-Inf"
    return f"{value:.6g}"


class Density(Storable):
    """
    Base class for cached log-densities.

    Subclasses implement calculate_log_likelihood(). Everything else (caching,
    dirtiness, storable contract, diagnosis) is handled here.

    Args:
        id: Name used in diagnoses
        parameters: Parameters this density depends on
    """

    def __init__(self, id: Optional[str] = None, parameters: Sequence[Parameter] = ()):
        self.id = id if id is not None else type(self).__name__
        self._parameters = list(parameters)
        for parameter in self._parameters:
            parameter.add_listener(self)

        self._log_likelihood = 0.0
        self._stored_log_likelihood = 0.0
        self._known = False
        self._stored_known = False

    def __repr__(self):
        return f"{type(self).__name__}(id={self.id!r})"

    def calculate_log_likelihood(self) -> float:
        raise NotImplementedError

    def get_log_likelihood(self) -> float:
        if not self._known:
            self._log_likelihood = float(self.calculate_log_likelihood())
            self._known = True
        return self._log_likelihood

    def make_dirty(self) -> None:
        self._known = False

    def variable_changed(self, variable, index) -> None:
        self._known = False

    @property
    def parameters(self) -> List[Parameter]:
        return list(self._parameters)

    @property
    def likelihood_set(self) -> List['Density']:
        """All densities below this one (empty for a leaf)."""
        return []

    @property
    def storables(self) -> List[Storable]:
        """State the engine must checkpoint when this density is connected."""
        return [*self._parameters, self]

    @property
    def model(self):
        return self

    @property
    def diagnosis(self) -> str:
        return f"{self.id}={_format_score(self.get_log_likelihood())}"

    # --- Storable contract: the cached score ---

    def store_state(self) -> None:
        self._stored_log_likelihood = self._log_likelihood
        self._stored_known = self._known

    def accept_state(self) -> None:
        self._stored_log_likelihood = self._log_likelihood
        self._stored_known = self._known

    def restore_state(self) -> None:
        self._log_likelihood = self._stored_log_likelihood
        self._known = self._stored_known


class FunctionDensity(Density):
    """
    Log-density given by a plain function of parameter values.

    The function receives one numpy array per parameter, in order.

    Example:
        x = Parameter([0.0], id='x')
        density = FunctionDensity(lambda v: -0.5 * np.sum(v ** 2), [x], id='normal')
    """

    def __init__(self, log_density_fn: Callable, parameters: Sequence[Parameter],
                 id: Optional[str] = None):
        super().__init__(id=id, parameters=parameters)
        self.log_density_fn = log_density_fn

    def calculate_log_likelihood(self) -> float:
        return self.log_density_fn(*(p.values for p in self._parameters))


class JaxDensity(Density):
    """
    Log-density given by a JAX function, JIT-compiled on first use.

    The function receives one jnp array per parameter, in order, and must
    return a scalar. Enable 64-bit mode (see jax_config.configure_precision)
    when scores must agree with a float64 reference.

    Example:
        import jax.numpy as jnp
        from jax.scipy.stats import norm

        mu = Parameter([0.0, 0.0], id='mu')
        density = JaxDensity(lambda m: jnp.sum(norm.logpdf(m)), [mu], id='prior')
    """

    def __init__(self, log_density_fn: Callable, parameters: Sequence[Parameter],
                 id: Optional[str] = None):
        import jax

        super().__init__(id=id, parameters=parameters)
        self.log_density_fn = log_density_fn
        self._compiled = jax.jit(log_density_fn)

    def calculate_log_likelihood(self) -> float:
        import jax.numpy as jnp

        args = [jnp.asarray(p.values) for p in self._parameters]
        return float(self._compiled(*args))


class CompoundDensity(Density):
    """
    Sum of component densities (e.g. prior + likelihood).

    Components keep their own caches, so the compound never caches and holds
    no storable state of its own. The diagnosis lists every component's score
    so a zero or non-finite term can be identified.
    """

    def __init__(self, densities: Sequence[Density], id: Optional[str] = None):
        super().__init__(id=id if id is not None else 'joint')
        self.densities = list(densities)

    def calculate_log_likelihood(self) -> float:
        return sum(d.get_log_likelihood() for d in self.densities)

    def get_log_likelihood(self) -> float:
        return float(self.calculate_log_likelihood())

    def make_dirty(self) -> None:
        for density in self.densities:
            density.make_dirty()

    @property
    def parameters(self) -> List[Parameter]:
        seen = []
        for density in self.densities:
            for parameter in density.parameters:
                if not any(parameter is p for p in seen):
                    seen.append(parameter)
        return seen

    @property
    def likelihood_set(self) -> List[Density]:
        result = []
        for density in self.densities:
            result.append(density)
            result.extend(density.likelihood_set)
        return result

    @property
    def storables(self) -> List[Storable]:
        result = []
        for density in self.densities:
            result.extend(density.storables)
        return result

    @property
    def diagnosis(self) -> str:
        parts = []
        for density in self.densities:
            if isinstance(density, CompoundDensity):
                parts.append(f"{density.id}({density.diagnosis})")
            else:
                parts.append(density.diagnosis)
        return ", ".join(parts)

    def store_state(self) -> None:
        pass

    def restore_state(self) -> None:
        pass
