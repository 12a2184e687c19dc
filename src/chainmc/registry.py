"""
Connected Component Registry

A run-scoped collection of the densities and storable units that take part
in one chain. The chain engine connects its joint density here at
construction; every storable reached that way is checkpointed, committed and
rolled back each iteration.

Components can also be registered explicitly as they are created. Any
registered component that the joint density does not reach is reported with a
warning, since it is almost always a modelling mistake (a prior that was
built but never added to the joint density, for instance).

Example usage:
    from chainmc import ConnectedRegistry

    registry = ConnectedRegistry()
    registry.register(mu)
    registry.register(prior)
    chain = MarkovChain(joint, schedule, acceptor, registry=registry)
"""

from typing import List

import logging
logger = logging.getLogger('chainmc')


class ConnectedRegistry:
    """Ordered, identity-deduplicated sets of created and connected components."""

    def __init__(self):
        self._registered = []
        self._densities = []
        self._storables = []
        self._storable_ids = set()
        self._connected_ids = set()

    def register(self, component) -> None:
        """
        Record a component that was created for this run.

        Storable components are checkpointed by the engine even when no
        density depends on them.
        """
        if not any(component is c for c in self._registered):
            self._registered.append(component)
        if hasattr(component, 'store_state'):
            self._add_storable(component)

    def connect(self, density) -> None:
        """
        Mark a density, its transitive sub-densities, and all of their
        storable state as connected.
        """
        for d in [density, *density.likelihood_set]:
            if id(d) not in self._connected_ids:
                self._connected_ids.add(id(d))
                self._densities.append(d)
        for storable in density.storables:
            self._connected_ids.add(id(storable))
            self._add_storable(storable)

    def _add_storable(self, storable) -> None:
        if id(storable) not in self._storable_ids:
            self._storable_ids.add(id(storable))
            self._storables.append(storable)

    def is_connected(self, component) -> bool:
        return id(component) in self._connected_ids

    def unconnected(self) -> List:
        """Registered components the joint density never reaches."""
        return [c for c in self._registered if not self.is_connected(c)]

    def warn_unconnected(self) -> None:
        for component in self.unconnected():
            name = getattr(component, 'id', None) or type(component).__name__
            logger.warning(
                f"Component '{name}' was created but is not used in the MCMC"
            )

    @property
    def densities(self) -> List:
        return list(self._densities)

    @property
    def storables(self) -> List:
        return list(self._storables)
