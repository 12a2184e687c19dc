"""
Storable State Units

This module defines the checkpoint/commit/rollback contract the chain engine
relies on, and a numpy-backed Parameter that implements it.

The engine calls the three operations uniformly on every registered unit each
iteration:
    store_state()   - checkpoint the current value before a proposal
    accept_state()  - commit: the proposed value becomes the saved value
    restore_state() - rollback: the value returns to the checkpoint exactly

Example:
    from chainmc import Parameter

    mu = Parameter([0.0], id='mu')
    mu.store_state()
    mu.set_value(0, 1.5)
    mu.restore_state()      # mu.values is [0.0] again, bit for bit
"""

from typing import Optional

import numpy as np


class Storable:
    """
    Base class for mutable model components that can checkpoint their value.

    Subclasses override the three hooks. The base implementation is a no-op,
    which is correct for components that hold no state of their own.
    """

    id: Optional[str] = None

    def store_state(self) -> None:
        pass

    def accept_state(self) -> None:
        pass

    def restore_state(self) -> None:
        pass


class Parameter(Storable):
    """
    A vector-valued storable parameter with optional bounds.

    Densities that depend on the parameter register themselves as listeners
    and are told via variable_changed() whenever a value is set, so they can
    mark their cached score dirty.

    Args:
        values: Initial values (scalar or 1-D array-like)
        id: Identifier used in diagnoses and checkpoints
        lower: Lower bound applied to every element (default -inf)
        upper: Upper bound applied to every element (default +inf)
    """

    def __init__(self, values, id: Optional[str] = None,
                 lower: float = -np.inf, upper: float = np.inf):
        self.id = id
        self._values = np.atleast_1d(np.array(values, dtype=np.float64))
        self._stored_values = self._values.copy()
        self.lower = float(lower)
        self.upper = float(upper)
        self._listeners = []

    def __repr__(self):
        return f"Parameter(id={self.id!r}, values={self._values.tolist()})"

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the current values."""
        view = self._values.view()
        view.flags.writeable = False
        return view

    @property
    def dimension(self) -> int:
        return self._values.shape[0]

    def get_value(self, index: int = 0) -> float:
        return float(self._values[index])

    def set_value(self, index: int, value: float) -> None:
        self._values[index] = value
        self._fire_changed(index)

    def set_values(self, values) -> None:
        values = np.atleast_1d(np.asarray(values, dtype=np.float64))
        if values.shape != self._values.shape:
            raise ValueError(
                f"Parameter '{self.id}' expects shape {self._values.shape}, got {values.shape}"
            )
        self._values[:] = values
        self._fire_changed(None)

    def is_within_bounds(self) -> bool:
        return bool(np.all((self._values >= self.lower) & (self._values <= self.upper)))

    def add_listener(self, listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener) -> None:
        self._listeners.remove(listener)

    def _fire_changed(self, index: Optional[int]) -> None:
        for listener in tuple(self._listeners):
            listener.variable_changed(self, index)

    # --- Storable contract ---

    def store_state(self) -> None:
        self._stored_values[:] = self._values

    def accept_state(self) -> None:
        self._stored_values[:] = self._values

    def restore_state(self) -> None:
        # Dependent densities restore their own cache, so no change is fired
        self._values[:] = self._stored_values
