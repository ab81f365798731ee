"""Deployed layer lifecycle.

States: ``inactive`` (initial) and ``active``. Transitions happen when the
layer's condition evaluates to a value that differs from the active flag, or
when the owning Composer forces one through ``activate``/``deactivate``.

Execution order:
  inactive -> active: enter(), mark active, install refinements
  active -> inactive: exit(), mark inactive, recompute refined slots
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..signals.conditions import ConditionExpression
from ..signals.signal import Signal
from .spec import LayerSpec

if TYPE_CHECKING:
    from strata.core.composer import Composer

logger = logging.getLogger(__name__)

INACTIVE = "inactive"
ACTIVE = "active"


class Layer:
    """Lifecycle wrapper around a deployed :class:`LayerSpec`."""

    def __init__(self, spec: LayerSpec, composer: "Composer", *, name: str) -> None:
        self.spec = spec
        self.name = name
        self._composer = composer
        self.condition = ConditionExpression.coerce(spec.condition)
        self._active = False
        # Activation recency; larger is more recent.
        self.activated_seq = 0
        self.condition.on_change(self._on_condition)

    @property
    def active(self) -> bool:
        return self._active

    def is_active(self) -> bool:
        return self._active

    @property
    def state(self) -> str:
        return ACTIVE if self._active else INACTIVE

    def add_signal(self, signal: Signal) -> bool:
        return self.condition.add_signal(signal)

    def _on_condition(self, result: bool) -> None:
        if result == self._active:
            return
        logger.debug("layer %s: condition %r -> %s", self.name, self.condition.source, result)
        if result:
            self.activate()
        else:
            self.deactivate()

    def activate(self) -> bool:
        """Run enter and install refinements. Returns False when already active."""
        if self._active:
            return False
        self.spec.enter()
        self._active = True
        self.activated_seq = self._composer._next_seq()
        try:
            self._composer._refresh_layer_slots(self)
        except Exception:
            logger.warning("layer %s: installation failed; rolling back", self.name)
            self._active = False
            self._composer._refresh_layer_slots(self)
            raise
        logger.debug("layer %s: %s -> %s", self.name, INACTIVE, ACTIVE)
        return True

    def deactivate(self) -> bool:
        """Run exit and restore refined slots. Returns False when already inactive."""
        if not self._active:
            return False
        self.spec.exit()
        self._active = False
        self._composer._refresh_layer_slots(self)
        logger.debug("layer %s: %s -> %s", self.name, ACTIVE, INACTIVE)
        return True

    def detach(self) -> None:
        """Stop reacting to signal changes."""
        self.condition.off_change(self._on_condition)
        if not self.condition.listening:
            self.condition.detach()

    def __repr__(self) -> str:
        return f"Layer(name={self.name!r}, state={self.state})"


__all__ = ["Layer", "ACTIVE", "INACTIVE"]
