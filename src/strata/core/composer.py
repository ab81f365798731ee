"""Composition root: deployed layers, exhibited signals and slot dispatch.

A :class:`Composer` owns every piece of engine state (registries, resolution
table, installed slots, object-scope side table). Create one per process or
per test; discarding it is the reset.

Typical usage::

    composer = Composer()
    hard = composer.deploy({"name": "HardMode", "condition": "difficulty == 'hard'"})
    composer.add_refinement(hard, Enemy, "get_hp", lambda self, proceed: 3)
    difficulty = composer.signal("difficulty", "normal")
    difficulty.value = "hard"     # Enemy().get_hp() == 3

Dispatch rule, recomputed for a slot whenever anything it depends on changes:

- ``chain`` mode with a resolution entry: the first active listed layer that
  refines the slot (or the resolver, when one is registered);
- otherwise: the most recently activated active layer refining the slot;
- with no candidate: the pristine original.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .composition.object_scope import ObjectScope
from .composition.proceed import refinement_dispatcher, resolver_dispatcher
from .composition.resolution import ConflictResolutionTable, Resolution, Resolver
from .composition.slots import REFINEMENT, RESOLVER, SlotTable
from .config import DELEGATION_MODES, ComposerConfig
from .exceptions import (
    ConfigurationError,
    DuplicateLayerError,
    ExtensionNotInstalledError,
    InvalidArgumentError,
    LayerNotDeployedError,
)
from .layers.layer import Layer
from .layers.spec import LayerSpec
from .logging import configure_logging
from .registries.originals import OriginalEntry, OriginalRegistry, own_slot
from .registries.refinements import Refinement, RefinementImpl, RefinementRegistry
from .signals.signal import Signal

logger = logging.getLogger(__name__)

LayerRef = Any  # Layer | LayerSpec | str | Mapping


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _same_signature(a: Tuple[Any, ...], b: Tuple[Any, ...]) -> bool:
    return len(a) == len(b) and all(x is y for x, y in zip(a, b))


class Composer:
    """Runtime layer-composition engine."""

    def __init__(self, config: Optional[ComposerConfig] = None) -> None:
        self.config = config if config is not None else ComposerConfig.load()
        configure_logging(self.config.log_level)
        self._delegation_mode = self.config.delegation_mode
        self.originals = OriginalRegistry()
        self.refinements = RefinementRegistry()
        self.resolutions = ConflictResolutionTable()
        self.slots = SlotTable(self.originals, namer=self.layer_name)
        # id(spec) -> Layer, in deployment order.
        self._layers: Dict[int, Layer] = {}
        self._exhibited: List[Tuple[Any, Dict[str, Signal]]] = []
        self._seq = 0
        self._deployed_total = 0
        self._object_scope: Optional[ObjectScope] = None
        if self.config.object_scope:
            self.install_object_scope()

    # ---------- Layer lookup ----------
    def _spec_of(self, layer: LayerRef) -> LayerSpec:
        if isinstance(layer, Layer):
            return layer.spec
        if isinstance(layer, LayerSpec):
            return layer
        if isinstance(layer, Mapping):
            layer = layer.get("name")
        if isinstance(layer, str):
            for deployed in self._layers.values():
                if deployed.name == layer:
                    return deployed.spec
            raise LayerNotDeployedError(f"Layer '{layer}' is not deployed", layer=layer)
        raise InvalidArgumentError(
            f"Expected a layer, LayerSpec, name or mapping, got {type(layer).__name__}",
            context={"layer": repr(layer)},
        )

    def _layer_for_spec(self, spec: LayerSpec) -> Optional[Layer]:
        return self._layers.get(id(spec))

    def _require(self, layer: LayerRef) -> Layer:
        spec = self._spec_of(layer)
        deployed = self._layer_for_spec(spec)
        if deployed is None:
            name = self.layer_name(spec) or repr(spec)
            raise LayerNotDeployedError(f"Layer '{name}' is not deployed", layer=name)
        return deployed

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def layer_name(self, layer: LayerRef) -> str:
        spec = self._spec_of(layer)
        deployed = self._layer_for_spec(spec)
        return deployed.name if deployed is not None else spec.name

    # ---------- Deployment ----------
    def deploy(self, spec: Any) -> LayerSpec:
        """Deploy a layer and attach every exhibited signal to its condition.

        Returns the :class:`LayerSpec` that identifies the layer afterwards
        (the same object when a spec was given, a new one for mappings).

        Raises:
            DuplicateLayerError: If the spec or its name is already deployed.
            ConditionSyntaxError: If a condition string does not parse.
        """
        spec = LayerSpec.coerce(spec)
        if id(spec) in self._layers:
            raise DuplicateLayerError(
                f"Layer '{self.layer_name(spec)}' is already deployed",
                context={"layer": self.layer_name(spec)},
            )
        name = spec.name or f"Layer_{self._deployed_total + 1}"
        if any(layer.name == name for layer in self._layers.values()):
            raise DuplicateLayerError(
                f"A layer named '{name}' is already deployed",
                context={"layer": name},
            )
        layer = Layer(spec, self, name=name)
        self._layers[id(spec)] = layer
        self._deployed_total += 1
        logger.debug("deployed layer %s (condition=%r)", name, layer.condition.source)

        for _, signals in self._exhibited:
            for signal in signals.values():
                layer.add_signal(signal)
        if layer.condition.is_predicate and not layer.condition.signals:
            layer.condition.fire()
        return spec

    def undeploy(self, layer: LayerRef) -> None:
        """Deactivate (running exit), detach and forget a deployed layer.

        The layer's refinements stay registered, so deploying the same spec
        again restores its behaviour.
        """
        deployed = self._require(layer)
        deployed.detach()
        deployed.deactivate()
        if self._object_scope is not None:
            self._object_scope.remove_layer(deployed.spec)
        del self._layers[id(deployed.spec)]
        logger.debug("undeployed layer %s", deployed.name)

    # ---------- Signals ----------
    def exhibit(self, namespace: Any, signals: Mapping[str, Signal]) -> None:
        """Make ``signals`` visible to every deployed (and future) layer.

        Each signal takes the name it is exhibited under; conditions refer to
        it by that name. ``namespace`` only labels the group.
        """
        if not isinstance(signals, Mapping):
            raise InvalidArgumentError(
                f"exhibit expects a mapping of name -> Signal, got {type(signals).__name__}",
                context={"type": type(signals).__name__},
            )
        for name, signal in signals.items():
            if not isinstance(signal, Signal):
                raise InvalidArgumentError(
                    f"exhibit: '{name}' is not a Signal ({type(signal).__name__})",
                    context={"signal": name},
                )
        group = dict(signals)
        for name, signal in group.items():
            signal.name = name
        self._exhibited.append((namespace, group))
        logger.debug("exhibited signals %s", ", ".join(group))
        for layer in list(self._layers.values()):
            for signal in group.values():
                layer.add_signal(signal)

    def signal(self, name: str, value: Any = None, *, namespace: Any = None) -> Signal:
        """Create a signal and exhibit it under ``name``."""
        sig = Signal(value, name)
        self.exhibit(namespace, {name: sig})
        return sig

    def exhibited(self) -> Dict[str, Signal]:
        """Every exhibited signal by name; later exhibits win on name clashes."""
        result: Dict[str, Signal] = {}
        for _, group in self._exhibited:
            result.update(group)
        return result

    # ---------- Refinements ----------
    def add_refinement(self, layer: LayerRef, targets: Any, method: str, impl: RefinementImpl) -> List[Refinement]:
        """Register ``impl`` as ``layer``'s version of ``method`` on each target.

        ``impl`` is called as ``impl(self, proceed, *args, **kwargs)``. The
        layer does not need to be deployed yet. When it is already active the
        refinement takes part in dispatch immediately.
        """
        spec = self._spec_of(layer)
        if not isinstance(method, str) or not method:
            raise InvalidArgumentError(
                "add_refinement: method name must be a non-empty string",
                context={"method": repr(method)},
            )
        if not callable(impl):
            raise InvalidArgumentError(
                f"add_refinement: refinement for '{method}' must be callable",
                context={"method": method, "layer": self.layer_name(spec)},
            )
        target_list = _as_list(targets)
        if not target_list:
            raise InvalidArgumentError(
                "add_refinement: at least one target is required",
                context={"method": method, "layer": self.layer_name(spec)},
            )
        for target in target_list:
            if target is None:
                raise InvalidArgumentError(
                    f"add_refinement: target for '{method}' must not be None",
                    context={"method": method, "layer": self.layer_name(spec)},
                )
            own_slot(target, method)

        added = []
        for target in target_list:
            self.originals.capture(target, method)
            added.append(self.refinements.add(target, method, spec, impl))
            logger.debug("layer %s refines %s", self.layer_name(spec), method)
            self._refresh_slot(target, method)
        return added

    def refinement_of(self, layer: LayerRef, target: Any, method: str) -> Optional[RefinementImpl]:
        return self.refinements.get(self._spec_of(layer), target, method)

    def original_of(self, target: Any, method: str) -> Optional[OriginalEntry]:
        """The captured original for (target, method), or None if never refined."""
        return self.originals.get(target, method)

    def installed_layer(self, target: Any, method: str) -> Optional[LayerSpec]:
        """Layer whose refinement is live on the slot (None for original or resolver)."""
        return self.slots.installed_layer(target, method)

    # ---------- Activation ----------
    def activate(self, layer: LayerRef) -> bool:
        return self._require(layer).activate()

    def deactivate(self, layer: LayerRef) -> bool:
        return self._require(layer).deactivate()

    def is_active(self, layer: LayerRef) -> bool:
        try:
            spec = self._spec_of(layer)
        except LayerNotDeployedError:
            return False
        deployed = self._layer_for_spec(spec)
        return deployed is not None and deployed.active

    def get_layer(self, layer: LayerRef) -> Layer:
        return self._require(layer)

    def get_layers(self, predicate: Optional[Callable[[Layer], Any]] = None) -> List[Layer]:
        layers = list(self._layers.values())
        if predicate is None:
            return layers
        return [layer for layer in layers if predicate(layer)]

    def get_active_layers(self) -> List[Layer]:
        return self.get_layers(lambda layer: layer.is_active())

    def get_inactive_layers(self) -> List[Layer]:
        return self.get_layers(lambda layer: not layer.is_active())

    # ---------- Delegation & resolution ----------
    @property
    def delegation_mode(self) -> str:
        return self._delegation_mode

    def configure(self, *, delegation_mode: Optional[str] = None) -> None:
        """Change the delegation mode and recompute every refined slot."""
        if delegation_mode is None:
            return
        if delegation_mode not in DELEGATION_MODES:
            raise ConfigurationError(
                "delegation_mode must be 'original' or 'chain'",
                context={"delegation_mode": repr(delegation_mode)},
            )
        if delegation_mode == self._delegation_mode:
            return
        logger.debug("delegation mode %s -> %s", self._delegation_mode, delegation_mode)
        self._delegation_mode = delegation_mode
        self._refresh_all()

    def get_config(self) -> Dict[str, Any]:
        return {
            "delegation_mode": self._delegation_mode,
            "object_scope": self.object_scope_installed,
        }

    def set_resolution_order(
        self,
        target: Any,
        method: str,
        layers: Iterable[LayerRef],
        resolver: Optional[Resolver] = None,
    ) -> Resolution:
        """Order the layers contending for (target, method).

        Only consulted in ``chain`` mode. Replaces any earlier entry.
        """
        if resolver is not None and not callable(resolver):
            raise InvalidArgumentError(
                f"set_resolution_order: resolver for '{method}' must be callable",
                context={"method": method},
            )
        specs = [self._spec_of(layer) for layer in layers]
        entry = self.resolutions.set(target, method, specs, resolver)
        logger.debug(
            "resolution order for %s: %s%s",
            method,
            [self.layer_name(spec) for spec in specs],
            " (resolver)" if resolver is not None else "",
        )
        self._refresh_slot(target, method)
        return entry

    def get_resolution(self, target: Any, method: str) -> Optional[Resolution]:
        return self.resolutions.get(target, method)

    def clear_resolutions(self) -> None:
        for entry in self.resolutions.clear():
            self._refresh_slot(entry.target, entry.method)

    # ---------- Slot dispatch ----------
    def _refresh_layer_slots(self, layer: Layer) -> None:
        for refinement in self.refinements.by_layer(layer.spec):
            self._refresh_slot(refinement.target, refinement.method)

    def _refresh_all(self) -> None:
        for target, method in self.refinements.slots():
            self._refresh_slot(target, method)

    def _active_refinement(self, spec: LayerSpec, target: Any, method: str) -> Optional[Refinement]:
        if not self.is_active(spec):
            return None
        for refinement in self.refinements.for_slot(target, method):
            if refinement.layer is spec:
                return refinement
        return None

    def _refresh_slot(self, target: Any, method: str) -> None:
        resolution = None
        if self._delegation_mode == "chain":
            resolution = self.resolutions.get(target, method)

        if resolution is not None:
            contenders = []
            for position, spec in enumerate(resolution.layers):
                refinement = self._active_refinement(spec, target, method)
                if refinement is not None:
                    contenders.append((position, refinement))
            if not contenders:
                self.slots.restore(target, method)
                return
            if resolution.resolver is not None:
                signature: Tuple[Any, ...] = (RESOLVER, resolution)
                if not self._slot_matches(target, method, signature):
                    self.slots.install(
                        target,
                        method,
                        resolver_dispatcher(self, resolution),
                        kind=RESOLVER,
                        signature=signature,
                    )
                return
            position, winner = contenders[0]
            signature = (REFINEMENT, winner, resolution, position)
            if not self._slot_matches(target, method, signature):
                self.slots.install(
                    target,
                    method,
                    refinement_dispatcher(self, winner, order=resolution.layers, position=position),
                    layer=winner.layer,
                    signature=signature,
                )
            return

        best: Optional[Tuple[int, Refinement]] = None
        for refinement in self.refinements.for_slot(target, method):
            deployed = self._layer_for_spec(refinement.layer)
            if deployed is None or not deployed.active:
                continue
            if best is None or deployed.activated_seq > best[0]:
                best = (deployed.activated_seq, refinement)
        if best is None:
            self.slots.restore(target, method)
            return
        winner = best[1]
        signature = (REFINEMENT, winner)
        if not self._slot_matches(target, method, signature):
            self.slots.install(
                target,
                method,
                refinement_dispatcher(self, winner),
                layer=winner.layer,
                signature=signature,
            )

    def _slot_matches(self, target: Any, method: str, signature: Tuple[Any, ...]) -> bool:
        installed = self.slots.get(target, method)
        return installed is not None and _same_signature(installed.signature, signature)

    # ---------- Object scope ----------
    def install_object_scope(self) -> ObjectScope:
        if self._object_scope is None:
            self._object_scope = ObjectScope(self)
            logger.debug("object scope extension installed")
        return self._object_scope

    def uninstall_object_scope(self) -> None:
        if self._object_scope is None:
            return
        self._object_scope.clear()
        self._object_scope = None
        logger.debug("object scope extension removed")

    @property
    def object_scope_installed(self) -> bool:
        return self._object_scope is not None

    def _scope(self) -> ObjectScope:
        if self._object_scope is None:
            raise ExtensionNotInstalledError(
                "Object scope extension is not installed; call install_object_scope() first"
            )
        return self._object_scope

    def activate_for(self, layer: LayerRef, instances: Any) -> None:
        self._scope().activate_for(layer, instances)

    def deactivate_for(self, layer: LayerRef, instances: Any) -> None:
        self._scope().deactivate_for(layer, instances)

    def is_active_for(self, layer: LayerRef, instance: Any) -> bool:
        return self._scope().is_active_for(layer, instance)

    # ---------- Reset ----------
    def reset(self) -> None:
        """Undeploy every layer and put every refined slot back to its original."""
        for layer in list(self._layers.values()):
            self.undeploy(layer.spec)
        if self._object_scope is not None:
            self._object_scope.clear()
        self.resolutions.clear()
        self.slots.restore_all()
        self.refinements.reset()
        self.originals.reset()
        self._exhibited.clear()
        self._delegation_mode = self.config.delegation_mode
        self._seq = 0
        self._deployed_total = 0

    def __repr__(self) -> str:
        return (
            f"Composer(layers={len(self._layers)}, active={len(self.get_active_layers())}, "
            f"mode={self._delegation_mode!r})"
        )


__all__ = ["Composer"]
