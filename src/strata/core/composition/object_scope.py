"""Per-instance layer activation.

Installed on a Composer with ``Composer.install_object_scope()``::

    composer.install_object_scope()
    composer.activate_for(NightMode, screen1)
    composer.is_active_for(NightMode, screen1)   # True
    composer.is_active_for(NightMode, screen2)   # False
    composer.deactivate_for(NightMode, screen1)

Each (instance, method) owns a stack of entries; the top entry is installed
as a bound method in the instance's own ``__dict__``, which shadows whatever
the class-level dispatch currently is. While a stack is non-empty the
composer's slot table only records changes to that instance slot; emptying
the stack hands the slot back. ``proceed`` inside an object-scoped
refinement reaches the pristine original. Stacks hold strong references to
their instances until ``deactivate_for`` (or ``clear``) empties them.
"""
from __future__ import annotations

import logging
import types
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

from ..exceptions import InvalidArgumentError, NoRefinementForTypeError
from ..registries.refinements import Refinement
from .proceed import refinement_dispatcher

if TYPE_CHECKING:
    from strata.core.composer import Composer
    from strata.core.layers.spec import LayerSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeEntry:
    layer: "LayerSpec"
    refinement: Refinement


def _as_list(instances: Any) -> List[Any]:
    if isinstance(instances, (list, tuple)):
        return list(instances)
    return [instances]


def _validate_instance(instance: Any) -> None:
    if instance is None:
        raise InvalidArgumentError("activate_for: instances must be objects, got None")
    if isinstance(instance, type):
        raise InvalidArgumentError(
            f"activate_for: instances must be objects, got class {instance.__qualname__}",
            context={"type": instance.__qualname__},
        )
    if not isinstance(getattr(instance, "__dict__", None), dict):
        raise InvalidArgumentError(
            f"activate_for: {type(instance).__name__} instances cannot hold per-instance methods",
            context={"type": type(instance).__name__},
        )


class ObjectScope:
    def __init__(self, composer: "Composer") -> None:
        self._composer = composer
        # id(instance) -> (instance, {method: [entries, top last]})
        self._stacks: Dict[int, Tuple[Any, Dict[str, List[ScopeEntry]]]] = {}

    def activate_for(self, layer: Any, instances: Any) -> None:
        spec = self._composer._spec_of(layer)
        name = self._composer.layer_name(spec)
        targets = _as_list(instances)
        for instance in targets:
            _validate_instance(instance)
            if not self._composer.refinements.has_for_type(spec, type(instance)):
                type_name = type(instance).__name__
                raise NoRefinementForTypeError(
                    f"activate_for: Layer '{name}' has no refinements for {type_name}. "
                    "Register refinements with add_refinement() first.",
                    layer=name,
                    type_name=type_name,
                )
        self._composer._require(spec)

        for instance in targets:
            _, methods = self._stacks.setdefault(id(instance), (instance, {}))
            for refinement in self._composer.refinements.for_type(spec, type(instance)):
                stack = methods.setdefault(refinement.method, [])
                if any(entry.layer is spec for entry in stack):
                    continue
                if not stack:
                    self._composer.slots.shadow(instance, refinement.method)
                stack.append(ScopeEntry(layer=spec, refinement=refinement))
                logger.debug(
                    "object scope: pushed %s onto %s.%s (depth=%d)",
                    name,
                    type(instance).__name__,
                    refinement.method,
                    len(stack),
                )
                self._install_top(instance, refinement.method, stack)

    def deactivate_for(self, layer: Any, instances: Any) -> None:
        spec = self._composer._spec_of(layer)
        name = self._composer.layer_name(spec)
        for instance in _as_list(instances):
            record = self._stacks.get(id(instance))
            if record is None:
                continue
            _, methods = record
            for method, stack in list(methods.items()):
                index = next((i for i, e in enumerate(stack) if e.layer is spec), -1)
                if index == -1:
                    continue
                del stack[index]
                logger.debug(
                    "object scope: removed %s from %s.%s (depth=%d)",
                    name,
                    type(instance).__name__,
                    method,
                    len(stack),
                )
                self._install_top(instance, method, stack)
                if not stack:
                    del methods[method]
            if not methods:
                del self._stacks[id(instance)]

    def is_active_for(self, layer: Any, instance: Any) -> bool:
        spec = self._composer._spec_of(layer)
        record = self._stacks.get(id(instance))
        if record is None or record[0] is not instance:
            return False
        return any(entry.layer is spec for stack in record[1].values() for entry in stack)

    def stack(self, instance: Any, method: str) -> List[ScopeEntry]:
        record = self._stacks.get(id(instance))
        if record is None or record[0] is not instance:
            return []
        return list(record[1].get(method, []))

    def remove_layer(self, layer: "LayerSpec") -> None:
        """Drop ``layer`` from every instance stack."""
        for instance, _ in list(self._stacks.values()):
            self.deactivate_for(layer, instance)

    def clear(self) -> None:
        """Remove every instance override."""
        for instance, methods in list(self._stacks.values()):
            for method, stack in methods.items():
                stack.clear()
                self._install_top(instance, method, stack)
        self._stacks.clear()

    def _install_top(self, instance: Any, method: str, stack: List[ScopeEntry]) -> None:
        if not stack:
            self._composer.slots.unshadow(instance, method)
            return
        top = stack[-1]
        dispatcher = refinement_dispatcher(self._composer, top.refinement)
        dispatcher.__strata_object_scope__ = True  # type: ignore[attr-defined]
        setattr(instance, method, types.MethodType(dispatcher, instance))


__all__ = ["ObjectScope", "ScopeEntry"]
