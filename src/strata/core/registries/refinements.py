"""Registry of refinements: alternate method implementations owned by layers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from .originals import describe_target

if TYPE_CHECKING:
    from strata.core.layers.spec import LayerSpec

logger = logging.getLogger(__name__)

RefinementImpl = Callable[..., Any]


@dataclass(frozen=True)
class Refinement:
    """One (target, method, layer, implementation) tuple."""

    target: Any
    method: str
    layer: "LayerSpec"
    impl: RefinementImpl

    @property
    def slot(self) -> Tuple[Any, str]:
        return (self.target, self.method)


class RefinementRegistry:
    """Refinements keyed by (target identity, method, layer identity).

    At most one entry exists per key; registering again replaces the
    implementation and keeps the entry's original position.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[int, str, int], Refinement] = {}

    @staticmethod
    def _make_key(target: Any, method: str, layer: "LayerSpec") -> Tuple[int, str, int]:
        return (id(target), method, id(layer))

    def add(self, target: Any, method: str, layer: "LayerSpec", impl: RefinementImpl) -> Refinement:
        if not callable(impl):
            raise TypeError("refinement must be callable")
        entry = Refinement(target=target, method=method, layer=layer, impl=impl)
        key = self._make_key(target, method, layer)
        replaced = key in self._entries
        self._entries[key] = entry
        logger.debug(
            "%s refinement %s.%s",
            "replaced" if replaced else "registered",
            describe_target(target),
            method,
        )
        return entry

    def get(self, layer: "LayerSpec", target: Any, method: str) -> Optional[RefinementImpl]:
        """Return the implementation ``layer`` defines for (target, method)."""
        entry = self._entries.get(self._make_key(target, method, layer))
        return entry.impl if entry is not None else None

    def by_layer(self, layer: "LayerSpec") -> List[Refinement]:
        return [e for e in self._entries.values() if e.layer is layer]

    def for_slot(self, target: Any, method: str) -> List[Refinement]:
        return [e for e in self._entries.values() if e.target is target and e.method == method]

    def slots(self) -> List[Tuple[Any, str]]:
        seen: Dict[Tuple[int, str], Tuple[Any, str]] = {}
        for entry in self._entries.values():
            seen.setdefault((id(entry.target), entry.method), entry.slot)
        return list(seen.values())

    def for_type(self, layer: "LayerSpec", cls: type) -> List[Refinement]:
        """Refinements ``layer`` defines on ``cls`` or its bases.

        Walks the MRO; for each method name the most derived class wins.
        """
        found: Dict[str, Refinement] = {}
        for klass in cls.__mro__:
            for entry in self.by_layer(layer):
                if entry.target is klass and entry.method not in found:
                    found[entry.method] = entry
        return list(found.values())

    def has_for_type(self, layer: "LayerSpec", cls: type) -> bool:
        return bool(self.for_type(layer, cls))

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self) -> None:
        self._entries.clear()


__all__ = ["Refinement", "RefinementImpl", "RefinementRegistry"]
