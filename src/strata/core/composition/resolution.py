"""Explicit conflict resolution between layers refining the same method.

Entries are registered and cleared by the caller and are independent of
layer activation. They only take effect in ``chain`` delegation mode.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from strata.core.layers.spec import LayerSpec

# resolver(refinements, original) -> behaviour(self, *args, **kwargs)
Resolver = Callable[[Dict[str, Callable[..., Any]], Callable[..., Any]], Callable[..., Any]]


@dataclass(frozen=True)
class Resolution:
    target: Any
    method: str
    layers: Tuple["LayerSpec", ...]
    resolver: Optional[Resolver] = None


class ConflictResolutionTable:
    """Resolution entries keyed by (target identity, method name)."""

    def __init__(self) -> None:
        self._entries: Dict[Tuple[int, str], Resolution] = {}

    def set(
        self,
        target: Any,
        method: str,
        layers: List["LayerSpec"],
        resolver: Optional[Resolver] = None,
    ) -> Resolution:
        """Register (or replace) the order for (target, method)."""
        entry = Resolution(target=target, method=method, layers=tuple(layers), resolver=resolver)
        self._entries[(id(target), method)] = entry
        return entry

    def get(self, target: Any, method: str) -> Optional[Resolution]:
        return self._entries.get((id(target), method))

    def entries(self) -> List[Resolution]:
        return list(self._entries.values())

    def clear(self) -> List[Resolution]:
        """Remove every entry, returning what was removed."""
        removed = list(self._entries.values())
        self._entries.clear()
        return removed

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ConflictResolutionTable", "Resolution", "Resolver"]
