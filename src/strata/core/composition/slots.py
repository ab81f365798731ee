"""Method-slot indirection table.

The :class:`SlotTable` is the only writer of refined attributes. For every
(target, method) it knows whether the pristine original or a dispatcher is
live and, for dispatchers, which layer produced it. Class targets receive a
plain function (bound per instance by Python's descriptor protocol); any
other target receives a method bound to the target itself.

An instance slot can be *shadowed* while an object-scope override owns it.
Installs and restores on a shadowed slot only update the table; the table
writes its current state back when the shadow is lifted.
"""
from __future__ import annotations

import logging
import types
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from ..registries.originals import ABSENT, OriginalRegistry, describe_target, own_slot

if TYPE_CHECKING:
    from strata.core.layers.spec import LayerSpec

logger = logging.getLogger(__name__)

REFINEMENT = "refinement"
RESOLVER = "resolver"


@dataclass(frozen=True)
class InstalledSlot:
    target: Any
    method: str
    kind: str
    layer: Optional["LayerSpec"]
    dispatcher: Callable[..., Any]
    # Identifies what the dispatcher was built from; equal signatures need no reinstall.
    signature: Tuple[Any, ...] = ()


class SlotTable:
    def __init__(
        self,
        originals: OriginalRegistry,
        *,
        namer: Optional[Callable[["LayerSpec"], str]] = None,
    ) -> None:
        self._originals = originals
        self._namer = namer
        self._installed: Dict[Tuple[int, str], InstalledSlot] = {}
        # (id(target), method) -> own slot value displaced by the override
        self._shadowed: Dict[Tuple[int, str], Any] = {}

    def _label(self, layer: Optional["LayerSpec"]) -> Optional[str]:
        if layer is None:
            return None
        if self._namer is not None:
            return self._namer(layer)
        return layer.name

    @staticmethod
    def _write(target: Any, method: str, dispatcher: Callable[..., Any]) -> None:
        value = dispatcher if isinstance(target, type) else types.MethodType(dispatcher, target)
        setattr(target, method, value)

    def install(
        self,
        target: Any,
        method: str,
        dispatcher: Callable[..., Any],
        *,
        kind: str = REFINEMENT,
        layer: Optional["LayerSpec"] = None,
        signature: Tuple[Any, ...] = (),
    ) -> InstalledSlot:
        key = (id(target), method)
        if key not in self._shadowed:
            self._write(target, method, dispatcher)
        slot = InstalledSlot(
            target=target,
            method=method,
            kind=kind,
            layer=layer,
            dispatcher=dispatcher,
            signature=signature,
        )
        self._installed[key] = slot
        logger.debug(
            "installed %s for %s.%s (layer=%s%s)",
            kind,
            describe_target(target),
            method,
            self._label(layer),
            ", shadowed" if key in self._shadowed else "",
        )
        return slot

    def restore(self, target: Any, method: str) -> bool:
        """Put the original back. Returns False when nothing was installed."""
        key = (id(target), method)
        slot = self._installed.pop(key, None)
        if slot is None:
            return False
        if key not in self._shadowed:
            self._originals.require(target, method).restore()
        logger.debug("restored original %s.%s", describe_target(target), method)
        return True

    def shadow(self, target: Any, method: str) -> None:
        """Hand (target, method) over to an instance override."""
        key = (id(target), method)
        if key not in self._shadowed:
            self._shadowed[key] = own_slot(target, method)

    def unshadow(self, target: Any, method: str) -> None:
        """Take the slot back and write whatever the table says is live."""
        key = (id(target), method)
        if key not in self._shadowed:
            return
        displaced = self._shadowed.pop(key)
        slot = self._installed.get(key)
        if slot is not None:
            self._write(target, method, slot.dispatcher)
            return
        entry = self._originals.get(target, method)
        if entry is not None:
            entry.restore()
        elif displaced is ABSENT:
            if own_slot(target, method) is not ABSENT:
                delattr(target, method)
        else:
            setattr(target, method, displaced)

    def get(self, target: Any, method: str) -> Optional[InstalledSlot]:
        return self._installed.get((id(target), method))

    def installed_layer(self, target: Any, method: str) -> Optional["LayerSpec"]:
        slot = self.get(target, method)
        return slot.layer if slot is not None else None

    def entries(self) -> List[InstalledSlot]:
        return list(self._installed.values())

    def restore_all(self) -> None:
        for slot in self.entries():
            self.restore(slot.target, slot.method)


__all__ = ["InstalledSlot", "SlotTable", "REFINEMENT", "RESOLVER"]
