"""The proceed continuation and the dispatchers installed into method slots.

Every refinement is called as ``impl(self, proceed, *args, **kwargs)``.
``proceed`` is a :class:`Proceed` describing the rest of the chain:

- without an order (default delegation, object scope, resolver contenders)
  it invokes the original implementation;
- with an order (``chain`` delegation) it searches forward from its own
  position for the next active layer that refines the slot, and invokes that
  refinement with a new continuation positioned there, falling through to the
  original when none remain.

Activity is checked when ``proceed`` is called, so a layer toggled by an
earlier link of the chain is honoured by later links.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from ..registries.refinements import Refinement
from .resolution import Resolution

if TYPE_CHECKING:
    from strata.core.composer import Composer
    from strata.core.layers.spec import LayerSpec


class Proceed:
    """Continuation handed to a refinement for the duration of one call."""

    __slots__ = ("_composer", "target", "method", "instance", "layer", "order", "position", "args", "kwargs")

    def __init__(
        self,
        composer: "Composer",
        target: Any,
        method: str,
        instance: Any,
        layer: Optional["LayerSpec"],
        *,
        order: Optional[Tuple["LayerSpec", ...]] = None,
        position: int = -1,
        args: Tuple[Any, ...] = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._composer = composer
        self.target = target
        self.method = method
        self.instance = instance
        self.layer = layer
        self.order = order
        self.position = position
        self.args = args
        self.kwargs = dict(kwargs or {})

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if not args and not kwargs:
            args, kwargs = self.args, self.kwargs
        nxt = self.next_refinement()
        if nxt is None:
            return self.original(*args, **kwargs)
        position, spec, impl = nxt
        continuation = Proceed(
            self._composer,
            self.target,
            self.method,
            self.instance,
            spec,
            order=self.order,
            position=position,
            args=args,
            kwargs=kwargs,
        )
        return impl(self.instance, continuation, *args, **kwargs)

    def next_refinement(self) -> Optional[Tuple[int, "LayerSpec", Callable[..., Any]]]:
        """Find the next active refinement after this position in the order."""
        if self.order is None:
            return None
        for index in range(self.position + 1, len(self.order)):
            spec = self.order[index]
            if not self._composer.is_active(spec):
                continue
            impl = self._composer.refinement_of(spec, self.target, self.method)
            if impl is not None:
                return index, spec, impl
        return None

    def original(self, *args: Any, **kwargs: Any) -> Any:
        """Invoke the pristine implementation directly."""
        entry = self._composer.originals.require(self.target, self.method)
        return entry.bind(self.instance)(*args, **kwargs)

    def __repr__(self) -> str:
        layer = self._composer.layer_name(self.layer) if self.layer is not None else None
        return f"Proceed({self.method!r}, layer={layer!r}, position={self.position})"


def _decorate(dispatch: Callable[..., Any], method: str, label: str, impl: Any, layer: Any) -> None:
    dispatch.__name__ = method
    dispatch.__qualname__ = f"{label}.{method}"
    dispatch.__doc__ = getattr(impl, "__doc__", None)
    dispatch.__strata_layer__ = layer  # type: ignore[attr-defined]
    dispatch.__strata_refinement__ = impl  # type: ignore[attr-defined]


def refinement_dispatcher(
    composer: "Composer",
    refinement: Refinement,
    *,
    order: Optional[Tuple["LayerSpec", ...]] = None,
    position: int = -1,
) -> Callable[..., Any]:
    """Build the function installed for one layer's refinement."""
    target, method, layer, impl = refinement.target, refinement.method, refinement.layer, refinement.impl

    def dispatch(self: Any, *args: Any, **kwargs: Any) -> Any:
        proceed = Proceed(
            composer,
            target,
            method,
            self,
            layer,
            order=order,
            position=position,
            args=args,
            kwargs=kwargs,
        )
        return impl(self, proceed, *args, **kwargs)

    _decorate(dispatch, method, composer.layer_name(layer), impl, layer)
    return dispatch


def resolver_dispatcher(composer: "Composer", resolution: Resolution) -> Callable[..., Any]:
    """Build the function installed when a resolver combines the contenders.

    The resolver runs on every call and only sees layers active at that time.
    """
    target, method = resolution.target, resolution.method

    def contender(spec: "LayerSpec", impl: Callable[..., Any]) -> Callable[..., Any]:
        def call(instance: Any, *args: Any, **kwargs: Any) -> Any:
            proceed = Proceed(composer, target, method, instance, spec, args=args, kwargs=kwargs)
            return impl(instance, proceed, *args, **kwargs)

        call.__name__ = method
        call.__qualname__ = f"{composer.layer_name(spec)}.{method}"
        return call

    def original(instance: Any, *args: Any, **kwargs: Any) -> Any:
        return composer.originals.require(target, method).bind(instance)(*args, **kwargs)

    def dispatch(self: Any, *args: Any, **kwargs: Any) -> Any:
        contenders: Dict[str, Callable[..., Any]] = {}
        for spec in resolution.layers:
            if not composer.is_active(spec):
                continue
            impl = composer.refinement_of(spec, target, method)
            if impl is not None:
                contenders[composer.layer_name(spec)] = contender(spec, impl)
        behaviour = resolution.resolver(contenders, original)  # type: ignore[misc]
        return behaviour(self, *args, **kwargs)

    _decorate(dispatch, method, "resolver", resolution.resolver, None)
    return dispatch


__all__ = ["Proceed", "refinement_dispatcher", "resolver_dispatcher"]
