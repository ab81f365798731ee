from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ..exceptions import InvalidArgumentError
from ..signals.conditions import ConditionLike


def _noop() -> None:
    return None


@dataclass(eq=False)
class LayerSpec:
    """User-declared layer: name, activation condition and lifecycle hooks.

    Specs compare by identity; the same spec object identifies the layer in
    every Composer call (refinements, resolution orders, activation).
    """

    name: str = ""
    condition: ConditionLike = None
    enter: Callable[[], Any] = field(default=_noop)
    exit: Callable[[], Any] = field(default=_noop)

    _FIELDS = ("name", "condition", "enter", "exit")

    def __post_init__(self) -> None:
        if self.name is None:
            self.name = ""
        if not isinstance(self.name, str):
            raise InvalidArgumentError(
                f"Layer name must be a string, got {type(self.name).__name__}",
                context={"name": repr(self.name)},
            )
        if self.enter is None:
            self.enter = _noop
        if self.exit is None:
            self.exit = _noop
        for hook in ("enter", "exit"):
            if not callable(getattr(self, hook)):
                raise InvalidArgumentError(
                    f"Layer '{self.name}' {hook} hook must be callable",
                    context={"layer": self.name, "hook": hook},
                )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LayerSpec":
        unknown = sorted(set(data) - set(cls._FIELDS))
        if unknown:
            raise InvalidArgumentError(
                f"Unknown layer spec keys: {', '.join(unknown)}",
                context={"keys": unknown},
            )
        return cls(**{k: data[k] for k in cls._FIELDS if k in data})

    @classmethod
    def coerce(cls, spec: Any) -> "LayerSpec":
        if isinstance(spec, LayerSpec):
            return spec
        if isinstance(spec, Mapping):
            return cls.from_mapping(spec)
        raise InvalidArgumentError(
            f"Expected a LayerSpec or mapping, got {type(spec).__name__}",
            context={"spec": repr(spec)},
        )

    def __repr__(self) -> str:
        return f"LayerSpec(name={self.name!r})"


__all__ = ["LayerSpec"]
