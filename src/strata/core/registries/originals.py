"""Write-once registry of pristine method implementations.

For every (target, method) pair that ever received a refinement, the raw
attribute that lived in the target's own namespace before any refinement
touched it is recorded exactly once. When the method was inherited (not in
the target's own namespace) the entry records :data:`ABSENT`; restoring then
deletes the attribute so the inherited behaviour shows through again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..exceptions import InvalidArgumentError, MissingOriginalError

logger = logging.getLogger(__name__)


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


def own_slot(target: Any, method: str) -> Any:
    """Return the raw value of ``method`` in ``target``'s own namespace."""
    try:
        namespace = vars(target)
    except TypeError as exc:
        raise InvalidArgumentError(
            f"Target {target!r} cannot hold method slots (no __dict__)",
            context={"method": method, "type": type(target).__name__},
        ) from exc
    return namespace.get(method, ABSENT)


def describe_target(target: Any) -> str:
    if isinstance(target, type):
        return target.__qualname__
    return f"{type(target).__qualname__} instance"


def _bind(raw: Any, instance: Any, owner: type) -> Callable[..., Any]:
    getter = getattr(type(raw), "__get__", None)
    if getter is None:
        return raw
    return getter(raw, instance, owner)


@dataclass(frozen=True)
class OriginalEntry:
    target: Any
    method: str
    raw: Any

    @property
    def inherited(self) -> bool:
        return self.raw is ABSENT

    def bind(self, instance: Any) -> Callable[..., Any]:
        """Return the original behaviour as a callable bound to ``instance``.

        Raises:
            MissingOriginalError: When nothing in the lookup chain defines the method.
        """
        if isinstance(self.target, type):
            owner = type(instance)
            if self.raw is not ABSENT:
                return _bind(self.raw, instance, owner)
            mro = owner.__mro__
            start = mro.index(self.target) + 1 if self.target in mro else 0
            for klass in mro[start:]:
                if self.method in klass.__dict__:
                    return _bind(klass.__dict__[self.method], instance, owner)
        else:
            if self.raw is not ABSENT:
                # Instance-level attributes are stored already bound.
                return self.raw
            owner = type(self.target)
            for klass in owner.__mro__:
                if self.method in klass.__dict__:
                    return _bind(klass.__dict__[self.method], self.target, owner)
        raise MissingOriginalError(
            f"No original implementation of '{self.method}' for {describe_target(self.target)}",
            method=self.method,
            context={"target": describe_target(self.target)},
        )

    def restore(self) -> None:
        """Put the pristine slot value back on the target."""
        if self.raw is ABSENT:
            if own_slot(self.target, self.method) is not ABSENT:
                delattr(self.target, self.method)
            return
        setattr(self.target, self.method, self.raw)


class OriginalRegistry:
    """Original implementations keyed by (target identity, method name)."""

    def __init__(self) -> None:
        self._entries: Dict[Tuple[int, str], OriginalEntry] = {}

    @staticmethod
    def _make_key(target: Any, method: str) -> Tuple[int, str]:
        return (id(target), method)

    def capture(self, target: Any, method: str) -> OriginalEntry:
        """Record the current slot value unless an entry already exists."""
        key = self._make_key(target, method)
        existing = self._entries.get(key)
        if existing is not None:
            return existing
        entry = OriginalEntry(target=target, method=method, raw=own_slot(target, method))
        self._entries[key] = entry
        logger.debug(
            "captured original %s.%s (inherited=%s)",
            describe_target(target),
            method,
            entry.inherited,
        )
        return entry

    def get(self, target: Any, method: str) -> Optional[OriginalEntry]:
        return self._entries.get(self._make_key(target, method))

    def has(self, target: Any, method: str) -> bool:
        return self._make_key(target, method) in self._entries

    def require(self, target: Any, method: str) -> OriginalEntry:
        entry = self.get(target, method)
        if entry is None:
            raise MissingOriginalError(
                f"No original recorded for {describe_target(target)}.{method}",
                method=method,
                context={"target": describe_target(target)},
            )
        return entry

    def entries(self) -> List[OriginalEntry]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[OriginalEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self) -> None:
        self._entries.clear()


__all__ = ["ABSENT", "OriginalEntry", "OriginalRegistry", "own_slot", "describe_target"]
