"""Layer activation conditions.

A :class:`ConditionExpression` owns one boolean expression and the signals it
was told to observe. Every time one of those signals changes (or a signal is
attached) the expression is re-evaluated and every ``on_change`` listener is
called with the result.

All conditions follow the FAIL-CLOSED principle: a reference to a signal that
is not attached evaluates the whole condition to ``False``.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Union

from ..exceptions import InvalidArgumentError
from .expressions import Const, Expr, UnboundName, compile_condition
from .signal import Signal

logger = logging.getLogger(__name__)

Predicate = Callable[[Mapping[str, Any]], Any]
ConditionLike = Union[None, str, Expr, Predicate, "ConditionExpression"]
Listener = Callable[[bool], None]


class ConditionExpression:
    """Boolean expression re-evaluated whenever a watched signal changes."""

    def __init__(self, expression: Union[None, str, Expr, Predicate] = None) -> None:
        self._predicate: Optional[Predicate] = None
        if expression is None:
            self._expr: Expr = Const(False)
            self.source = "false"
        elif isinstance(expression, str):
            self._expr = compile_condition(expression)
            self.source = expression
        elif isinstance(expression, Expr):
            self._expr = expression
            self.source = repr(expression)
        elif callable(expression):
            self._expr = Const(False)
            self._predicate = expression
            self.source = getattr(expression, "__name__", repr(expression))
        else:
            raise InvalidArgumentError(
                f"Unsupported condition type: {type(expression).__name__}",
                context={"condition": repr(expression)},
            )
        self._signals: Dict[str, Signal] = {}
        self._listeners: List[Listener] = []
        self.last_result: Optional[bool] = None

    @classmethod
    def coerce(cls, condition: ConditionLike) -> "ConditionExpression":
        if isinstance(condition, ConditionExpression):
            return condition
        return cls(condition)

    @property
    def is_predicate(self) -> bool:
        return self._predicate is not None

    @property
    def names(self) -> Optional[FrozenSet[str]]:
        """Referenced signal names, or ``None`` for predicates (which watch everything)."""
        if self._predicate is not None:
            return None
        return self._expr.names()

    @property
    def signals(self) -> Dict[str, Signal]:
        return dict(self._signals)

    def watches(self, name: Optional[str]) -> bool:
        if not name:
            return False
        names = self.names
        return names is None or name in names

    def add_signal(self, signal: Signal) -> bool:
        """Attach ``signal`` and re-evaluate.

        Returns:
            True when the signal was attached, False when the condition does
            not reference it (or it was already attached).
        """
        if not isinstance(signal, Signal):
            raise InvalidArgumentError(
                f"Expected a Signal, got {type(signal).__name__}",
                context={"condition": self.source},
            )
        if not self.watches(signal.name):
            return False
        name = str(signal.name)
        current = self._signals.get(name)
        if current is signal:
            return False
        if current is not None:
            current.unsubscribe(self._on_signal)
        self._signals[name] = signal
        signal.subscribe(self._on_signal)
        self.fire()
        return True

    def detach(self) -> None:
        """Unsubscribe from every attached signal."""
        for signal in self._signals.values():
            signal.unsubscribe(self._on_signal)
        self._signals.clear()

    def values(self) -> Dict[str, Any]:
        return {name: signal.value for name, signal in self._signals.items()}

    def evaluate(self) -> bool:
        env = self.values()
        try:
            if self._predicate is not None:
                return bool(self._predicate(env))
            return bool(self._expr.evaluate(env))
        except (UnboundName, KeyError) as exc:
            logger.debug("condition %r unresolved (%s); evaluating to False", self.source, exc)
            return False

    def on_change(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def off_change(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listening(self) -> bool:
        return bool(self._listeners)

    def fire(self) -> bool:
        """Evaluate and broadcast the result to every listener."""
        result = self.evaluate()
        self.last_result = result
        for listener in list(self._listeners):
            listener(result)
        return result

    def _on_signal(self, _value: Any) -> None:
        self.fire()

    def __repr__(self) -> str:
        return f"ConditionExpression({self.source!r})"


__all__ = ["ConditionExpression", "ConditionLike", "Predicate"]
