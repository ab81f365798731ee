"""Signals and the conditions computed from them."""

from .signal import Signal
from .conditions import ConditionExpression
from .expressions import (
    Expr,
    UnboundName,
    all_of,
    any_of,
    compile_condition,
    const,
    eq,
    ge,
    gt,
    le,
    lt,
    ne,
    not_,
    ref,
    truthy,
)

__all__ = [
    "Signal",
    "ConditionExpression",
    "Expr",
    "UnboundName",
    "compile_condition",
    "ref",
    "const",
    "eq",
    "ne",
    "lt",
    "le",
    "gt",
    "ge",
    "truthy",
    "not_",
    "all_of",
    "any_of",
]
