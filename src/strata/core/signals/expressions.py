"""Typed condition combinators and the condition-string compiler.

Conditions are small expression trees over named signal values::

    hard = ref("difficulty").eq("hard")
    boss = ref("wave").ge(10) & ~ref("tutorial")

Condition strings are compiled into the same trees when a layer is declared::

    compile_condition("difficulty === 'hard' && !tutorial")

Grammar (lowest precedence first)::

    or      := and (("||" | "or") and)*
    and     := not (("&&" | "and") not)*
    not     := ("!" | "not") not | compare
    compare := atom (("==" | "===" | "!=" | "!==" | "<" | "<=" | ">" | ">=") atom)?
    atom    := NUMBER | STRING | true | false | null | NAME | "(" or ")"

A name with no bound signal raises :class:`UnboundName` while evaluating;
``and``/``or`` short-circuit, so an unbound name on a branch that is never
reached does not matter. The owning condition turns :class:`UnboundName` into
``False``.
"""
from __future__ import annotations

import ast
import operator
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..exceptions import ConditionSyntaxError


class UnboundName(LookupError):
    """Raised while evaluating a reference to a signal that is not bound."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name


class Expr(ABC):
    """Base node of a condition tree."""

    @abstractmethod
    def evaluate(self, env: Mapping[str, Any]) -> Any:
        ...

    @abstractmethod
    def names(self) -> FrozenSet[str]:
        """Signal names referenced anywhere in this tree."""

    def __and__(self, other: "Expr") -> "Expr":
        return AllOf(self, _as_expr(other))

    def __or__(self, other: "Expr") -> "Expr":
        return AnyOf(self, _as_expr(other))

    def __invert__(self) -> "Expr":
        return Not(self)


class Const(Expr):
    def __init__(self, value: Any) -> None:
        self.value = value

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return self.value

    def names(self) -> FrozenSet[str]:
        return frozenset()

    def __repr__(self) -> str:
        return f"Const({self.value!r})"


class Ref(Expr):
    """Reference to the current value of a named signal."""

    def __init__(self, name: str) -> None:
        if not isinstance(name, str) or not name:
            raise ConditionSyntaxError("Signal reference requires a non-empty name")
        self.name = name

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        if self.name not in env:
            raise UnboundName(self.name)
        return env[self.name]

    def names(self) -> FrozenSet[str]:
        return frozenset({self.name})

    def eq(self, other: Any) -> "Compare":
        return Compare("==", self, _as_expr(other))

    def ne(self, other: Any) -> "Compare":
        return Compare("!=", self, _as_expr(other))

    def lt(self, other: Any) -> "Compare":
        return Compare("<", self, _as_expr(other))

    def le(self, other: Any) -> "Compare":
        return Compare("<=", self, _as_expr(other))

    def gt(self, other: Any) -> "Compare":
        return Compare(">", self, _as_expr(other))

    def ge(self, other: Any) -> "Compare":
        return Compare(">=", self, _as_expr(other))

    def __repr__(self) -> str:
        return f"Ref({self.name!r})"


_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


class Compare(Expr):
    def __init__(self, op: str, left: Expr, right: Expr) -> None:
        if op not in _COMPARATORS:
            raise ConditionSyntaxError(f"Unknown comparison operator: {op!r}")
        self.op = op
        self.left = left
        self.right = right

    def evaluate(self, env: Mapping[str, Any]) -> bool:
        left = self.left.evaluate(env)
        right = self.right.evaluate(env)
        try:
            return bool(_COMPARATORS[self.op](left, right))
        except TypeError:
            # Ordering between unrelated types (e.g. "a" < 1) fails closed.
            return False

    def names(self) -> FrozenSet[str]:
        return self.left.names() | self.right.names()

    def __repr__(self) -> str:
        return f"Compare({self.op!r}, {self.left!r}, {self.right!r})"


class Not(Expr):
    def __init__(self, term: Expr) -> None:
        self.term = term

    def evaluate(self, env: Mapping[str, Any]) -> bool:
        return not self.term.evaluate(env)

    def names(self) -> FrozenSet[str]:
        return self.term.names()

    def __repr__(self) -> str:
        return f"Not({self.term!r})"


class AllOf(Expr):
    def __init__(self, *terms: Expr) -> None:
        self.terms: Tuple[Expr, ...] = tuple(terms)

    def evaluate(self, env: Mapping[str, Any]) -> bool:
        for term in self.terms:
            if not term.evaluate(env):
                return False
        return True

    def names(self) -> FrozenSet[str]:
        return frozenset().union(*(t.names() for t in self.terms))

    def __repr__(self) -> str:
        return f"AllOf{self.terms!r}"


class AnyOf(Expr):
    def __init__(self, *terms: Expr) -> None:
        self.terms: Tuple[Expr, ...] = tuple(terms)

    def evaluate(self, env: Mapping[str, Any]) -> bool:
        for term in self.terms:
            if term.evaluate(env):
                return True
        return False

    def names(self) -> FrozenSet[str]:
        return frozenset().union(*(t.names() for t in self.terms))

    def __repr__(self) -> str:
        return f"AnyOf{self.terms!r}"


def _as_expr(value: Any) -> Expr:
    return value if isinstance(value, Expr) else Const(value)


# ---------- Public combinator helpers ----------

def ref(name: str) -> Ref:
    return Ref(name)


def const(value: Any) -> Const:
    return Const(value)


def eq(name: str, value: Any) -> Compare:
    return Ref(name).eq(value)


def ne(name: str, value: Any) -> Compare:
    return Ref(name).ne(value)


def lt(name: str, value: Any) -> Compare:
    return Ref(name).lt(value)


def le(name: str, value: Any) -> Compare:
    return Ref(name).le(value)


def gt(name: str, value: Any) -> Compare:
    return Ref(name).gt(value)


def ge(name: str, value: Any) -> Compare:
    return Ref(name).ge(value)


def truthy(name: str) -> Ref:
    return Ref(name)


def not_(term: Any) -> Not:
    return Not(_as_expr(term))


def all_of(*terms: Any) -> AllOf:
    return AllOf(*(_as_expr(t) for t in terms))


def any_of(*terms: Any) -> AnyOf:
    return AnyOf(*(_as_expr(t) for t in terms))


# ---------- Condition-string compiler ----------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>\d+\.\d*|\.\d+|\d+)
    |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!()\-])
    |(?P<name>[A-Za-z_$][A-Za-z0-9_$]*(?:\.[A-Za-z_$][A-Za-z0-9_$]*)*)
    """,
    re.VERBOSE,
)

_LITERALS: Dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "True": True,
    "False": False,
    "None": None,
}

_COMPARE_TOKENS = {
    "==": "==",
    "===": "==",
    "!=": "!=",
    "!==": "!=",
    "<": "<",
    "<=": "<=",
    ">": ">",
    ">=": ">=",
}

Token = Tuple[str, str, int]  # (kind, text, position)


def _tokenize(source: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise ConditionSyntaxError(
                f"Unexpected character {source[pos]!r} at position {pos} in condition {source!r}",
                expression=source,
                position=pos,
            )
        kind = match.lastgroup or ""
        if kind != "ws":
            text = match.group(kind)
            if kind == "name" and text in ("and", "or", "not"):
                kind = "op"
            tokens.append((kind, text, pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = _tokenize(source)
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _accept(self, *texts: str) -> Optional[Token]:
        tok = self._peek()
        if tok is not None and tok[0] == "op" and tok[1] in texts:
            self.pos += 1
            return tok
        return None

    def _error(self, message: str, tok: Optional[Token]) -> ConditionSyntaxError:
        position = tok[2] if tok is not None else len(self.source)
        return ConditionSyntaxError(
            f"{message} at position {position} in condition {self.source!r}",
            expression=self.source,
            position=position,
        )

    def parse(self) -> Expr:
        if not self.tokens:
            raise self._error("Empty condition", None)
        expr = self._parse_or()
        tok = self._peek()
        if tok is not None:
            raise self._error(f"Unexpected token {tok[1]!r}", tok)
        return expr

    def _parse_or(self) -> Expr:
        terms = [self._parse_and()]
        while self._accept("||", "or"):
            terms.append(self._parse_and())
        return terms[0] if len(terms) == 1 else AnyOf(*terms)

    def _parse_and(self) -> Expr:
        terms = [self._parse_not()]
        while self._accept("&&", "and"):
            terms.append(self._parse_not())
        return terms[0] if len(terms) == 1 else AllOf(*terms)

    def _parse_not(self) -> Expr:
        if self._accept("!", "not"):
            return Not(self._parse_not())
        return self._parse_compare()

    def _parse_compare(self) -> Expr:
        left = self._parse_atom()
        tok = self._accept(*_COMPARE_TOKENS)
        if tok is None:
            return left
        right = self._parse_atom()
        return Compare(_COMPARE_TOKENS[tok[1]], left, right)

    def _parse_atom(self) -> Expr:
        tok = self._peek()
        if tok is None:
            raise self._error("Unexpected end of condition", None)
        kind, text, _ = tok
        if kind == "op" and text == "(":
            self.pos += 1
            inner = self._parse_or()
            if not self._accept(")"):
                raise self._error("Expected ')'", self._peek())
            return inner
        if kind == "op" and text == "-":
            self.pos += 1
            nxt = self._peek()
            if nxt is None or nxt[0] != "number":
                raise self._error("Expected number after '-'", nxt)
            self.pos += 1
            return Const(-_number(nxt[1]))
        if kind == "number":
            self.pos += 1
            return Const(_number(text))
        if kind == "string":
            self.pos += 1
            return Const(ast.literal_eval(text))
        if kind == "name":
            self.pos += 1
            if text in _LITERALS:
                return Const(_LITERALS[text])
            return Ref(text)
        raise self._error(f"Unexpected token {text!r}", tok)


def _number(text: str) -> Any:
    return float(text) if "." in text else int(text)


def compile_condition(source: str) -> Expr:
    """Compile a condition string into an expression tree.

    Raises:
        ConditionSyntaxError: If the string is not a valid condition.
    """
    if not isinstance(source, str):
        raise ConditionSyntaxError(f"Condition source must be a string, got {type(source).__name__}")
    return _Parser(source).parse()


__all__ = [
    "UnboundName",
    "Expr",
    "Const",
    "Ref",
    "Compare",
    "Not",
    "AllOf",
    "AnyOf",
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
    "compile_condition",
]
