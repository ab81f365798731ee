from __future__ import annotations

from typing import Any, Dict, Mapping


class StrataError(Exception):
    """Base exception for the strata composition engine."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class InvalidArgumentError(StrataError, TypeError):
    """Raised when a target or instance cannot take part in composition."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        StrataError.__init__(self, message, context=context)
        TypeError.__init__(self, message)


class LayerNotDeployedError(StrataError, LookupError):
    """Raised when operating on a layer that was never deployed."""

    def __init__(
        self,
        message: str = "",
        *,
        layer: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if layer:
            ctx["layer"] = layer
        StrataError.__init__(self, message, context=ctx)
        LookupError.__init__(self, message)


class NoRefinementForTypeError(StrataError, LookupError):
    """Raised when a layer has no refinements for an instance's type."""

    def __init__(
        self,
        message: str = "",
        *,
        layer: str | None = None,
        type_name: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if layer:
            ctx["layer"] = layer
        if type_name:
            ctx["type"] = type_name
        StrataError.__init__(self, message, context=ctx)
        LookupError.__init__(self, message)


class MissingOriginalError(StrataError, RuntimeError):
    """Raised when a proceed chain runs past its end with no original recorded."""

    def __init__(
        self,
        message: str = "",
        *,
        method: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if method:
            ctx["method"] = method
        StrataError.__init__(self, message, context=ctx)
        RuntimeError.__init__(self, message)


class DuplicateLayerError(StrataError, ValueError):
    """Raised when a layer name or spec is deployed twice."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        StrataError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class ConfigurationError(StrataError, ValueError):
    """Raised for invalid configuration values or files."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        StrataError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class ConditionSyntaxError(StrataError, ValueError):
    """Raised when a condition string cannot be compiled."""

    def __init__(
        self,
        message: str = "",
        *,
        expression: str | None = None,
        position: int | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if expression is not None:
            ctx["expression"] = expression
        if position is not None:
            ctx["position"] = position
        StrataError.__init__(self, message, context=ctx)
        ValueError.__init__(self, message)


class ExtensionNotInstalledError(StrataError, RuntimeError):
    """Raised when the object-scope API is used before being installed."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        StrataError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


__all__ = [
    "StrataError",
    "InvalidArgumentError",
    "LayerNotDeployedError",
    "NoRefinementForTypeError",
    "MissingOriginalError",
    "DuplicateLayerError",
    "ConfigurationError",
    "ConditionSyntaxError",
    "ExtensionNotInstalledError",
]
