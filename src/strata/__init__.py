"""
strata - runtime layer composition for Python objects

Layers group alternate method implementations ("refinements") and switch
them in and out of live objects as conditions over observable signals
change.
"""

import logging

from .core.composer import Composer
from .core.composition.proceed import Proceed
from .core.config import ComposerConfig, ConfigManager
from .core.exceptions import (
    ConditionSyntaxError,
    ConfigurationError,
    DuplicateLayerError,
    ExtensionNotInstalledError,
    InvalidArgumentError,
    LayerNotDeployedError,
    MissingOriginalError,
    NoRefinementForTypeError,
    StrataError,
)
from .core.layers import Layer, LayerSpec
from .core.logging import configure_logging
from .core.signals import (
    ConditionExpression,
    Signal,
    all_of,
    any_of,
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

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "Composer",
    "ComposerConfig",
    "ConfigManager",
    "ConditionExpression",
    "Layer",
    "LayerSpec",
    "Proceed",
    "Signal",
    "configure_logging",
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
