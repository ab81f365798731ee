"""Registries of original and refined method implementations."""

from .originals import ABSENT, OriginalEntry, OriginalRegistry
from .refinements import Refinement, RefinementRegistry

__all__ = [
    "ABSENT",
    "OriginalEntry",
    "OriginalRegistry",
    "Refinement",
    "RefinementRegistry",
]
