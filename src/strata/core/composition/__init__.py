"""Slot dispatch: proceed chains, conflict resolution and object scope."""

from .object_scope import ObjectScope, ScopeEntry
from .proceed import Proceed, refinement_dispatcher, resolver_dispatcher
from .resolution import ConflictResolutionTable, Resolution, Resolver
from .slots import REFINEMENT, RESOLVER, InstalledSlot, SlotTable

__all__ = [
    "ObjectScope",
    "ScopeEntry",
    "Proceed",
    "refinement_dispatcher",
    "resolver_dispatcher",
    "ConflictResolutionTable",
    "Resolution",
    "Resolver",
    "REFINEMENT",
    "RESOLVER",
    "InstalledSlot",
    "SlotTable",
]
