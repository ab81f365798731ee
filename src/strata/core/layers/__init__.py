"""Layer declarations and their deployed lifecycle objects."""

from .layer import ACTIVE, INACTIVE, Layer
from .spec import LayerSpec

__all__ = ["ACTIVE", "INACTIVE", "Layer", "LayerSpec"]
