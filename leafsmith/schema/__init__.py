"""Leaf schema definitions."""
from .models import (
    LayerType,
    LeafBounds,
    PlacedLeaf,
    TransformUpdate,
    DetectionParams,
    normalize_rotation,
)

__all__ = [
    "LayerType",
    "LeafBounds",
    "PlacedLeaf",
    "TransformUpdate",
    "DetectionParams",
    "normalize_rotation",
]
