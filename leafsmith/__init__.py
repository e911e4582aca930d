"""
LeafSmith - Turn irregular foliage atlases into tileable PBR texture sets

Detects individual leaves in an atlas's opacity signal, lets you arrange
instances of them, and composites every PBR layer with identical transforms.
"""

from leafsmith.client import Leafsmith
from leafsmith.config import Settings
from leafsmith.schema import LayerType, LeafBounds, PlacedLeaf

__version__ = "0.0.1"
__all__ = ["Leafsmith", "Settings", "LayerType", "LeafBounds", "PlacedLeaf"]
