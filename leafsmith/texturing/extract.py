"""
Leaf region extraction.

Crops are verbatim copies of the source pixels inside the leaf bounds grown
by ``padding`` on every side and clamped to the source. Nothing is
synthesized for the part of the padding that falls outside the image.
"""

import logging
from typing import Dict, Optional, Tuple

import numpy as np

from leafsmith.atlas import AtlasModel
from leafsmith.detection import DetectionResult
from leafsmith.schema import LayerType, LeafBounds

logger = logging.getLogger(__name__)

DEFAULT_PADDING = 4

LeafLayers = Dict[LayerType, np.ndarray]


def crop_rect(
    bounds: LeafBounds,
    padding: int,
    width: int,
    height: int
) -> Tuple[int, int, int, int]:
    """
    Padded, clamped crop rectangle.

    Returns:
        (x1, y1, x2, y2) with 0 <= x1 <= x2 <= width, 0 <= y1 <= y2 <= height
    """
    if padding < 0:
        raise ValueError(f"padding must be >= 0, got {padding}")
    x1 = min(max(0, bounds.x - padding), width)
    y1 = min(max(0, bounds.y - padding), height)
    x2 = max(x1, min(width, bounds.x + bounds.width + padding))
    y2 = max(y1, min(height, bounds.y + bounds.height + padding))
    return x1, y1, x2, y2


def extract_region(pixels: np.ndarray, bounds: LeafBounds, padding: int = DEFAULT_PADDING) -> np.ndarray:
    """Copy the padded, clamped bounds region out of one layer's pixels."""
    height, width = pixels.shape[:2]
    x1, y1, x2, y2 = crop_rect(bounds, padding, width, height)
    return pixels[y1:y2, x1:x2].copy()


def extract_leaf(atlas: AtlasModel, bounds: LeafBounds, padding: int = DEFAULT_PADDING) -> LeafLayers:
    """Crop one leaf out of every layer of the atlas."""
    return {
        layer_type: extract_region(layer.pixels, bounds, padding)
        for layer_type, layer in atlas.layers.items()
    }


class ExtractionCache:
    """
    Lazily extracted per-layer crops for the leaves of one detection pass.

    A cache belongs to exactly one (atlas, detection pass) pair; a new atlas
    or a new pass gets a new cache. Lookups for ids that the pass does not
    contain return None instead of raising.
    """

    def __init__(self, atlas: AtlasModel, detection: DetectionResult, padding: int = DEFAULT_PADDING):
        self.atlas = atlas
        self.detection = detection
        self.padding = padding
        self._bounds = {leaf.id: leaf for leaf in detection.leaves}
        self._entries: Dict[int, LeafLayers] = {}

    @property
    def key(self) -> Tuple[int, int]:
        return (id(self.atlas), self.detection.pass_id)

    def matches(self, atlas: AtlasModel, detection: DetectionResult) -> bool:
        return self.atlas is atlas and self.detection.pass_id == detection.pass_id

    def bounds(self, source_id: int) -> Optional[LeafBounds]:
        return self._bounds.get(source_id)

    def get(self, source_id: int) -> Optional[LeafLayers]:
        """Per-layer crops for a leaf, extracting on first use."""
        entry = self._entries.get(source_id)
        if entry is not None:
            return entry

        bounds = self._bounds.get(source_id)
        if bounds is None:
            return None

        entry = extract_leaf(self.atlas, bounds, self.padding)
        self._entries[source_id] = entry
        return entry

    def layer(self, source_id: int, layer_type: LayerType) -> Optional[np.ndarray]:
        entry = self.get(source_id)
        if entry is None:
            return None
        return entry.get(layer_type)

    def invalidate(self) -> None:
        self._entries.clear()

    def __contains__(self, source_id: int) -> bool:
        return source_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
