"""
Leaf detection from an opacity signal.

Pipeline:
    opacity signal (H, W) uint8
      -> binarize: foreground iff value > threshold
      -> 4-connected component labeling (diagonal touches stay separate)
      -> tight bounding box + pixel count per component
      -> drop components smaller than min_area
      -> ids 0..k-1 in row-major order of each component's first pixel

Identical inputs always give the identical ordered list. Time and extra
memory are linear in the number of pixels.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from scipy import ndimage

from leafsmith.atlas import AtlasModel
from leafsmith.schema import DetectionParams, LayerType, LeafBounds

logger = logging.getLogger(__name__)

OPACITY_SOURCE = "Opacity"
COLOR_ALPHA_SOURCE = "Color alpha"

# 4-connectivity: up/down/left/right only
FOUR_CONNECTED = np.array([[0, 1, 0],
                           [1, 1, 1],
                           [0, 1, 0]], dtype=bool)

_pass_ids = itertools.count(1)


@dataclass(frozen=True)
class OpacitySignal:
    """Single-channel opacity values and where they came from."""
    values: np.ndarray
    source: str


@dataclass(frozen=True)
class DetectionResult:
    """
    Outcome of one detection pass.

    ``source`` is None when the atlas has no opacity data at all, which is a
    different outcome from a pass that found zero leaves.
    """
    leaves: List[LeafBounds] = field(default_factory=list)
    source: Optional[str] = None
    params: DetectionParams = field(default_factory=DetectionParams)
    pass_id: int = 0

    @property
    def has_opacity(self) -> bool:
        return self.source is not None

    def find(self, leaf_id: int) -> Optional[LeafBounds]:
        for leaf in self.leaves:
            if leaf.id == leaf_id:
                return leaf
        return None

    @property
    def ids(self) -> List[int]:
        return [leaf.id for leaf in self.leaves]


def has_alpha_channel(pixels: np.ndarray) -> bool:
    """True if any alpha sample is below full opacity."""
    return bool((pixels[..., 3] < 255).any())


def opacity_signal(atlas: AtlasModel) -> Optional[OpacitySignal]:
    """
    Pick the opacity signal for an atlas.

    A dedicated Opacity layer wins (its red channel, since it is authored as
    grayscale). Otherwise the Color layer's alpha is used, but only if it
    actually varies. Returns None when neither is usable.
    """
    opacity = atlas.get(LayerType.Opacity)
    if opacity is not None:
        return OpacitySignal(opacity.pixels[..., 0], OPACITY_SOURCE)

    color = atlas.get(LayerType.Color)
    if color is not None and has_alpha_channel(color.pixels):
        return OpacitySignal(color.pixels[..., 3], COLOR_ALPHA_SOURCE)

    return None


def detect_leaves_in_mask(values: np.ndarray, threshold: int, min_area: int) -> List[LeafBounds]:
    """
    Label connected foreground regions of a single-channel image.

    Args:
        values: 2-D array of opacity samples
        threshold: Foreground iff sample > threshold (1-255)
        min_area: Components with fewer pixels are discarded

    Returns:
        LeafBounds list ordered by row-major discovery, ids 0..k-1
    """
    params = DetectionParams(threshold=threshold, min_area=min_area)
    values = np.asarray(values)
    if values.ndim != 2:
        raise ValueError(f"Opacity signal must be 2-D, got shape {values.shape}")

    mask = values > params.threshold
    labels, count = ndimage.label(mask, structure=FOUR_CONNECTED)
    if count == 0:
        return []

    areas = np.bincount(labels.ravel(), minlength=count + 1)
    slices = ndimage.find_objects(labels)

    components = []
    for index, sl in enumerate(slices, start=1):
        if sl is None:
            continue
        rows, cols = sl
        # First pixel in raster order sits on the top row of the bounding box
        top_row = labels[rows.start, cols]
        first_col = cols.start + int(np.argmax(top_row == index))
        components.append((rows.start, first_col, index, sl))

    components.sort(key=lambda c: (c[0], c[1]))

    leaves = []
    for _, _, index, (rows, cols) in components:
        area = int(areas[index])
        if area < params.min_area:
            continue
        leaves.append(LeafBounds(
            id=len(leaves),
            x=cols.start,
            y=rows.start,
            width=cols.stop - cols.start,
            height=rows.stop - rows.start,
            area=area,
        ))

    logger.debug(f"Labeled {count} components, kept {len(leaves)} with area >= {params.min_area}")
    return leaves


def detect_leaves(atlas: AtlasModel, threshold: int = 128, min_area: int = 500) -> DetectionResult:
    """
    Run one detection pass over an atlas.

    Returns a DetectionResult whose ``has_opacity`` is False when the atlas
    has neither an Opacity layer nor a Color layer with alpha.
    """
    params = DetectionParams(threshold=threshold, min_area=min_area)
    pass_id = next(_pass_ids)

    signal = opacity_signal(atlas)
    if signal is None:
        logger.warning(f"No opacity data in atlas '{atlas.base_name}'")
        return DetectionResult(leaves=[], source=None, params=params, pass_id=pass_id)

    leaves = detect_leaves_in_mask(signal.values, params.threshold, params.min_area)
    logger.info(
        f"Detected {len(leaves)} leaves from {signal.source} "
        f"(threshold={params.threshold}, min_area={params.min_area})"
    )
    return DetectionResult(leaves=leaves, source=signal.source, params=params, pass_id=pass_id)


def find_leaf_at(leaves: List[LeafBounds], x: float, y: float) -> Optional[LeafBounds]:
    """First leaf (in id order) whose bounds contain the point, or None."""
    for leaf in leaves:
        if leaf.contains(x, y):
            return leaf
    return None
