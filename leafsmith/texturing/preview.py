"""
Preview helpers: combined Color+Opacity masking and detected-bounds overlays.
"""

import logging
from typing import Collection, Iterable

import numpy as np
from PIL import Image, ImageDraw

from leafsmith.atlas import AtlasModel
from leafsmith.schema import LayerType, LeafBounds

logger = logging.getLogger(__name__)

BOUNDS_COLOR = (255, 255, 0, 255)
SELECTED_COLOR = (0, 255, 0, 255)


def apply_opacity_mask(color: np.ndarray, opacity: np.ndarray) -> np.ndarray:
    """
    Multiply Color alpha by the Opacity layer's red channel.

    newAlpha = round(colorAlpha * opacityRed / 255), computed in integers
    (255 is odd, so there are no exact .5 ties).

    Returns:
        New RGBA buffer; RGB is copied unchanged
    """
    if color.shape[:2] != opacity.shape[:2]:
        raise ValueError(f"Color {color.shape[:2]} and Opacity {opacity.shape[:2]} sizes differ")

    masked = color.copy()
    product = color[..., 3].astype(np.uint32) * opacity[..., 0].astype(np.uint32)
    masked[..., 3] = ((product + 127) // 255).astype(np.uint8)
    return masked


def masked_atlas_preview(atlas: AtlasModel) -> np.ndarray:
    """
    Whole-atlas combined view: Color masked by Opacity.

    Falls back to the plain Color layer when there is no Opacity layer or
    the two differ in size.
    """
    color = atlas.get(LayerType.Color)
    if color is None:
        raise ValueError(f"Atlas '{atlas.base_name}' has no Color layer")

    opacity = atlas.get(LayerType.Opacity)
    if opacity is None:
        return color.pixels.copy()
    if opacity.pixels.shape != color.pixels.shape:
        logger.warning("Opacity layer size differs from Color, showing Color unmasked")
        return color.pixels.copy()
    return apply_opacity_mask(color.pixels, opacity.pixels)


def draw_bounds_overlay(
    pixels: np.ndarray,
    leaves: Iterable[LeafBounds],
    selected: Collection[int] = ()
) -> np.ndarray:
    """
    Outline detected leaves with their ``#id`` labels.

    Selected leaves are drawn in green with a 2px outline, others in yellow.
    """
    image = Image.fromarray(np.ascontiguousarray(pixels))
    draw = ImageDraw.Draw(image)

    for leaf in leaves:
        is_selected = leaf.id in selected
        color = SELECTED_COLOR if is_selected else BOUNDS_COLOR
        draw.rectangle(
            [leaf.x, leaf.y, leaf.x + leaf.width - 1, leaf.y + leaf.height - 1],
            outline=color,
            width=2 if is_selected else 1,
        )
        draw.text((leaf.x + 2, leaf.y + 2), f"#{leaf.id}", fill=color)

    return np.array(image, dtype=np.uint8)
