"""
Approximate seam softening for tiling.

The output starts as a copy of the input; then each edge strip of width W is
blended at 50% over the opposite edge:

    top strip    -> bottom edge
    bottom strip -> top edge
    left strip   -> right edge
    right strip  -> left edge

Strips are always taken from the unmodified input. This hides hard seams but
does not make the texture tile exactly: gradients across the seam are not
continuous and corners receive two blends.
"""

import logging

import numpy as np

from .compositor import composite_over

logger = logging.getLogger(__name__)

DEFAULT_WRAP_SIZE = 64
WRAP_OPACITY = 0.5


def make_tileable(pixels: np.ndarray, wrap_size: int = DEFAULT_WRAP_SIZE) -> np.ndarray:
    """
    Blend opposite edges of a composited buffer.

    Args:
        pixels: (H, W, 4) uint8 buffer
        wrap_size: Strip width in pixels; clamped to the buffer size

    Returns:
        New buffer of the same shape
    """
    if wrap_size < 0:
        raise ValueError(f"wrap_size must be >= 0, got {wrap_size}")

    height, width = pixels.shape[:2]
    out = pixels.copy()
    wy = min(wrap_size, height)
    wx = min(wrap_size, width)

    if wy > 0:
        out[height - wy:] = composite_over(out[height - wy:], pixels[:wy], WRAP_OPACITY)
        out[:wy] = composite_over(out[:wy], pixels[height - wy:], WRAP_OPACITY)
    if wx > 0:
        out[:, width - wx:] = composite_over(out[:, width - wx:], pixels[:, :wx], WRAP_OPACITY)
        out[:, :wx] = composite_over(out[:, :wx], pixels[:, width - wx:], WRAP_OPACITY)

    logger.debug(f"Applied tileable edge blend ({wrap_size}px) to {width}x{height} buffer")
    return out
