"""Small builders for synthetic pixel buffers used across tests."""
import numpy as np


def square_mask(size, squares, value=255):
    """Grayscale mask with filled squares given as (x, y, side)."""
    mask = np.zeros((size, size), dtype=np.uint8)
    for x, y, side in squares:
        mask[y:y + side, x:x + side] = value
    return mask


def solid(size, rgba):
    """Square RGBA buffer filled with one color."""
    pixels = np.empty((size, size, 4), dtype=np.uint8)
    pixels[...] = rgba
    return pixels
