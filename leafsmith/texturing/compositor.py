"""
Compositor: renders placed leaves into a full-size output buffer per layer.

Each call builds a new buffer; nothing is drawn into shared state.

Background policy:
    NormalGL / NormalDX -> neutral "pointing up" normal (128, 128, 255, 255)
    everything else     -> fully transparent (0, 0, 0, 0)

Per placement (bottom to top, list order):
    dest = translate(x, y) . rotate(rotation) . scale(sx, sy) . local
    where local spans [-w/2, w/2] x [-h/2, h/2] of the crop and
    sx, sy = scale * (-1 if flip else 1).
Sampling is done by inverse mapping at output pixel centers; blending is
source-over on premultiplied floats, rounded back to uint8.
"""

import logging
import math
from typing import Iterable, Optional, Tuple, Union

import numpy as np

from leafsmith.schema import LayerType, PlacedLeaf
from .extract import ExtractionCache
from .preview import apply_opacity_mask

logger = logging.getLogger(__name__)

NEUTRAL_NORMAL = (128, 128, 255, 255)
TRANSPARENT = (0, 0, 0, 0)
RESAMPLE_MODES = ('nearest', 'bilinear')

OutputSize = Union[int, Tuple[int, int]]


def background_color(layer_type: LayerType) -> Tuple[int, int, int, int]:
    """Fill color used before any leaf is drawn."""
    if layer_type.is_normal:
        return NEUTRAL_NORMAL
    return TRANSPARENT


def _canvas_size(output_size: OutputSize) -> Tuple[int, int]:
    if isinstance(output_size, (tuple, list)):
        width, height = int(output_size[0]), int(output_size[1])
    else:
        width = height = int(output_size)
    if width <= 0 or height <= 0:
        raise ValueError(f"Output size must be positive, got {output_size}")
    return width, height


def blank_canvas(output_size: OutputSize, layer_type: LayerType) -> np.ndarray:
    """New (H, W, 4) buffer filled with the layer's background."""
    width, height = _canvas_size(output_size)
    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[...] = background_color(layer_type)
    return canvas


def _premultiply(pixels: np.ndarray) -> np.ndarray:
    values = pixels.astype(np.float64) / 255.0
    values[..., :3] *= values[..., 3:4]
    return values


def _unpremultiply(values: np.ndarray) -> np.ndarray:
    alpha = values[..., 3:4]
    rgb = np.divide(values[..., :3], alpha, out=np.zeros_like(values[..., :3]), where=alpha > 0)
    out = np.concatenate([rgb, alpha], axis=-1)
    return np.clip(np.rint(out * 255.0), 0, 255).astype(np.uint8)


def _blend_over(dst: np.ndarray, src: np.ndarray) -> np.ndarray:
    """Source-over of premultiplied float ``src`` onto uint8 ``dst``."""
    dst_values = _premultiply(dst)
    src_alpha = src[..., 3:4]
    return _unpremultiply(src + dst_values * (1.0 - src_alpha))


def composite_over(dst: np.ndarray, src: np.ndarray, opacity: float = 1.0) -> np.ndarray:
    """
    Source-over composite of two same-sized RGBA buffers.

    Args:
        dst: Destination buffer (uint8 RGBA)
        src: Source buffer drawn on top (uint8 RGBA, same shape)
        opacity: Global alpha applied to ``src`` (0.0-1.0)

    Returns:
        New uint8 RGBA buffer
    """
    if dst.shape != src.shape:
        raise ValueError(f"Shape mismatch: {dst.shape} vs {src.shape}")
    return _blend_over(dst, _premultiply(src) * float(opacity))


def _sample_nearest(premult: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    height, width = premult.shape[:2]
    iu = np.floor(u).astype(np.intp)
    iv = np.floor(v).astype(np.intp)
    valid = (iu >= 0) & (iu < width) & (iv >= 0) & (iv < height)

    out = np.zeros(u.shape + (4,), dtype=np.float64)
    out[valid] = premult[iv[valid], iu[valid]]
    return out


def _sample_bilinear(premult: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    height, width = premult.shape[:2]

    # One transparent texel of border so edges fade out instead of clamping
    padded = np.zeros((height + 2, width + 2, 4), dtype=np.float64)
    padded[1:-1, 1:-1] = premult

    fu = u - 0.5 + 1.0
    fv = v - 0.5 + 1.0
    inside = (fu >= 0) & (fu <= width + 1) & (fv >= 0) & (fv <= height + 1)
    fu = np.clip(fu, 0, width + 1)
    fv = np.clip(fv, 0, height + 1)

    x0 = np.minimum(np.floor(fu).astype(np.intp), width)
    y0 = np.minimum(np.floor(fv).astype(np.intp), height)
    ax = (fu - x0)[..., None]
    ay = (fv - y0)[..., None]

    top = padded[y0, x0] * (1.0 - ax) + padded[y0, x0 + 1] * ax
    bottom = padded[y0 + 1, x0] * (1.0 - ax) + padded[y0 + 1, x0 + 1] * ax
    out = top * (1.0 - ay) + bottom * ay
    out[~inside] = 0.0
    return out


def _draw_into(canvas: np.ndarray, crop: np.ndarray, placed: PlacedLeaf, resample: str) -> bool:
    """Draw one crop into ``canvas`` in place. Returns False if nothing landed."""
    crop_h, crop_w = crop.shape[:2]
    if crop_h == 0 or crop_w == 0:
        return False

    sx, sy = placed.axis_scale
    theta = math.radians(placed.rotation)
    cos_t, sin_t = math.cos(theta), math.sin(theta)

    half_w, half_h = crop_w / 2.0, crop_h / 2.0
    xs, ys = [], []
    for lx, ly in ((-half_w, -half_h), (half_w, -half_h), (half_w, half_h), (-half_w, half_h)):
        px, py = lx * sx, ly * sy
        xs.append(placed.x + px * cos_t - py * sin_t)
        ys.append(placed.y + px * sin_t + py * cos_t)

    canvas_h, canvas_w = canvas.shape[:2]
    x0 = max(0, int(math.floor(min(xs))))
    x1 = min(canvas_w, int(math.ceil(max(xs))))
    y0 = max(0, int(math.floor(min(ys))))
    y1 = min(canvas_h, int(math.ceil(max(ys))))
    if x0 >= x1 or y0 >= y1:
        return False

    gx, gy = np.meshgrid(np.arange(x0, x1) + 0.5, np.arange(y0, y1) + 0.5)
    dx = gx - placed.x
    dy = gy - placed.y
    # Inverse rotation, then inverse per-axis scale
    u = (dx * cos_t + dy * sin_t) / sx + half_w
    v = (-dx * sin_t + dy * cos_t) / sy + half_h

    premult = _premultiply(crop)
    if resample == 'nearest':
        src = _sample_nearest(premult, u, v)
    else:
        src = _sample_bilinear(premult, u, v)

    canvas[y0:y1, x0:x1] = _blend_over(canvas[y0:y1, x0:x1], src)
    return True


def draw_leaf(
    canvas: np.ndarray,
    crop: np.ndarray,
    placed: PlacedLeaf,
    resample: str = 'bilinear'
) -> np.ndarray:
    """Return a copy of ``canvas`` with ``crop`` drawn at the placement's transform."""
    if resample not in RESAMPLE_MODES:
        raise ValueError(f"Unknown resample mode: {resample}")
    out = canvas.copy()
    _draw_into(out, crop, placed, resample)
    return out


def render_layer(
    layer_type: LayerType,
    placements: Iterable[PlacedLeaf],
    cache: Optional[ExtractionCache],
    output_size: OutputSize = 1024,
    resample: str = 'bilinear'
) -> np.ndarray:
    """
    Render every placement for one layer type.

    Placements whose source leaf cannot be resolved to both bounds and a
    crop for ``layer_type`` are skipped.

    Args:
        layer_type: Layer to render
        placements: Placed leaves, bottom to top
        cache: Crop resolver for the current detection pass (None renders background only)
        output_size: Side length, or (width, height)
        resample: 'nearest' or 'bilinear'

    Returns:
        New (H, W, 4) uint8 buffer
    """
    if resample not in RESAMPLE_MODES:
        raise ValueError(f"Unknown resample mode: {resample}")

    canvas = blank_canvas(output_size, layer_type)
    if cache is None:
        return canvas

    drawn = skipped = 0
    for placed in placements:
        crop = None
        if cache.bounds(placed.source_id) is not None:
            crop = cache.layer(placed.source_id, layer_type)
        if crop is None:
            skipped += 1
            logger.debug(f"Skipping {placed.id}: no {layer_type.value} data for leaf {placed.source_id}")
            continue
        if _draw_into(canvas, crop, placed, resample):
            drawn += 1

    logger.debug(f"Rendered {layer_type.value}: {drawn} drawn, {skipped} skipped")
    return canvas


def render_combined(
    placements: Iterable[PlacedLeaf],
    cache: Optional[ExtractionCache],
    output_size: OutputSize = 1024,
    resample: str = 'bilinear'
) -> np.ndarray:
    """
    Interactive preview: Color crops masked by their Opacity crops.

    Each leaf's Color alpha is multiplied by its Opacity red channel before
    drawing. Leaves without a Color crop are skipped; leaves without an
    Opacity crop are drawn with their Color alpha as is.
    """
    if resample not in RESAMPLE_MODES:
        raise ValueError(f"Unknown resample mode: {resample}")

    canvas = blank_canvas(output_size, LayerType.Color)
    if cache is None:
        return canvas

    for placed in placements:
        if cache.bounds(placed.source_id) is None:
            continue
        layers = cache.get(placed.source_id) or {}
        color = layers.get(LayerType.Color)
        if color is None:
            continue

        opacity = layers.get(LayerType.Opacity)
        if opacity is not None and opacity.shape == color.shape:
            color = apply_opacity_mask(color, opacity)
        elif opacity is not None:
            logger.debug(f"Opacity crop for leaf {placed.source_id} does not match Color, drawing unmasked")

        _draw_into(canvas, color, placed, resample)

    return canvas
