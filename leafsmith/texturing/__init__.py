"""
Texturing: leaf extraction, per-layer compositing, previews and the
tileability pass.
"""
from .extract import ExtractionCache, crop_rect, extract_leaf, extract_region
from .preview import apply_opacity_mask, draw_bounds_overlay, masked_atlas_preview
from .compositor import (
    NEUTRAL_NORMAL,
    TRANSPARENT,
    background_color,
    blank_canvas,
    composite_over,
    draw_leaf,
    render_combined,
    render_layer,
)
from .tileable import make_tileable

__all__ = [
    'ExtractionCache',
    'crop_rect',
    'extract_leaf',
    'extract_region',
    'apply_opacity_mask',
    'draw_bounds_overlay',
    'masked_atlas_preview',
    'NEUTRAL_NORMAL',
    'TRANSPARENT',
    'background_color',
    'blank_canvas',
    'composite_over',
    'draw_leaf',
    'render_combined',
    'render_layer',
    'make_tileable',
]
