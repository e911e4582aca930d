"""Leaf detection: opacity signal selection and connected-component labeling."""
from .detector import (
    DetectionResult,
    OpacitySignal,
    detect_leaves,
    detect_leaves_in_mask,
    find_leaf_at,
    has_alpha_channel,
    opacity_signal,
)

__all__ = [
    'DetectionResult',
    'OpacitySignal',
    'detect_leaves',
    'detect_leaves_in_mask',
    'find_leaf_at',
    'has_alpha_channel',
    'opacity_signal',
]
