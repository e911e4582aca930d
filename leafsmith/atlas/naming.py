"""
Layer-name convention for source texture files.

A file is recognized as a layer when its name, after stripping a supported
image extension, ends with one of the suffixes below preceded by ``_`` or
``-`` (case-insensitive), e.g. ``LeafSet024_1K-JPG_Color.jpg``.
"""

import re
from typing import Dict, List, Optional, Tuple

from leafsmith.schema import LayerType

SUPPORTED_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.webp')

# Checked in order, first match wins. "Normal" on its own is treated as OpenGL.
LAYER_PATTERNS: Dict[LayerType, List[str]] = {
    LayerType.Color: ['Color', 'BaseColor', 'Albedo', 'Diffuse'],
    LayerType.Opacity: ['Opacity', 'Alpha', 'Mask'],
    LayerType.NormalGL: ['NormalGL', 'Normal'],
    LayerType.NormalDX: ['NormalDX'],
    LayerType.Roughness: ['Roughness'],
    LayerType.Metalness: ['Metalness', 'Metallic'],
    LayerType.AmbientOcclusion: ['AmbientOcclusion', 'AO'],
}

_EXTENSION_RE = re.compile(r'\.(png|jpe?g|webp)$', re.IGNORECASE)

_SUFFIX_RES: List[Tuple[LayerType, re.Pattern]] = [
    (layer_type, re.compile(rf'[_-]{re.escape(pattern)}$', re.IGNORECASE))
    for layer_type, patterns in LAYER_PATTERNS.items()
    for pattern in patterns
]


def is_supported_image(filename: str) -> bool:
    """Whether the file has one of the accepted raster extensions."""
    return _EXTENSION_RE.search(filename) is not None


def parse_file_name(filename: str) -> Tuple[str, Optional[LayerType]]:
    """
    Split a file name into its base name and layer type.

    Args:
        filename: File name, with or without directory and extension

    Returns:
        Tuple of (base_name, layer_type). layer_type is None when no suffix
        matches; base_name is then the extension-stripped name.

    Examples:
        >>> parse_file_name("LeafSet024_1K-JPG_Color.jpg")
        ('LeafSet024_1K-JPG', <LayerType.Color: 'Color'>)
        >>> parse_file_name("notes.txt")
        ('notes.txt', None)
    """
    name = re.split(r'[\\/]', filename)[-1]
    base = _EXTENSION_RE.sub('', name)

    for layer_type, regex in _SUFFIX_RES:
        if regex.search(base):
            return regex.sub('', base), layer_type

    return base, None
