"""
Atlas model: one loaded set of aligned texture layers.

An atlas is built in one step from a batch of files (or arrays) and never
mutated afterwards; a new load produces a new AtlasModel.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Union

import numpy as np
from PIL import Image

from leafsmith.exceptions import AtlasLoadError
from leafsmith.schema import LayerType
from .naming import is_supported_image, parse_file_name

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def to_rgba(array: np.ndarray) -> np.ndarray:
    """
    Promote an image array to an (H, W, 4) uint8 RGBA buffer.

    Grayscale (H, W) arrays are replicated into RGB; arrays without alpha
    get a fully opaque alpha channel. The result is always a new array.
    """
    array = np.asarray(array)
    if array.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixel data, got {array.dtype}")

    if array.ndim == 2:
        array = np.stack([array, array, array], axis=-1)
    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise ValueError(f"Unsupported pixel buffer shape {array.shape}")

    if array.shape[2] == 3:
        alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
        return np.concatenate([array, alpha], axis=-1)
    return array.copy()


@dataclass(frozen=True, eq=False)
class TextureLayer:
    """One layer's pixels, RGBA uint8, shape (height, width, 4). Read-only."""
    layer_type: LayerType
    pixels: np.ndarray

    def __post_init__(self):
        pixels = to_rgba(self.pixels)
        pixels.setflags(write=False)
        object.__setattr__(self, 'pixels', pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True, eq=False)
class AtlasModel:
    """
    A foliage atlas: base name plus at most one TextureLayer per LayerType.

    width/height are the maximum across layers. Layers are not required to
    share dimensions unless ``strict_dimensions`` was requested on load.
    """
    base_name: str
    layers: Mapping[LayerType, TextureLayer] = field(default_factory=dict)
    width: int = 0
    height: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'layers', MappingProxyType(dict(self.layers)))

    @classmethod
    def from_layers(
        cls,
        base_name: str,
        layers: Iterable[TextureLayer],
        strict_dimensions: bool = False
    ) -> "AtlasModel":
        """Build an atlas from layers, computing overall dimensions."""
        by_type: Dict[LayerType, TextureLayer] = {}
        for layer in layers:
            if layer.layer_type in by_type:
                logger.warning(f"Duplicate {layer.layer_type.value} layer, keeping the last one")
            by_type[layer.layer_type] = layer

        if not by_type:
            raise AtlasLoadError(
                "No valid texture layers found. Check filename patterns (e.g., _Color, _Opacity, _NormalGL)"
            )

        sizes = {(layer.width, layer.height) for layer in by_type.values()}
        if len(sizes) > 1:
            detail = ", ".join(f"{t.value}={l.width}x{l.height}" for t, l in by_type.items())
            if strict_dimensions:
                raise AtlasLoadError(f"Layer dimensions differ: {detail}")
            logger.warning(f"Layer dimensions differ, layers may misalign: {detail}")

        width = max(layer.width for layer in by_type.values())
        height = max(layer.height for layer in by_type.values())

        # Keep a stable layer order regardless of file order
        ordered = {t: by_type[t] for t in LayerType if t in by_type}
        return cls(base_name=base_name, layers=ordered, width=width, height=height)

    @classmethod
    def from_arrays(
        cls,
        base_name: str,
        arrays: Mapping[LayerType, np.ndarray],
        strict_dimensions: bool = False
    ) -> "AtlasModel":
        """Build an atlas from in-memory pixel arrays keyed by layer type."""
        layers = [TextureLayer(LayerType(t), a) for t, a in arrays.items()]
        return cls.from_layers(base_name, layers, strict_dimensions=strict_dimensions)

    def get(self, layer_type: LayerType) -> Optional[TextureLayer]:
        return self.layers.get(layer_type)

    def __contains__(self, layer_type) -> bool:
        return layer_type in self.layers

    @property
    def layer_types(self):
        return list(self.layers.keys())


WIDE_GRAYSCALE_MODES = ('I', 'I;16', 'I;16L', 'I;16B', 'I;16N')


def decode_image(path: PathLike) -> np.ndarray:
    """
    Decode an image file into an RGBA uint8 array.

    16-bit grayscale (common for Opacity, Roughness and AO maps) is scaled
    down to 8 bits rather than clipped.
    """
    with Image.open(path) as img:
        if img.mode in WIDE_GRAYSCALE_MODES:
            values = np.clip(np.array(img).astype(np.int64), 0, 65535)
            return to_rgba((values >> 8).astype(np.uint8))
        return np.array(img.convert('RGBA'), dtype=np.uint8)


def load_atlas(
    paths: Iterable[PathLike],
    base_name: Optional[str] = None,
    strict_dimensions: bool = False
) -> AtlasModel:
    """
    Load an atlas from a batch of texture files.

    Files whose names do not match the layer-name convention (or that are
    not png/jpg/jpeg/webp) are ignored.

    Args:
        paths: Image file paths
        base_name: Atlas name; defaults to the base name of the first file
        strict_dimensions: Raise if recognized layers differ in size

    Returns:
        AtlasModel with every recognized layer

    Raises:
        AtlasLoadError: If no file is recognized as a layer, or a recognized
                        file cannot be decoded
    """
    layers = []
    name = base_name or ''

    for path in paths:
        filename = Path(path).name
        if not is_supported_image(filename):
            logger.debug(f"Skipping unsupported file: {filename}")
            continue

        parsed_name, layer_type = parse_file_name(filename)
        if not name:
            name = parsed_name
        if layer_type is None:
            logger.debug(f"Skipping unrecognized layer file: {filename}")
            continue

        try:
            pixels = decode_image(path)
        except (OSError, ValueError) as e:
            raise AtlasLoadError(f"Failed to decode {filename}: {e}") from e

        logger.debug(f"Loaded {layer_type.value} layer from {filename} ({pixels.shape[1]}x{pixels.shape[0]})")
        layers.append(TextureLayer(layer_type, pixels))

    atlas = AtlasModel.from_layers(name, layers, strict_dimensions=strict_dimensions)
    logger.info(
        f"Loaded atlas '{atlas.base_name}' {atlas.width}x{atlas.height} "
        f"with layers: {', '.join(t.value for t in atlas.layer_types)}"
    )
    return atlas


def load_atlas_from_folder(folder: PathLike, strict_dimensions: bool = False) -> AtlasModel:
    """Load every supported image in a folder, using the folder name as base name."""
    folder = Path(folder)
    if not folder.is_dir():
        raise AtlasLoadError(f"Source folder not found: {folder}")

    paths = sorted(p for p in folder.iterdir() if p.is_file() and is_supported_image(p.name))
    return load_atlas(paths, base_name=folder.name, strict_dimensions=strict_dimensions)
