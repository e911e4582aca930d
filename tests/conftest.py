"""
Shared fixtures: small synthetic foliage atlases built in memory or on disk.
"""
import numpy as np
import pytest
from PIL import Image

from leafsmith.atlas import AtlasModel
from leafsmith.schema import LayerType

from helpers import square_mask, solid


@pytest.fixture
def two_leaf_mask():
    """100x100 mask with 10x10 leaves at (5, 5) and (50, 50)."""
    return square_mask(100, [(5, 5, 10), (50, 50, 10)])


@pytest.fixture
def leaf_atlas(two_leaf_mask):
    """Atlas with Color, Opacity, NormalGL and Roughness over the two-leaf mask."""
    rng = np.random.default_rng(7)
    color = rng.integers(0, 256, size=(100, 100, 4), dtype=np.uint8)
    color[..., 3] = 255
    normal = solid(100, (100, 150, 240, 255))
    roughness = solid(100, (90, 90, 90, 255))
    return AtlasModel.from_arrays("LeafSet", {
        LayerType.Color: color,
        LayerType.Opacity: two_leaf_mask,
        LayerType.NormalGL: normal,
        LayerType.Roughness: roughness,
    })


@pytest.fixture
def atlas_files(tmp_path, leaf_atlas):
    """The leaf atlas written as PNG files following the layer-name convention."""
    paths = []
    for layer_type, layer in leaf_atlas.layers.items():
        path = tmp_path / f"LeafSet_{layer_type.value}.png"
        Image.fromarray(np.array(layer.pixels)).save(path)
        paths.append(path)
    return paths
