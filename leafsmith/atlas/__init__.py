"""
Atlas loading: layer-name convention, texture layers and the atlas model.
"""
from .naming import LAYER_PATTERNS, SUPPORTED_EXTENSIONS, parse_file_name, is_supported_image
from .model import AtlasModel, TextureLayer, load_atlas, load_atlas_from_folder, decode_image, to_rgba

__all__ = [
    'LAYER_PATTERNS',
    'SUPPORTED_EXTENSIONS',
    'parse_file_name',
    'is_supported_image',
    'AtlasModel',
    'TextureLayer',
    'load_atlas',
    'load_atlas_from_folder',
    'decode_image',
    'to_rgba',
]
