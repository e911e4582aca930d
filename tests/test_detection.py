"""
Tests for leaf detection: binarization, 4-connected labeling, ordering
"""
import numpy as np
import pytest
from pydantic import ValidationError

from leafsmith.atlas import AtlasModel
from leafsmith.detection import detect_leaves, detect_leaves_in_mask, find_leaf_at, opacity_signal
from leafsmith.schema import LayerType, LeafBounds

from helpers import square_mask, solid


class TestDetectLeavesInMask:
    """Test connected-component detection on raw masks"""

    def test_two_squares(self, two_leaf_mask):
        """Test the reference two-square mask"""
        leaves = detect_leaves_in_mask(two_leaf_mask, threshold=128, min_area=50)
        assert leaves == [
            LeafBounds(id=0, x=5, y=5, width=10, height=10, area=100),
            LeafBounds(id=1, x=50, y=50, width=10, height=10, area=100),
        ]

    def test_threshold_is_strict(self):
        """Test that a sample equal to the threshold is background"""
        mask = square_mask(20, [(2, 2, 5)], value=128)
        assert detect_leaves_in_mask(mask, threshold=128, min_area=1) == []
        assert len(detect_leaves_in_mask(mask, threshold=127, min_area=1)) == 1

    def test_diagonal_pixels_do_not_merge(self):
        """Test 4-connectivity: diagonal neighbours are separate leaves"""
        mask = np.zeros((4, 4), dtype=np.uint8)
        mask[0, 0] = 255
        mask[1, 1] = 255
        leaves = detect_leaves_in_mask(mask, threshold=1, min_area=1)
        assert [(l.x, l.y) for l in leaves] == [(0, 0), (1, 1)]

    def test_min_area_discards_small_components(self):
        """Test that components below min_area are dropped and ids stay dense"""
        mask = square_mask(40, [(0, 0, 2), (10, 10, 8), (30, 30, 3)])
        leaves = detect_leaves_in_mask(mask, threshold=128, min_area=9)
        assert [(l.id, l.x, l.y, l.area) for l in leaves] == [(0, 10, 10, 64), (1, 30, 30, 9)]

    def test_ids_follow_first_pixel_in_raster_order(self):
        """Test ordering by first scanned pixel, not by bounding-box corner"""
        mask = np.zeros((10, 10), dtype=np.uint8)
        # L-shape whose box starts at x=0 but whose first pixel is on row 2
        mask[2, 4] = 255
        mask[3, 0:5] = 255
        # Single pixel found earlier, on row 1
        mask[1, 8] = 255
        leaves = detect_leaves_in_mask(mask, threshold=1, min_area=1)
        assert [(l.id, l.x, l.y, l.width, l.height) for l in leaves] == [
            (0, 8, 1, 1, 1),
            (1, 0, 2, 5, 2),
        ]

    def test_u_shape_is_one_component(self):
        """Test that arms joined at the bottom form a single leaf"""
        mask = np.zeros((5, 5), dtype=np.uint8)
        mask[0:4, 0] = 255
        mask[0:4, 4] = 255
        mask[4, 0:5] = 255
        leaves = detect_leaves_in_mask(mask, threshold=1, min_area=1)
        assert len(leaves) == 1
        assert (leaves[0].width, leaves[0].height, leaves[0].area) == (5, 5, 13)

    def test_deterministic(self):
        """Test that repeated passes give identical ordered output"""
        rng = np.random.default_rng(3)
        mask = (rng.random((64, 64)) > 0.6).astype(np.uint8) * 255
        first = detect_leaves_in_mask(mask, threshold=100, min_area=2)
        for _ in range(3):
            assert detect_leaves_in_mask(mask, threshold=100, min_area=2) == first

    def test_bounds_contained_and_area_respected(self):
        """Test containment and min_area on a random mask"""
        rng = np.random.default_rng(11)
        mask = (rng.random((50, 70)) > 0.5).astype(np.uint8) * 255
        leaves = detect_leaves_in_mask(mask, threshold=128, min_area=3)
        assert leaves
        for leaf in leaves:
            assert leaf.x >= 0 and leaf.y >= 0
            assert leaf.x + leaf.width <= 70
            assert leaf.y + leaf.height <= 50
            assert leaf.area >= 3

    def test_empty_mask(self):
        """Test that no foreground gives an empty list"""
        assert detect_leaves_in_mask(np.zeros((8, 8), np.uint8), threshold=128, min_area=1) == []

    @pytest.mark.parametrize("threshold,min_area", [(0, 10), (256, 10), (128, 0)])
    def test_invalid_parameters(self, threshold, min_area):
        """Test parameter validation"""
        with pytest.raises(ValidationError):
            detect_leaves_in_mask(np.zeros((4, 4), np.uint8), threshold=threshold, min_area=min_area)


class TestDetectLeavesInAtlas:
    """Test opacity source selection and detection results"""

    def test_opacity_layer_red_channel(self, leaf_atlas):
        """Test detection from a dedicated Opacity layer"""
        result = detect_leaves(leaf_atlas, threshold=128, min_area=50)
        assert result.has_opacity
        assert result.source == "Opacity"
        assert [(l.x, l.y) for l in result.leaves] == [(5, 5), (50, 50)]

    def test_color_alpha_fallback(self, two_leaf_mask):
        """Test that Color alpha is used when there is no Opacity layer"""
        color = solid(100, (10, 200, 10, 255))
        color[..., 3] = two_leaf_mask
        atlas = AtlasModel.from_arrays("a", {LayerType.Color: color})
        signal = opacity_signal(atlas)
        assert signal.source == "Color alpha"
        result = detect_leaves(atlas, threshold=128, min_area=50)
        assert len(result.leaves) == 2

    def test_opaque_color_has_no_opacity_data(self):
        """Test the distinct no-opacity outcome"""
        atlas = AtlasModel.from_arrays("a", {
            LayerType.Color: solid(16, (1, 2, 3, 255)),
            LayerType.NormalGL: solid(16, (128, 128, 255, 255)),
        })
        result = detect_leaves(atlas)
        assert not result.has_opacity
        assert result.source is None
        assert result.leaves == []

    def test_zero_leaves_is_not_missing_opacity(self, leaf_atlas):
        """Test that a too-large min_area still reports an opacity source"""
        result = detect_leaves(leaf_atlas, threshold=128, min_area=10000)
        assert result.has_opacity
        assert result.leaves == []

    def test_passes_get_new_ids(self, leaf_atlas):
        """Test that each pass is identifiable"""
        assert detect_leaves(leaf_atlas).pass_id != detect_leaves(leaf_atlas).pass_id

    def test_find_leaf_at(self, two_leaf_mask):
        """Test point picking against detected bounds"""
        leaves = detect_leaves_in_mask(two_leaf_mask, threshold=128, min_area=50)
        assert find_leaf_at(leaves, 55, 55).id == 1
        assert find_leaf_at(leaves, 15, 15).id == 0  # edges are inclusive
        assert find_leaf_at(leaves, 30, 30) is None
