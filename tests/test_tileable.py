"""
Tests for the approximate edge-blend tiling pass
"""
import numpy as np
import pytest

from leafsmith.texturing import make_tileable


def striped(size=8):
    """Top half opaque red, bottom half opaque blue."""
    pixels = np.zeros((size, size, 4), dtype=np.uint8)
    pixels[: size // 2] = (255, 0, 0, 255)
    pixels[size // 2:] = (0, 0, 255, 255)
    return pixels


class TestMakeTileable:
    """Test edge strip blending"""

    def test_opposite_edges_are_blended(self):
        """Test that top and bottom strips pick up half of the opposite edge"""
        source = striped()
        out = make_tileable(source, wrap_size=2)

        for row in (0, 1, 6, 7):
            assert np.all(np.abs(out[row, 2:6, 0].astype(float) - 127.5) <= 1)
            assert np.all(np.abs(out[row, 2:6, 2].astype(float) - 127.5) <= 1)
            assert (out[row, :, 3] == 255).all()

        np.testing.assert_array_equal(out[2:6], source[2:6])

    def test_input_is_not_modified(self):
        """Test that a new buffer is returned"""
        source = striped()
        before = source.copy()
        out = make_tileable(source, wrap_size=2)
        assert out is not source
        np.testing.assert_array_equal(source, before)

    def test_zero_wrap_is_identity(self):
        """Test that a zero-width strip copies the input"""
        source = striped()
        np.testing.assert_array_equal(make_tileable(source, wrap_size=0), source)

    def test_uniform_buffer_unchanged(self):
        """Test that blending identical colors is a no-op"""
        source = np.full((16, 16, 4), 200, dtype=np.uint8)
        source[..., 3] = 255
        np.testing.assert_array_equal(make_tileable(source, wrap_size=4), source)

    def test_wrap_larger_than_buffer(self):
        """Test that oversized strips are clamped to the buffer"""
        source = striped()
        assert make_tileable(source, wrap_size=64).shape == source.shape

    def test_negative_wrap_rejected(self):
        """Test wrap size validation"""
        with pytest.raises(ValueError):
            make_tileable(striped(), wrap_size=-1)
