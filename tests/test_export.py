"""
Tests for the export pipeline and its local/remote sinks
"""
from io import BytesIO
from unittest.mock import Mock

import numpy as np
import pytest
import requests
from PIL import Image

from leafsmith.detection import detect_leaves
from leafsmith.exceptions import ExportError
from leafsmith.export import (
    ExportPipeline,
    LocalSink,
    RemoteSink,
    default_export_name,
    deliver_all,
    encode_png,
    export_file_name,
)
from leafsmith.placement import PlacementModel
from leafsmith.schema import LayerType
from leafsmith.texturing import ExtractionCache


@pytest.fixture
def scene(leaf_atlas):
    """Atlas, placements of both leaves and a crop cache."""
    detection = detect_leaves(leaf_atlas, threshold=128, min_area=50)
    placements = PlacementModel(output_size=64)
    placements.add_bulk(detection.ids)
    return leaf_atlas, placements, ExtractionCache(leaf_atlas, detection)


def ok_response():
    return Mock(ok=True, status_code=200)


class TestNaming:
    """Test export file naming"""

    def test_file_name(self):
        assert export_file_name("hedge", LayerType.NormalGL) == "hedge_NormalGL.png"

    def test_default_export_name(self, leaf_atlas):
        assert default_export_name(leaf_atlas) == "LeafSet_tileable"
        assert default_export_name(None) == "leaves_tileable"


class TestRenderAll:
    """Test rendering every layer"""

    def test_one_buffer_per_layer(self, scene):
        """Test that each atlas layer is rendered independently at output size"""
        atlas, placements, cache = scene
        buffers = ExportPipeline(output_size=64).render_all(atlas, placements, cache)
        assert list(buffers) == atlas.layer_types
        assert all(b.shape == (64, 64, 4) for b in buffers.values())
        # Opacity is rendered as its own layer, not folded into Color
        assert (buffers[LayerType.Color][..., 3] == 255).any()
        assert buffers[LayerType.Opacity][..., 0].max() == 255

    def test_tileable_option(self, scene):
        """Test that the edge blend runs when requested"""
        atlas, placements, cache = scene
        plain = ExportPipeline(output_size=64).render_all(atlas, placements, cache)
        tiled = ExportPipeline(output_size=64, tileable=True, wrap_size=8).render_all(atlas, placements, cache)
        np.testing.assert_array_equal(
            tiled[LayerType.NormalGL][16:48, 16:48], plain[LayerType.NormalGL][16:48, 16:48]
        )


class TestLocalSink:
    """Test saving files to a directory"""

    def test_writes_every_layer(self, tmp_path, scene):
        """Test that each layer is saved as a decodable PNG"""
        atlas, placements, cache = scene
        report = ExportPipeline(output_size=64).export(
            atlas, placements, cache, LocalSink(tmp_path / "out"), base_name="hedge"
        )
        assert report.ok
        for layer_type in atlas.layer_types:
            path = tmp_path / "out" / f"hedge_{layer_type.value}.png"
            assert path.exists()
            with Image.open(path) as img:
                assert img.size == (64, 64)

    def test_failure_does_not_block_other_files(self):
        """Test that a failing file is reported and later files still saved"""
        delivered = []

        class FlakySink:
            fail_fast = False

            def deliver(self, layer_type, file_name, payload):
                if layer_type == LayerType.Opacity:
                    raise ExportError(layer_type, file_name, "disk full")
                delivered.append(file_name)
                return file_name

        buffers = {t: np.zeros((4, 4, 4), np.uint8) for t in (LayerType.Color, LayerType.Opacity, LayerType.NormalGL)}
        report = deliver_all(buffers, FlakySink(), "x")
        assert delivered == ["x_Color.png", "x_NormalGL.png"]
        assert list(report.failed) == [LayerType.Opacity]
        assert not report.ok

    def test_os_error_becomes_export_error(self, tmp_path):
        """Test that write failures are wrapped"""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(ExportError):
            LocalSink(blocker).deliver(LayerType.Color, "x_Color.png", b"data")


class TestRemoteSink:
    """Test sequential uploads"""

    def test_posts_each_layer_in_order(self, scene):
        """Test request bodies and ordering"""
        atlas, placements, cache = scene
        session = Mock()
        session.post.return_value = ok_response()
        sink = RemoteSink("http://host/api/save-texture", " hedge ", session=session, timeout=5)

        report = ExportPipeline(output_size=32).export(atlas, placements, cache, sink, base_name="hedge")

        assert report.ok
        bodies = [call.kwargs['json'] for call in session.post.call_args_list]
        assert [b['fileName'] for b in bodies] == [f"hedge_{t.value}.png" for t in atlas.layer_types]
        assert all(b['folderName'] == "hedge" for b in bodies)
        assert bodies[0]['dataUrl'].startswith("data:image/png;base64,")
        assert session.post.call_args_list[0].args == ("http://host/api/save-texture",)
        assert session.post.call_args_list[0].kwargs['timeout'] == 5

    def test_failure_aborts_remaining_layers(self, scene):
        """Test that the first failing layer stops the attempt and is reported"""
        atlas, placements, cache = scene
        session = Mock()
        session.post.side_effect = [ok_response(), Mock(ok=False, status_code=500), ok_response(), ok_response()]
        sink = RemoteSink("http://host/save", "hedge", session=session)

        with pytest.raises(ExportError) as excinfo:
            ExportPipeline(output_size=32).export(atlas, placements, cache, sink, base_name="hedge")

        assert excinfo.value.layer_type == atlas.layer_types[1]
        assert excinfo.value.file_name == f"hedge_{atlas.layer_types[1].value}.png"
        assert session.post.call_count == 2

    def test_transport_error(self):
        """Test that connection errors become ExportError"""
        session = Mock()
        session.post.side_effect = requests.ConnectionError("refused")
        sink = RemoteSink("http://host/save", "hedge", session=session)
        with pytest.raises(ExportError, match="refused"):
            sink.deliver(LayerType.Color, "hedge_Color.png", b"png")

    def test_empty_folder_rejected(self):
        """Test folder name validation"""
        with pytest.raises(ValueError):
            RemoteSink("http://host/save", "   ", session=Mock())


def test_encode_png_is_lossless():
    """Test that encoded buffers decode to the same pixels"""
    rng = np.random.default_rng(1)
    pixels = rng.integers(0, 256, size=(5, 7, 4), dtype=np.uint8)
    with Image.open(BytesIO(encode_png(pixels))) as img:
        np.testing.assert_array_equal(np.array(img), pixels)
