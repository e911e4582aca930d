"""
Export pipeline: render every atlas layer and hand the results to a sink.

Export always renders each layer independently (never the combined
Color+Opacity preview). Files are delivered one after another in layer
declaration order, so a remote failure always stops at the same layer.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

import numpy as np

from leafsmith.atlas import AtlasModel
from leafsmith.exceptions import ExportError
from leafsmith.schema import LayerType, PlacedLeaf
from leafsmith.texturing import ExtractionCache, make_tileable, render_layer
from .sinks import encode_png

logger = logging.getLogger(__name__)

FALLBACK_EXPORT_NAME = 'leaves_tileable'


class ExportSink(Protocol):
    fail_fast: bool

    def deliver(self, layer_type: LayerType, file_name: str, payload: bytes) -> str:
        ...


def export_file_name(base_name: str, layer_type: LayerType) -> str:
    return f"{base_name}_{layer_type.value}.png"


def default_export_name(atlas: Optional[AtlasModel]) -> str:
    if atlas is not None and atlas.base_name:
        return f"{atlas.base_name}_tileable"
    return FALLBACK_EXPORT_NAME


@dataclass
class ExportReport:
    """What happened to each layer in one export attempt."""
    delivered: Dict[LayerType, str] = field(default_factory=dict)
    failed: Dict[LayerType, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class ExportPipeline:
    """
    Renders all layers of an atlas and delivers them to a sink.

    Args:
        output_size: Output side length
        resample: 'nearest' or 'bilinear'
        tileable: Run the edge blend on every rendered layer
        wrap_size: Edge strip width for the edge blend
    """

    def __init__(
        self,
        output_size: int = 1024,
        resample: str = 'bilinear',
        tileable: bool = False,
        wrap_size: int = 64
    ):
        self.output_size = output_size
        self.resample = resample
        self.tileable = tileable
        self.wrap_size = wrap_size

    def render_all(
        self,
        atlas: AtlasModel,
        placements: Iterable[PlacedLeaf],
        cache: Optional[ExtractionCache]
    ) -> Dict[LayerType, np.ndarray]:
        """One output buffer per layer present in the atlas."""
        placements = list(placements)
        buffers = {}
        for layer_type in atlas.layer_types:
            buffer = render_layer(layer_type, placements, cache, self.output_size, self.resample)
            if self.tileable:
                buffer = make_tileable(buffer, self.wrap_size)
            buffers[layer_type] = buffer
        return buffers

    def export(
        self,
        atlas: AtlasModel,
        placements: Iterable[PlacedLeaf],
        cache: Optional[ExtractionCache],
        sink: ExportSink,
        base_name: Optional[str] = None
    ) -> ExportReport:
        """
        Render and deliver every layer.

        Raises:
            ExportError: From a fail-fast sink; layers delivered before the
                         failure stay delivered
        """
        base_name = base_name or default_export_name(atlas)
        buffers = self.render_all(atlas, placements, cache)
        return deliver_all(buffers, sink, base_name)


def deliver_all(
    buffers: Dict[LayerType, np.ndarray],
    sink: ExportSink,
    base_name: str
) -> ExportReport:
    """Encode and deliver buffers sequentially, honoring the sink's failure policy."""
    report = ExportReport()
    for layer_type, buffer in buffers.items():
        file_name = export_file_name(base_name, layer_type)
        try:
            report.delivered[layer_type] = sink.deliver(layer_type, file_name, encode_png(buffer))
        except ExportError as e:
            if sink.fail_fast:
                logger.error(f"Export stopped at {layer_type.value}: {e}")
                raise
            logger.warning(f"Export of {file_name} failed, continuing: {e}")
            report.failed[layer_type] = str(e)

    logger.info(f"Exported {len(report.delivered)} of {len(buffers)} layers as '{base_name}'")
    return report
