"""
Core LeafSmith session API

Provides the Leafsmith class, which wires the stages together:

    load atlas -> detect leaves -> (extract on demand) -> place -> render -> export

Every stage is a pure function over immutable inputs; the session only keeps
the latest result of each stage and rebuilds downstream state when an
upstream input changes.
"""

import logging
import os
from contextlib import contextmanager
from typing import Dict, Iterable, Optional, Union

import numpy as np
import requests

from leafsmith.atlas import AtlasModel, load_atlas, load_atlas_from_folder
from leafsmith.config import Settings
from leafsmith.detection import DetectionResult, detect_leaves
from leafsmith.exceptions import NoOpacityDataError, SessionBusyError
from leafsmith.export import ExportPipeline, ExportReport, LocalSink, RemoteSink, default_export_name
from leafsmith.placement import PlacementModel
from leafsmith.schema import DetectionParams, LayerType, PlacedLeaf
from leafsmith.texturing import ExtractionCache, make_tileable, render_combined, render_layer

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class Leafsmith:
    """
    One editing session over a foliage atlas.

    Examples:
        Basic usage:
        >>> ls = Leafsmith()
        >>> ls.load(["Leaves_Color.png", "Leaves_Opacity.png", "Leaves_NormalGL.png"])
        >>> ls.export_local("out/")

        Rearranging before export:
        >>> first = ls.placements.instances[0]
        >>> ls.placements.update_instance(first.id, {"rotation": 30, "scale": 0.8})
        >>> preview = ls.render(combined=True)
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize a session.

        Args:
            settings: Editor settings. Defaults to Settings.from_env(), so
                      LEAFSMITH_* environment variables apply.
        """
        self.settings = settings or Settings.from_env()
        self.params = DetectionParams(threshold=self.settings.threshold, min_area=self.settings.min_area)
        self.atlas: Optional[AtlasModel] = None
        self.detection: Optional[DetectionResult] = None
        self.placements = PlacementModel(
            output_size=self.settings.output_size,
            duplicate_offset=self.settings.duplicate_offset,
        )
        self._cache: Optional[ExtractionCache] = None
        self._busy = False

    # -- state --------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._busy

    @contextmanager
    def _busy_guard(self, action: str):
        if self._busy:
            raise SessionBusyError(f"Cannot {action}: another load or export is in progress")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    @property
    def leaves(self):
        return self.detection.leaves if self.detection is not None else []

    @property
    def cache(self) -> Optional[ExtractionCache]:
        """Crop cache for the current (atlas, detection pass); rebuilt when either changes."""
        if self.atlas is None or self.detection is None:
            return None
        if self._cache is None or not self._cache.matches(self.atlas, self.detection):
            self._cache = ExtractionCache(self.atlas, self.detection, self.settings.padding)
        return self._cache

    # -- loading and detection ----------------------------------------------

    def load(
        self,
        paths: Iterable[PathLike],
        base_name: Optional[str] = None,
        auto_place: bool = True
    ) -> DetectionResult:
        """
        Load an atlas from files and detect its leaves.

        On success the atlas, detection and (if auto_place) the placement list
        are replaced. On failure the previous session state is untouched.

        Raises:
            AtlasLoadError: No recognized layers, or a layer failed to decode
            NoOpacityDataError: Neither Opacity nor Color alpha is available
            SessionBusyError: A load or export is already running
        """
        with self._busy_guard("load"):
            atlas = load_atlas(paths, base_name=base_name, strict_dimensions=self.settings.strict_dimensions)
            return self._install(atlas, auto_place)

    def load_folder(self, folder: PathLike, auto_place: bool = True) -> DetectionResult:
        """Load every layer file in a folder (folder name becomes the atlas name)."""
        with self._busy_guard("load"):
            atlas = load_atlas_from_folder(folder, strict_dimensions=self.settings.strict_dimensions)
            return self._install(atlas, auto_place)

    def use_atlas(self, atlas: AtlasModel, auto_place: bool = True) -> DetectionResult:
        """Adopt an already-built atlas (e.g. from in-memory arrays)."""
        with self._busy_guard("load"):
            return self._install(atlas, auto_place)

    def _install(self, atlas: AtlasModel, auto_place: bool) -> DetectionResult:
        detection = detect_leaves(atlas, self.params.threshold, self.params.min_area)
        if not detection.has_opacity:
            raise NoOpacityDataError()

        self.atlas = atlas
        self.detection = detection
        self._cache = None
        if auto_place:
            self.place_all()
        return detection

    def set_detection_params(
        self,
        threshold: Optional[int] = None,
        min_area: Optional[int] = None
    ) -> Optional[DetectionResult]:
        """
        Change detection parameters and re-run detection.

        Existing placements are kept as they are. Leaf ids may be renumbered
        by the new pass, so placements can end up pointing at a different
        leaf or at none (those are skipped when rendering).
        """
        self.params = DetectionParams(
            threshold=self.params.threshold if threshold is None else threshold,
            min_area=self.params.min_area if min_area is None else min_area,
        )
        if self.atlas is None:
            return None

        self.detection = detect_leaves(self.atlas, self.params.threshold, self.params.min_area)
        self._cache = None
        return self.detection

    # -- placement ----------------------------------------------------------

    def place_all(self):
        """Replace the placement list with every detected leaf in a grid."""
        self.placements.clear_all()
        return self.placements.add_bulk(leaf.id for leaf in self.leaves)

    def place(self, leaf_ids: Iterable[int]):
        """Append the given leaves in a grid on top of existing placements."""
        return self.placements.add_bulk(leaf_ids)

    def crop_sizes(self) -> Dict[int, tuple]:
        """source_id -> (width, height) of each leaf's Color crop, for hit testing."""
        cache = self.cache
        sizes = {}
        if cache is None:
            return sizes
        for placed in self.placements:
            crop = cache.layer(placed.source_id, LayerType.Color)
            if crop is not None:
                sizes[placed.source_id] = (crop.shape[1], crop.shape[0])
        return sizes

    def pick(self, x: float, y: float) -> Optional[PlacedLeaf]:
        """Select the topmost placement under a point in output space."""
        hit = self.placements.hit_test(x, y, self.crop_sizes())
        self.placements.select(hit.id if hit is not None else None)
        return hit

    # -- rendering and export -----------------------------------------------

    def render(
        self,
        layer_type: LayerType = LayerType.Color,
        combined: bool = False,
        tileable: bool = False
    ) -> np.ndarray:
        """Render one layer (or the combined Color+Opacity preview)."""
        if combined:
            buffer = render_combined(
                self.placements, self.cache, self.settings.output_size, self.settings.resample
            )
        else:
            buffer = render_layer(
                LayerType(layer_type), self.placements, self.cache,
                self.settings.output_size, self.settings.resample
            )
        if tileable:
            buffer = make_tileable(buffer, self.settings.wrap_size)
        return buffer

    def _pipeline(self, tileable: bool) -> ExportPipeline:
        return ExportPipeline(
            output_size=self.settings.output_size,
            resample=self.settings.resample,
            tileable=tileable,
            wrap_size=self.settings.wrap_size,
        )

    def _require_atlas(self) -> AtlasModel:
        if self.atlas is None:
            raise ValueError("No atlas loaded")
        return self.atlas

    def render_all(self, tileable: bool = False) -> Dict[LayerType, np.ndarray]:
        """Per-layer truth for every layer in the atlas."""
        return self._pipeline(tileable).render_all(self._require_atlas(), self.placements, self.cache)

    def export_local(
        self,
        directory: PathLike,
        base_name: Optional[str] = None,
        tileable: bool = False
    ) -> ExportReport:
        """Write ``{base_name}_{layer}.png`` for every layer into a directory."""
        atlas = self._require_atlas()
        with self._busy_guard("export"):
            return self._pipeline(tileable).export(
                atlas, self.placements, self.cache, LocalSink(directory),
                base_name or default_export_name(atlas),
            )

    def export_remote(
        self,
        folder_name: str,
        endpoint: Optional[str] = None,
        base_name: Optional[str] = None,
        tileable: bool = False,
        session: Optional[requests.Session] = None
    ) -> ExportReport:
        """
        Upload every layer to the texture save endpoint, one at a time.

        Files are named ``{base_name}_{layer}.png``; base_name defaults to the
        folder name.

        Raises:
            ExportError: First layer that failed; later layers are not sent
        """
        atlas = self._require_atlas()
        endpoint = endpoint or self.settings.remote_endpoint
        if not endpoint:
            raise ValueError("No remote endpoint configured (set LEAFSMITH_REMOTE_ENDPOINT)")

        sink = RemoteSink(endpoint, folder_name, session=session, timeout=self.settings.remote_timeout)
        with self._busy_guard("export"):
            return self._pipeline(tileable).export(
                atlas, self.placements, self.cache, sink, base_name or sink.folder_name,
            )
