"""
Placement model: the ordered list of leaf instances in the output.

List order is z-order (index 0 is drawn first, at the bottom). Source ids are
not checked against the current detection pass; an instance whose source
no longer resolves is simply skipped when rendering.
"""

import itertools
import logging
import math
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from leafsmith.schema import PlacedLeaf, TransformUpdate

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_SIZE = 1024
DEFAULT_DUPLICATE_OFFSET = 50.0


def grid_positions(count: int, output_size: float) -> List[Tuple[float, float]]:
    """
    Auto-layout positions for ``count`` leaves.

    columns = ceil(sqrt(count)), spacing = output_size / (columns + 1);
    item i sits at row i // columns, column i % columns, at
    (spacing * (column + 1), spacing * (row + 1)).
    """
    if count <= 0:
        return []
    columns = math.ceil(math.sqrt(count))
    spacing = output_size / (columns + 1)
    positions = []
    for index in range(count):
        row, col = divmod(index, columns)
        positions.append((spacing * (col + 1), spacing * (row + 1)))
    return positions


class PlacementModel:
    """
    Owns the placed leaf instances and the current selection.

    Example:
        >>> model = PlacementModel(output_size=1024)
        >>> placed = model.add_bulk([0, 1, 2, 3])
        >>> model.update_instance(placed[0].id, {"rotation": 45, "scale": 0.5})
        >>> model.duplicate_instance(placed[0].id)
    """

    def __init__(
        self,
        output_size: float = DEFAULT_OUTPUT_SIZE,
        duplicate_offset: float = DEFAULT_DUPLICATE_OFFSET
    ):
        self.output_size = output_size
        self.duplicate_offset = duplicate_offset
        self.selected_id: Optional[str] = None
        self._items: List[PlacedLeaf] = []
        self._ids = itertools.count()

    # -- access -------------------------------------------------------------

    @property
    def instances(self) -> Tuple[PlacedLeaf, ...]:
        return tuple(self._items)

    def __iter__(self) -> Iterator[PlacedLeaf]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def get(self, instance_id: str) -> Optional[PlacedLeaf]:
        for item in self._items:
            if item.id == instance_id:
                return item
        return None

    @property
    def selected(self) -> Optional[PlacedLeaf]:
        if self.selected_id is None:
            return None
        return self.get(self.selected_id)

    def _index(self, instance_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == instance_id:
                return index
        raise KeyError(f"Unknown placement id: {instance_id}")

    def _next_id(self) -> str:
        return f"leaf_{next(self._ids)}"

    # -- edits --------------------------------------------------------------

    def add_instance(self, source_id: int, **transform: Any) -> PlacedLeaf:
        """Append a new instance on top of the stack."""
        placed = PlacedLeaf(id=self._next_id(), source_id=source_id, **transform)
        self._items.append(placed)
        logger.debug(f"Placed leaf {source_id} as {placed.id} at ({placed.x:.1f}, {placed.y:.1f})")
        return placed

    def add_bulk(self, leaf_ids: Iterable[int]) -> List[PlacedLeaf]:
        """Append all given leaves in a grid layout (rotation 0, scale 1, no flips)."""
        leaf_ids = list(leaf_ids)
        placed = [
            self.add_instance(source_id, x=x, y=y)
            for source_id, (x, y) in zip(leaf_ids, grid_positions(len(leaf_ids), self.output_size))
        ]
        logger.info(f"Placed {len(placed)} leaves in a grid")
        return placed

    def update_instance(
        self,
        instance_id: str,
        update: Union[TransformUpdate, Mapping[str, Any]]
    ) -> PlacedLeaf:
        """
        Merge a partial transform into an instance.

        Raises:
            KeyError: Unknown instance id
            pydantic.ValidationError: Non-positive scale or unknown field
        """
        if not isinstance(update, TransformUpdate):
            update = TransformUpdate.model_validate(dict(update))

        index = self._index(instance_id)
        current = self._items[index]
        updated = PlacedLeaf.model_validate({**current.model_dump(), **update.changes()})
        self._items[index] = updated
        return updated

    def remove_instance(self, instance_id: str) -> PlacedLeaf:
        index = self._index(instance_id)
        removed = self._items.pop(index)
        if self.selected_id == instance_id:
            self.selected_id = None
        return removed

    def duplicate_instance(self, instance_id: str) -> PlacedLeaf:
        """Clone on top of the stack with a fresh id, offset, and select the clone."""
        original = self._items[self._index(instance_id)]
        clone = original.model_copy(update={
            'id': self._next_id(),
            'x': original.x + self.duplicate_offset,
            'y': original.y + self.duplicate_offset,
        })
        self._items.append(clone)
        self.selected_id = clone.id
        return clone

    def clear_all(self) -> None:
        self._items.clear()
        self.selected_id = None

    def select(self, instance_id: Optional[str]) -> None:
        if instance_id is not None:
            self._index(instance_id)
        self.selected_id = instance_id

    def bring_to_front(self, instance_id: str) -> None:
        self._items.append(self._items.pop(self._index(instance_id)))

    def send_to_back(self, instance_id: str) -> None:
        self._items.insert(0, self._items.pop(self._index(instance_id)))

    # -- queries ------------------------------------------------------------

    def hit_test(
        self,
        x: float,
        y: float,
        sizes: Mapping[int, Tuple[int, int]]
    ) -> Optional[PlacedLeaf]:
        """
        Topmost instance whose unrotated, scaled box contains the point.

        Args:
            x, y: Point in output space
            sizes: source_id -> (width, height) of the leaf's crop. Instances
                   whose source is missing are ignored.
        """
        for item in reversed(self._items):
            size = sizes.get(item.source_id)
            if size is None:
                continue
            half_w = size[0] * item.scale / 2.0
            half_h = size[1] * item.scale / 2.0
            if item.x - half_w <= x <= item.x + half_w and item.y - half_h <= y <= item.y + half_h:
                return item
        return None

    # -- serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            'output_size': self.output_size,
            'placements': [item.model_dump() for item in self._items],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], **kwargs: Any) -> "PlacementModel":
        """
        Rebuild a model; ids continue after the highest numeric ``leaf_N`` id.

        Raises:
            ValueError: Placement ids repeat
        """
        model = cls(output_size=data.get('output_size', DEFAULT_OUTPUT_SIZE), **kwargs)
        model._items = [PlacedLeaf.model_validate(item) for item in data.get('placements', [])]

        seen = set()
        for item in model._items:
            if item.id in seen:
                raise ValueError(f"Duplicate placement id: {item.id}")
            seen.add(item.id)

        highest = -1
        for item in model._items:
            prefix, _, suffix = item.id.partition('_')
            if prefix == 'leaf' and suffix.isdigit():
                highest = max(highest, int(suffix))
        model._ids = itertools.count(highest + 1)
        return model
