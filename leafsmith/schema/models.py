"""
Leaf schema: layer roles, detected leaf bounds and placed leaf instances.

COORDINATES:
- Atlas space: integer pixels, origin top-left, x to the right, y down.
- Output space: float pixels in the square output texture, same orientation.
- A PlacedLeaf position is the CENTER of its cropped leaf in output space.

Z-ORDER:
Placements are drawn in list order, index 0 first (bottom-most).

ROTATION:
Degrees, clockwise on screen (y points down), normalized into [0, 360).
"""

from __future__ import annotations
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LayerType(str, Enum):
    """Semantic role of one texture layer. Declaration order is export order."""
    Color = "Color"
    Opacity = "Opacity"
    NormalGL = "NormalGL"
    NormalDX = "NormalDX"
    Roughness = "Roughness"
    Metalness = "Metalness"
    AmbientOcclusion = "AmbientOcclusion"

    @property
    def is_normal(self) -> bool:
        return self in (LayerType.NormalGL, LayerType.NormalDX)


def normalize_rotation(degrees: float) -> float:
    """Wrap an angle into [0, 360)."""
    wrapped = float(degrees) % 360.0
    # -1e-20 % 360 rounds up to 360.0
    if wrapped >= 360.0:
        wrapped = 0.0
    return wrapped


class LeafBounds(BaseModel):
    """One detected leaf: an axis-aligned box in atlas pixel space."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    id: int = Field(..., ge=0, description="Index in row-major discovery order within one detection pass.")
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    area: int = Field(default=0, ge=0, description="Foreground pixel count of the component.")

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def contains(self, x: float, y: float) -> bool:
        """Point test with inclusive edges, as used for picking in the source view."""
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


class PlacedLeaf(BaseModel):
    """An instance of a detected leaf positioned in the output composition."""
    model_config = ConfigDict(extra='forbid', allow_inf_nan=False)

    id: str = Field(..., description="Unique for the lifetime of the placement model.")
    source_id: int = Field(..., description="LeafBounds.id this instance was made from. May dangle.")
    x: float = 0.0
    y: float = 0.0
    rotation: float = Field(default=0.0, description="Degrees, normalized into [0, 360).")
    scale: float = Field(default=1.0, gt=0)
    flip_x: bool = False
    flip_y: bool = False

    @field_validator('rotation')
    @classmethod
    def _wrap_rotation(cls, value: float) -> float:
        return normalize_rotation(value)

    @property
    def axis_scale(self) -> Tuple[float, float]:
        """Per-axis scale factors with flips folded in as sign inversions."""
        return (
            self.scale * (-1.0 if self.flip_x else 1.0),
            self.scale * (-1.0 if self.flip_y else 1.0),
        )


class TransformUpdate(BaseModel):
    """Partial transform edit. Unset fields are left untouched."""
    model_config = ConfigDict(extra='forbid', allow_inf_nan=False)

    x: Optional[float] = None
    y: Optional[float] = None
    rotation: Optional[float] = None
    scale: Optional[float] = Field(default=None, gt=0)
    flip_x: Optional[bool] = None
    flip_y: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class DetectionParams(BaseModel):
    """Binarization threshold and minimum component area for one detection pass."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    threshold: int = Field(default=128, ge=1, le=255)
    min_area: int = Field(default=500, ge=1)
