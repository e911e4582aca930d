"""
Editor settings.

Defaults match the interactive editor; every field can be overridden through
a ``LEAFSMITH_<FIELD>`` environment variable (e.g. ``LEAFSMITH_OUTPUT_SIZE=2048``).
"""

import os
from typing import Literal, Optional, Mapping

from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "LEAFSMITH_"


class Settings(BaseModel):
    """Tunable parameters shared by detection, placement, rendering and export."""
    model_config = ConfigDict(extra='forbid')

    output_size: int = Field(default=1024, gt=0, description="Side length of the square output texture.")
    padding: int = Field(default=4, ge=0, description="Pixels added around each leaf when cropping.")
    threshold: int = Field(default=128, ge=1, le=255, description="Opacity binarization threshold.")
    min_area: int = Field(default=500, ge=1, description="Smallest component (in pixels) kept as a leaf.")
    wrap_size: int = Field(default=64, ge=0, description="Edge strip width for the tileability pass.")
    duplicate_offset: float = Field(default=50.0, description="Offset applied to duplicated placements.")
    resample: Literal['nearest', 'bilinear'] = 'bilinear'
    strict_dimensions: bool = Field(default=False, description="Reject atlases whose layers differ in size.")
    remote_endpoint: Optional[str] = Field(default=None, description="URL of the texture save endpoint.")
    remote_timeout: float = Field(default=30.0, gt=0)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Settings":
        """
        Build settings from ``LEAFSMITH_*`` environment variables.

        Explicit keyword overrides win over the environment. Values are
        validated by pydantic, so ``LEAFSMITH_THRESHOLD=0`` raises.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
