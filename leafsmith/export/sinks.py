"""
Export sinks: where encoded layer files go.

LocalSink writes files to a directory and tolerates per-file failures.
RemoteSink posts each file to a texture save endpoint and stops at the
first failure.
"""

import base64
import logging
import os
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import numpy as np
import requests
from PIL import Image

from leafsmith.exceptions import ExportError
from leafsmith.schema import LayerType

logger = logging.getLogger(__name__)


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode an RGBA buffer as PNG bytes."""
    buf = BytesIO()
    Image.fromarray(np.ascontiguousarray(pixels)).save(buf, format='PNG')
    return buf.getvalue()


def png_data_url(payload: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(payload).decode('utf-8')


class LocalSink:
    """Write each layer as ``{directory}/{file_name}``."""

    fail_fast = False

    def __init__(self, directory: Union[str, os.PathLike]):
        self.directory = Path(directory)

    def deliver(self, layer_type: LayerType, file_name: str, payload: bytes) -> str:
        path = self.directory / file_name
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(payload)
        except OSError as e:
            raise ExportError(layer_type, file_name, str(e)) from e
        logger.info(f"Saved {path}")
        return str(path)


class RemoteSink:
    """
    POST each layer to a texture save endpoint.

    Request body (JSON):
        {"folderName": str, "fileName": str, "dataUrl": "data:image/png;base64,..."}

    Any transport error or non-2xx response raises ExportError for that layer.
    """

    fail_fast = True

    def __init__(
        self,
        endpoint: str,
        folder_name: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0
    ):
        folder_name = folder_name.strip()
        if not folder_name:
            raise ValueError("folder_name must not be empty")
        self.endpoint = endpoint
        self.folder_name = folder_name
        self.session = session or requests.Session()
        self.timeout = timeout

    def deliver(self, layer_type: LayerType, file_name: str, payload: bytes) -> str:
        body = {
            'folderName': self.folder_name,
            'fileName': file_name,
            'dataUrl': png_data_url(payload),
        }
        try:
            response = self.session.post(self.endpoint, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExportError(layer_type, file_name, str(e)) from e

        if not response.ok:
            raise ExportError(layer_type, file_name, f"HTTP {response.status_code}")

        logger.info(f"Uploaded {file_name} to {self.folder_name}")
        return f"{self.folder_name}/{file_name}"
