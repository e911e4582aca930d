"""Export: render all layers and deliver them locally or to a remote endpoint."""
from .sinks import LocalSink, RemoteSink, encode_png, png_data_url
from .pipeline import (
    ExportPipeline,
    ExportReport,
    default_export_name,
    deliver_all,
    export_file_name,
)

__all__ = [
    'LocalSink',
    'RemoteSink',
    'encode_png',
    'png_data_url',
    'ExportPipeline',
    'ExportReport',
    'default_export_name',
    'deliver_all',
    'export_file_name',
]
