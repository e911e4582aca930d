"""Custom exceptions for atlas loading, editing and export"""


class LeafsmithError(Exception):
    """Base exception for leafsmith errors"""
    pass


class AtlasLoadError(LeafsmithError):
    """A batch of source files could not be turned into an atlas"""
    pass


class NoOpacityDataError(AtlasLoadError):
    """Neither an Opacity layer nor a Color layer with alpha is available"""

    def __init__(self, message: str = "No opacity data found. Need an Opacity layer or Color with alpha channel."):
        super().__init__(message)


class ExportError(LeafsmithError):
    """A layer could not be delivered to an export sink"""

    def __init__(self, layer_type, file_name: str, reason: str = ""):
        self.layer_type = layer_type
        self.file_name = file_name
        self.reason = reason
        message = f"Failed to save {file_name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SessionBusyError(LeafsmithError):
    """A load or export is already running on this session"""
    pass
