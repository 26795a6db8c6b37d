"""
异常类型
All failures the core surfaces to its caller.
"""
from typing import Optional


class LumicutError(Exception):
    """Base class for every error raised by lumicut."""


class DecodeError(LumicutError):
    """The source file could not be decoded into a raster image."""


class ImageNotReadyError(LumicutError):
    """Export was requested before a decoded image was available."""

    def __init__(self, message: str = "image not ready"):
        super().__init__(message)


class RenderSurfaceError(LumicutError):
    """The backing pixel buffer of a render surface is not available."""

    def __init__(self, message: str = "render surface unavailable"):
        super().__init__(message)


class ExportSinkError(LumicutError):
    """
    The sink rejected an encoded buffer.

    `index` is the zero-based position of the failing buffer; buffers before it
    were already delivered and stay delivered.
    """

    def __init__(self, message: str, index: int = 0, filename: Optional[str] = None):
        super().__init__(message)
        self.index = index
        self.filename = filename
