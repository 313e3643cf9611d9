from __future__ import annotations


class InvalidBufferError(ValueError):
    """Raised when pixel data does not describe a W x H RGBA raster."""


class LoadError(Exception):
    """
    Raised when an image cannot be decoded or fitted onto the canvas.
    The slot it was meant for keeps whatever it held before.
    """
