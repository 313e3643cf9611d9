from __future__ import annotations
import logging
import numpy as np
import cv2

from models.color import Color, WHITE
from models.errors import LoadError, InvalidBufferError
from models.raster_buffer import RasterBuffer

logger = logging.getLogger(__name__)


class CanvasService:
    """
    Fits arbitrary decoded images onto the fixed square canvas every slot uses.
    """

    def __init__(self, size: int = 300, fill: Color = WHITE):
        if size <= 0:
            raise ValueError(f"Canvas size must be positive, got {size}")
        self.size = size
        self.fill = fill

    # ---------- private helpers ----------
    @staticmethod
    def _as_rgba(pixels: np.ndarray) -> np.ndarray:
        if not isinstance(pixels, np.ndarray) or pixels.dtype != np.uint8:
            raise LoadError("Decoded image must be a uint8 numpy array")
        if pixels.size == 0:
            raise LoadError(f"Empty image: {pixels.shape}")
        if pixels.ndim == 2:
            return cv2.cvtColor(pixels, cv2.COLOR_GRAY2RGBA)
        if pixels.ndim == 3 and pixels.shape[2] == 3:
            return cv2.cvtColor(pixels, cv2.COLOR_RGB2RGBA)
        if pixels.ndim == 3 and pixels.shape[2] == 4:
            return pixels
        raise LoadError(f"Unsupported image shape: {pixels.shape}")

    def fit_size(self, width: int, height: int) -> tuple[int, int]:
        """
        Downscale so the longer side is at most the canvas size.
        Images already small enough keep their native size.
        """
        longest = max(width, height)
        if longest <= self.size:
            return width, height
        scale = self.size / longest
        return max(1, round(width * scale)), max(1, round(height * scale))

    # ---------- public API ----------
    def to_canvas(self, pixels: np.ndarray) -> RasterBuffer:
        """
        Letterbox *pixels* onto an opaque canvas filled with self.fill.
        Transparent source pixels are composited over the fill.
        """
        rgba = self._as_rgba(pixels)
        h, w = rgba.shape[:2]

        # Flatten onto the fill at native size, before any resampling,
        # so hidden colors under transparent pixels never reach the output.
        fill = np.array(self.fill.rgb, dtype=np.float32)
        alpha = rgba[:, :, 3:4].astype(np.float32) / 255.0
        blended = rgba[:, :, :3].astype(np.float32) * alpha + fill * (1.0 - alpha)
        rgb = np.floor(blended + 0.5).astype(np.uint8)

        new_w, new_h = self.fit_size(w, h)
        if (new_w, new_h) != (w, h):
            rgb = cv2.resize(rgb, (new_w, new_h), interpolation=cv2.INTER_AREA)

        canvas = np.empty((self.size, self.size, 4), dtype=np.uint8)
        canvas[...] = (self.fill.r, self.fill.g, self.fill.b, 255)

        left = (self.size - new_w) // 2
        top = (self.size - new_h) // 2
        canvas[top:top + new_h, left:left + new_w, :3] = rgb

        logger.debug(f"Letterboxed {w}x{h} -> {new_w}x{new_h} at ({left}, {top})")
        try:
            return RasterBuffer(canvas)
        except InvalidBufferError as err:
            raise LoadError(str(err)) from err
