from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Union
import numpy as np

from models.color import Color
from models.errors import InvalidBufferError


@dataclass(frozen=True, eq=False)
class RasterBuffer:
    """
    Immutable RGBA snapshot of one canvas.
    pixels: shape (H, W, 4), dtype uint8, row-major, read-only.
    """
    pixels: np.ndarray

    def __post_init__(self):
        px = self.pixels
        if not isinstance(px, np.ndarray) or px.ndim != 3 or px.shape[2] != 4:
            shape = getattr(px, "shape", None)
            raise InvalidBufferError(f"Expected (H, W, 4) RGBA array, got shape {shape}")
        if px.shape[0] == 0 or px.shape[1] == 0:
            raise InvalidBufferError(f"Zero-sized buffer: {px.shape[1]}x{px.shape[0]}")
        if px.dtype != np.uint8:
            raise InvalidBufferError(f"Expected uint8 samples, got {px.dtype}")

        # Own a private, frozen copy unless we were handed one already.
        if px.flags.writeable or not px.flags["C_CONTIGUOUS"]:
            px = np.array(px, dtype=np.uint8, order="C", copy=True)
            px.flags.writeable = False
            object.__setattr__(self, "pixels", px)

    # ── Constructors ────────────────────────────────────────────────
    @classmethod
    def from_samples(
        cls,
        width: int,
        height: int,
        samples: Union[bytes, bytearray, memoryview, Sequence[int], np.ndarray],
    ) -> "RasterBuffer":
        """
        Build from a flat row-major RGBA sequence of length width*height*4.
        """
        if width <= 0 or height <= 0:
            raise InvalidBufferError(f"Zero-sized buffer: {width}x{height}")
        if isinstance(samples, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(samples, dtype=np.uint8)
        else:
            flat = np.asarray(samples)
            if flat.size and (flat.min() < 0 or flat.max() > 255):
                raise InvalidBufferError("Samples must lie in [0, 255]")
            flat = flat.astype(np.uint8)
        expected = width * height * 4
        if flat.ndim != 1 or flat.size != expected:
            raise InvalidBufferError(
                f"Expected {expected} samples for {width}x{height} RGBA, got {flat.size}"
            )
        return cls(flat.reshape(height, width, 4))

    @classmethod
    def filled(cls, width: int, height: int, color: Color) -> "RasterBuffer":
        if width <= 0 or height <= 0:
            raise InvalidBufferError(f"Zero-sized buffer: {width}x{height}")
        alpha = 255 if color.a is None else color.a
        px = np.empty((height, width, 4), dtype=np.uint8)
        px[...] = (color.r, color.g, color.b, alpha)
        return cls(px)

    # ── Geometry ────────────────────────────────────────────────────
    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    # ── Access ──────────────────────────────────────────────────────
    def pixel_at(self, x: int, y: int) -> Color:
        if not self.contains(x, y):
            raise IndexError(f"({x}, {y}) outside {self.width}x{self.height} buffer")
        return Color.from_rgb(self.pixels[y, x])

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def __eq__(self, other):
        if not isinstance(other, RasterBuffer):
            return NotImplemented
        return np.array_equal(self.pixels, other.pixels)

    __hash__ = None

    def __repr__(self):
        return f"RasterBuffer({self.width}x{self.height})"
