from __future__ import annotations
from dataclasses import dataclass

from models.raster_buffer import RasterBuffer


@dataclass
class Slot:
    """
    One canvas position. Owns the untouched buffer captured at load time
    and the buffer currently shown, which is only ever swapped wholesale.
    """
    index: int
    original: RasterBuffer | None = None   # Set once per loaded image.
    displayed: RasterBuffer | None = None  # What the renderer paints.

    @property
    def is_populated(self) -> bool:
        return self.original is not None

    def populate(self, buffer: RasterBuffer) -> None:
        self.original = buffer
        self.displayed = buffer

    def show(self, buffer: RasterBuffer) -> None:
        self.displayed = buffer

    def reset(self) -> None:
        self.displayed = self.original

    def clear(self) -> None:
        self.original = None
        self.displayed = None
