from __future__ import annotations
import logging
import math
from pathlib import Path
from typing import Dict, List, Union
import numpy as np

from models.color import Color, WHITE
from models.raster_buffer import RasterBuffer
from models.session_state import HoverState, SessionSnapshot
from models.slot import Slot
from repositories.image_repository import ImageRepository
from services.canvas_service import CanvasService
from services.match_engine import MatchEngine

logger = logging.getLogger(__name__)


class SessionController:
    """
    Owns the slots of one analysis session and reacts to pointer events.

    States: Idle (self._hover is None) and Hovering(slot, x, y).
    Every call runs to completion; no two engine passes overlap.
    """

    def __init__(
        self,
        slot_count: int = 4,
        canvas_size: int = 300,
        range_: int = 3,
        opacity: float = 0.5,
        highlight_color: Color = WHITE,
        *,
        engine: MatchEngine | None = None,
        canvas_service: CanvasService | None = None,
        image_repository: ImageRepository | None = None,
    ):
        if slot_count <= 0:
            raise ValueError(f"slot_count must be positive, got {slot_count}")
        self.slots: List[Slot] = [Slot(i) for i in range(slot_count)]
        self.highlight_color = highlight_color
        self.engine = engine or MatchEngine()
        self.canvas_service = canvas_service or CanvasService(canvas_size)
        self.image_repository = image_repository or ImageRepository()
        self._range = 0
        self._opacity = 0.0
        self.set_range(range_)
        self.set_opacity(opacity)
        self._hover: HoverState | None = None
        self._match_counts: Dict[int, int] = {}

    @classmethod
    def from_settings(cls, settings) -> "SessionController":
        return cls(
            slot_count=settings.slot_count,
            canvas_size=settings.canvas_size,
            range_=settings.default_range,
            opacity=settings.default_opacity,
            highlight_color=settings.highlight_color,
            image_repository=ImageRepository(settings.valid_image_exts,
                                             timeout=settings.image_load_timeout),
        )

    # ---------- private helpers ----------
    def _slot(self, index: int) -> Slot:
        if not self.is_valid_slot(index):
            raise ValueError(f"Slot index {index} outside 0..{len(self.slots) - 1}")
        return self.slots[index]

    def _reset_all(self) -> None:
        for slot in self.slots:
            if slot.is_populated:
                slot.reset()
        self._match_counts = {}

    # ---------- parameters ----------
    @property
    def canvas_size(self) -> int:
        return self.canvas_service.size

    @property
    def range(self) -> int:
        return self._range

    @property
    def opacity(self) -> float:
        return self._opacity

    def set_range(self, value: int) -> None:
        """Takes effect on the next pointer_move; the current frame is kept."""
        value = int(value)
        if not 0 <= value <= 255:
            raise ValueError(f"range must be in [0, 255], got {value}")
        self._range = value

    def set_opacity(self, value: float) -> None:
        """Takes effect on the next pointer_move; the current frame is kept."""
        value = float(value)
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"opacity must be in [0, 1], got {value}")
        self._opacity = value

    # ---------- loading ----------
    def load_image(self, index: int, decoded: Union[np.ndarray, RasterBuffer]) -> RasterBuffer:
        """
        Fit *decoded* onto the canvas and make it both the original and the
        displayed buffer of slot *index*. Other slots are not touched.
        """
        slot = self._slot(index)
        if isinstance(decoded, RasterBuffer):
            if decoded.size != (self.canvas_size, self.canvas_size):
                buffer = self.canvas_service.to_canvas(decoded.pixels.copy())
            else:
                buffer = decoded
        else:
            buffer = self.canvas_service.to_canvas(decoded)

        slot.populate(buffer)
        self._match_counts.pop(index, None)
        logger.info(f"Slot {index} loaded ({buffer.width}x{buffer.height})")
        return buffer

    def load_image_file(self, index: int, path: Union[str, Path]) -> RasterBuffer:
        self._slot(index)
        return self.load_image(index, self.image_repository.load(path))

    def load_image_bytes(self, index: int, data: bytes) -> RasterBuffer:
        self._slot(index)
        return self.load_image(index, self.image_repository.decode(data))

    def clear_slot(self, index: int) -> None:
        """Free a slot's buffers. Clearing the hovered slot ends the hover."""
        slot = self._slot(index)
        slot.clear()
        self._match_counts.pop(index, None)
        if self._hover is not None and self._hover.slot == index:
            self.pointer_leave()
        logger.info(f"Slot {index} cleared")

    def close(self) -> None:
        """End of session: drop every buffer."""
        for slot in self.slots:
            slot.clear()
        self._hover = None
        self._match_counts = {}

    # ---------- pointer events ----------
    def pointer_move(self, index: int, x: float, y: float) -> Color | None:
        """
        Sample slot *index* at (x, y) and highlight matching pixels in every
        populated slot. Returns the sampled color, or None if the event was
        ignored (unpopulated slot, or coordinate outside the canvas).
        """
        if not self.is_valid_slot(index):
            return None
        slot = self.slots[index]
        if not slot.is_populated:
            return None
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        px, py = math.floor(x), math.floor(y)
        if not slot.original.contains(px, py):
            logger.debug(f"Ignoring pointer at ({x}, {y}) on slot {index}")
            return None

        query = Color(*slot.original.pixel_at(px, py).rgb)

        # Compute every frame first so a failure leaves the slots untouched.
        results = {}
        for other in self.slots:
            if other.is_populated:
                results[other.index] = self.engine.highlight_counted(
                    other.original, query, self._range, self._opacity, self.highlight_color
                )
        self._reset_all()
        for i, (buffer, matched) in results.items():
            self.slots[i].show(buffer)
            self._match_counts[i] = matched

        self._hover = HoverState(slot=index, x=px, y=py, query_color=query)
        return query

    def pointer_leave(self) -> None:
        self._reset_all()
        self._hover = None

    # ---------- queries ----------
    def is_valid_slot(self, index: int) -> bool:
        return 0 <= index < len(self.slots)

    def get_displayed_buffer(self, index: int) -> RasterBuffer | None:
        return self._slot(index).displayed

    def get_original_buffer(self, index: int) -> RasterBuffer | None:
        return self._slot(index).original

    def get_sampled_color(self) -> Color | None:
        return self._hover.query_color if self._hover else None

    def get_active_slot(self) -> int | None:
        return self._hover.slot if self._hover else None

    def get_position(self) -> tuple[int, int] | None:
        return (self._hover.x, self._hover.y) if self._hover else None

    @property
    def is_hovering(self) -> bool:
        return self._hover is not None

    def is_populated(self, index: int) -> bool:
        return self._slot(index).is_populated

    def populated_slots(self) -> List[int]:
        return [s.index for s in self.slots if s.is_populated]

    def is_complete(self) -> bool:
        return all(s.is_populated for s in self.slots)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            range=self._range,
            opacity=self._opacity,
            highlight_color=self.highlight_color,
            canvas_size=self.canvas_size,
            populated=[s.is_populated for s in self.slots],
            hover=self._hover,
            match_counts=dict(self._match_counts),
        )
