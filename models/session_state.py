from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List

from models.color import Color


@dataclass(frozen=True)
class HoverState:
    """Cursor state, only meaningful while the pointer is over a populated slot."""
    slot: int
    x: int
    y: int
    query_color: Color


@dataclass
class SessionSnapshot:
    """
    Data object describing what a front-end needs to draw one frame:
    settings, slot occupancy, and the current hover (if any).
    """
    range: int
    opacity: float
    highlight_color: Color
    canvas_size: int
    populated: List[bool]
    hover: HoverState | None = None
    match_counts: Dict[int, int] = field(default_factory=dict)

    @property
    def status_message(self) -> str:
        if not all(self.populated):
            return (f"Please upload all {len(self.populated)} images to begin analysis. "
                    f"Images will be resized to fit within "
                    f"{self.canvas_size}x{self.canvas_size} squares.")
        return ("Hover over any image to see RGB values. Pixels with similar RGB values "
                "(within the specified range) will be highlighted with adjustable "
                "opacity in all images.")

    def as_dict(self) -> dict:
        hover = self.hover
        return {
            "range": self.range,
            "opacity": round(self.opacity, 2),
            "highlight_color": self.highlight_color.to_hex(),
            "canvas_size": self.canvas_size,
            "populated": list(self.populated),
            "active_slot": hover.slot if hover else None,
            "position": {"x": hover.x, "y": hover.y} if hover else None,
            "sampled_color": hover.query_color.as_dict() if hover else None,
            "tooltip": hover.query_color.describe() if hover else None,
            "match_counts": {str(k): v for k, v in self.match_counts.items()},
            "message": self.status_message,
        }
