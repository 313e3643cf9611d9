from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable


def _check_channel(name: str, value: int) -> None:
    if not 0 <= value <= 255:
        raise ValueError(f"Channel {name}={value} outside [0, 255]")


@dataclass(frozen=True)
class Color:
    """
    Value-object for a single 8-bit RGB sample.
    Alpha is optional and only carried along, never compared.
    """
    r: int
    g: int
    b: int
    a: int | None = None

    def __post_init__(self):
        for name in ("r", "g", "b"):
            _check_channel(name, getattr(self, name))
        if self.a is not None:
            _check_channel("a", self.a)

    @property
    def rgb(self) -> tuple[int, int, int]:
        return self.r, self.g, self.b

    # ── Constructors ────────────────────────────────────────────────
    @classmethod
    def from_rgb(cls, values: Iterable[int]) -> "Color":
        """Build from any 3- or 4-long sequence (tuple, list, numpy row)."""
        channels = [int(v) for v in values]
        if len(channels) not in (3, 4):
            raise ValueError(f"Expected 3 or 4 channels, got {len(channels)}")
        return cls(*channels)

    @classmethod
    def from_hex(cls, hex_str: str) -> "Color":
        h = hex_str.strip().lstrip("#")
        if len(h) != 6:
            raise ValueError(f"Not a #rrggbb color: {hex_str!r}")
        return cls(*(int(h[i: i + 2], 16) for i in (0, 2, 4)))

    # ── Presentation ────────────────────────────────────────────────
    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def describe(self) -> str:
        """Tooltip text shown next to the cursor."""
        return f"RGB: ({self.r}, {self.g}, {self.b})"

    def as_dict(self) -> dict:
        return {"r": self.r, "g": self.g, "b": self.b}


WHITE = Color(255, 255, 255)


def distance_within(a: Color, b: Color, range_: int) -> bool:
    """
    Per-channel box match: every RGB channel differs by at most *range_*.
    range_=0 is an exact match, range_=255 accepts everything.
    """
    return (abs(a.r - b.r) <= range_
            and abs(a.g - b.g) <= range_
            and abs(a.b - b.b) <= range_)
