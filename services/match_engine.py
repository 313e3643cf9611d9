from __future__ import annotations
import logging
from functools import lru_cache
from typing import Tuple
import numpy as np

from models.color import Color, WHITE
from models.errors import InvalidBufferError
from models.raster_buffer import RasterBuffer

logger = logging.getLogger(__name__)

# Distinct (opacity, highlight color) pairs kept around at once.
BLEND_TABLE_CACHE_SIZE = 32


def _check_params(range_: int, opacity: float) -> None:
    if not 0 <= range_ <= 255:
        raise ValueError(f"range must be in [0, 255], got {range_}")
    if not 0.0 <= opacity <= 1.0:
        raise ValueError(f"opacity must be in [0, 1], got {opacity}")


def _check_source(source) -> np.ndarray:
    if not isinstance(source, RasterBuffer):
        raise InvalidBufferError(f"Expected a RasterBuffer, got {type(source).__name__}")
    return source.pixels


@lru_cache(maxsize=BLEND_TABLE_CACHE_SIZE)
def blend_table(opacity: float, highlight_color: Color) -> np.ndarray:
    """(3, 256) uint8: row c maps an input channel value to its blended value."""
    values = np.arange(256, dtype=np.float64)
    target = np.array(highlight_color.rgb, dtype=np.float64)[:, None]
    mixed = values[None, :] * (1.0 - opacity) + target * opacity
    # Round half up, so x.5 always goes to the brighter value.
    lut = np.clip(np.floor(mixed + 0.5), 0, 255).astype(np.uint8)
    lut.flags.writeable = False
    return lut


class MatchEngine:
    """
    Highlights every pixel whose RGB lies inside a per-channel box around
    a query color by blending it toward a highlight color.

    The blend only depends on (opacity, highlight color), so it is
    precomputed as a 256-entry table per channel (see blend_table).
    """

    # ---------- public API ----------
    @staticmethod
    def match_mask(source: RasterBuffer, query: Color, range_: int) -> np.ndarray:
        """
        Boolean (H, W) mask of pixels within *range_* of *query* on every channel.
        """
        pixels = _check_source(source)
        if not 0 <= range_ <= 255:
            raise ValueError(f"range must be in [0, 255], got {range_}")

        mask = np.ones(pixels.shape[:2], dtype=bool)
        scratch = np.empty_like(mask)
        for c, q in enumerate(query.rgb):
            lo, hi = max(q - range_, 0), min(q + range_, 255)
            channel = pixels[:, :, c]
            np.greater_equal(channel, lo, out=scratch)
            np.logical_and(mask, scratch, out=mask)
            np.less_equal(channel, hi, out=scratch)
            np.logical_and(mask, scratch, out=mask)
        return mask

    def count_matches(self, source: RasterBuffer, query: Color, range_: int) -> int:
        return int(self.match_mask(source, query, range_).sum())

    def highlight_counted(
        self,
        source: RasterBuffer,
        query: Color,
        range_: int,
        opacity: float,
        highlight_color: Color = WHITE,
    ) -> Tuple[RasterBuffer, int]:
        """
        Same as highlight() but also returns how many pixels matched.
        """
        pixels = _check_source(source)
        _check_params(range_, opacity)

        mask = self.match_mask(source, query, range_)
        hits = np.flatnonzero(mask)
        matched = int(hits.size)

        out = pixels.copy()
        if matched and opacity > 0.0:
            lut = blend_table(float(opacity), highlight_color)
            flat = out.reshape(-1, 4)
            picked = flat[hits, :3]
            for c in range(3):
                picked[:, c] = lut[c][picked[:, c]]
            flat[hits, :3] = picked
        # alpha (channel 3) is left exactly as it was
        out.flags.writeable = False

        logger.debug(f"{matched} pixels matched {query.rgb} within {range_} on {source}")
        return RasterBuffer(out), matched

    def highlight(
        self,
        source: RasterBuffer,
        query: Color,
        range_: int,
        opacity: float,
        highlight_color: Color = WHITE,
    ) -> RasterBuffer:
        """
        Return a new buffer where matching pixels are blended toward
        *highlight_color* by *opacity*. *source* is never modified.

        Raises:
            InvalidBufferError: source is not a valid RGBA raster.
            ValueError: range_ outside [0, 255] or opacity outside [0, 1].
        """
        return self.highlight_counted(source, query, range_, opacity, highlight_color)[0]


_default_engine = MatchEngine()


def highlight(
    source: RasterBuffer,
    query: Color,
    range_: int,
    opacity: float,
    highlight_color: Color = WHITE,
) -> RasterBuffer:
    return _default_engine.highlight(source, query, range_, opacity, highlight_color)
