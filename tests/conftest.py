from pathlib import Path
import numpy as np
import pytest
from PIL import Image as PILImage

from models.raster_buffer import RasterBuffer


def make_pixels(width, height, rgb=(10, 10, 10), alpha=255):
    px = np.empty((height, width, 4), dtype=np.uint8)
    px[...] = (*rgb, alpha)
    return px


@pytest.fixture
def uniform_buffer():
    """4x4 buffer, all (10,10,10) except (2,1) which is (200,200,200)."""
    px = make_pixels(4, 4)
    px[1, 2, :3] = 200
    return RasterBuffer(px)


@pytest.fixture
def gradient_buffer():
    """16x16 buffer with every channel varying across the image."""
    ys, xs = np.mgrid[0:16, 0:16]
    px = np.stack([xs * 16, ys * 16, (xs + ys) * 8, np.full_like(xs, 200)], axis=-1)
    return RasterBuffer(px.astype(np.uint8))


@pytest.fixture
def write_png(tmp_path):
    """Write an RGB(A) array to a PNG in tmp_path and return its path."""
    def _write(pixels: np.ndarray, name: str = "image.png") -> Path:
        path = tmp_path / name
        PILImage.fromarray(pixels).save(path)
        return path
    return _write
