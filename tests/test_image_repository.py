import numpy as np
import pytest
from PIL import Image as PILImage

from models.color import Color
from models.errors import LoadError
from models.raster_buffer import RasterBuffer
from repositories.image_repository import ImageRepository


@pytest.fixture
def repo():
    return ImageRepository()


def rgb_image():
    px = np.zeros((3, 5, 3), dtype=np.uint8)
    px[..., 0] = 250   # strongly red, so channel order mistakes show up
    px[1, 2] = (1, 2, 3)
    return px


def test_load_returns_rgb_order(repo, write_png):
    arr = repo.load(write_png(rgb_image()))
    assert arr.shape == (3, 5, 3)
    assert tuple(arr[0, 0]) == (250, 0, 0)
    assert tuple(arr[1, 2]) == (1, 2, 3)


def test_load_keeps_alpha(repo, write_png):
    px = np.zeros((2, 2, 4), dtype=np.uint8)
    px[...] = (10, 20, 30, 40)
    arr = repo.load(write_png(px))
    assert arr.shape == (2, 2, 4)
    assert tuple(arr[0, 0]) == (10, 20, 30, 40)


def test_load_missing_or_garbage(repo, tmp_path):
    with pytest.raises(LoadError):
        repo.load(tmp_path / "missing.png")
    junk = tmp_path / "junk.png"
    junk.write_bytes(b"definitely not an image")
    with pytest.raises(LoadError):
        repo.load(junk)


def test_decode_bytes(repo, write_png):
    data = write_png(rgb_image()).read_bytes()
    arr = repo.decode(data)
    assert tuple(arr[0, 0]) == (250, 0, 0)
    with pytest.raises(LoadError):
        repo.decode(b"")
    with pytest.raises(LoadError):
        repo.decode(b"\x00\x01\x02")


def test_encode_and_save(repo, tmp_path):
    buf = RasterBuffer.filled(3, 2, Color(7, 8, 9, 100))
    png = repo.encode_png(buf)
    assert png.startswith(b"\x89PNG")

    path = repo.save(buf, tmp_path / "out" / "x.png")
    with PILImage.open(path) as img:
        assert img.mode == "RGBA"
        assert img.size == (3, 2)
        assert img.getpixel((0, 0)) == (7, 8, 9, 100)


def test_iter_dir_skips_unsupported_and_broken(repo, tmp_path, write_png):
    write_png(rgb_image(), "a.png")
    write_png(rgb_image(), "b.png")
    (tmp_path / "notes.txt").write_text("hello")
    (tmp_path / "broken.png").write_bytes(b"nope")

    loaded = repo.load_dir(tmp_path)
    assert [p.name for p, _ in loaded] == ["a.png", "b.png"]

    with pytest.raises(NotADirectoryError):
        repo.load_dir(tmp_path / "a.png")
