import numpy as np
from PIL import Image as PILImage

from pipeline.highlight_gallery import highlight_gallery, main
from services.session_controller import SessionController


def two_tone():
    px = np.full((4, 4, 3), 10, dtype=np.uint8)
    px[0, 0] = (200, 200, 200)
    return px


def test_highlight_gallery_writes_each_slot(tmp_path, write_png):
    paths = [write_png(two_tone(), "first.png"), write_png(two_tone(), "second.png")]
    controller = SessionController(canvas_size=4, range_=0, opacity=1.0)

    written = highlight_gallery(paths, 0, 0, 0, controller=controller,
                                output_dir=tmp_path / "out")

    assert [p.name for p in written] == ["0_first_highlighted.png", "1_second_highlighted.png"]
    for path in written:
        with PILImage.open(path) as img:
            assert img.getpixel((0, 0)) == (255, 255, 255, 255)
            assert img.getpixel((1, 1)) == (10, 10, 10, 255)


def test_ignored_sample_writes_nothing(tmp_path, write_png):
    paths = [write_png(two_tone())]
    controller = SessionController(canvas_size=4)
    assert highlight_gallery(paths, 0, 9, 9, controller=controller,
                             output_dir=tmp_path / "out") == []
    assert not (tmp_path / "out").exists()


def test_cli(tmp_path, write_png, monkeypatch):
    monkeypatch.setenv("CANVAS_SIZE", "4")
    path = write_png(two_tone())
    out = tmp_path / "cli"
    code = main([str(path), "--x", "0", "--y", "0", "--range", "0",
                 "--opacity", "1", "--highlight-color", "#ff0000", "--output-dir", str(out)])
    assert code == 0
    with PILImage.open(out / "0_image_highlighted.png") as img:
        assert img.getpixel((0, 0)) == (255, 0, 0, 255)


def test_cli_reports_unreadable_image(tmp_path):
    code = main([str(tmp_path / "missing.png"), "--x", "0", "--y", "0",
                 "--output-dir", str(tmp_path / "out")])
    assert code == 1


def test_cli_reports_bad_highlight_color(tmp_path, write_png):
    path = write_png(two_tone())
    code = main([str(path), "--x", "0", "--y", "0", "--highlight-color", "red",
                 "--output-dir", str(tmp_path / "out")])
    assert code == 1
    assert not (tmp_path / "out").exists()
