from pathlib import Path
from typing import Union, Iterable, List, Iterator, Tuple
from io import BytesIO
import logging
import signal
import threading
import numpy as np
import cv2
from PIL import Image as PILImage

from models.errors import LoadError
from models.raster_buffer import RasterBuffer

logger = logging.getLogger(__name__)

DEFAULT_EXTS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"}


class ImageRepository:
    """
    Handles file and byte I/O. Everything returned is RGB(A) ordered uint8.
    """
    def __init__(self, valid_exts: Iterable[str] | None = None, timeout: int = 5):
        self.VALID_EXTS = {e.lower() for e in (valid_exts or DEFAULT_EXTS)}
        self.timeout = timeout

    # ---------- private helpers ----------
    @staticmethod
    def _to_rgb_order(arr: np.ndarray) -> np.ndarray:
        """OpenCV hands back BGR(A); flip to RGB(A). Grayscale passes through."""
        if arr.dtype != np.uint8:
            raise LoadError(f"Only 8-bit images are supported, got {arr.dtype}")
        if arr.ndim == 2:
            return arr
        if arr.shape[2] == 3:
            return cv2.cvtColor(arr, cv2.COLOR_BGR2RGB)
        if arr.shape[2] == 4:
            return cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA)
        raise LoadError(f"Unsupported channel count: {arr.shape[2]}")

    def _imread(self, path: Path) -> np.ndarray | None:
        # SIGALRM only exists on POSIX and only fires on the main thread.
        use_alarm = (hasattr(signal, "SIGALRM")
                     and threading.current_thread() is threading.main_thread())
        if not use_alarm:
            return cv2.imread(str(path), cv2.IMREAD_UNCHANGED)

        def _handler(signum, frame):
            raise TimeoutError(f"cv2.imread timed-out after {self.timeout}s: {path}")

        previous = signal.signal(signal.SIGALRM, _handler)
        signal.alarm(self.timeout)
        try:
            return cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        finally:
            signal.alarm(0)  # always disarm
            signal.signal(signal.SIGALRM, previous)

    # ---------- public API ----------
    def load(self, path: Union[str, Path]) -> np.ndarray:
        """Decode an image file into an (H, W[, C]) RGB(A) array."""
        path = Path(path)
        try:
            arr = self._imread(path)
        except TimeoutError as err:
            raise LoadError(str(err)) from err

        if arr is None:
            raise LoadError(f"Image not found or unreadable: {path}")
        logger.debug(f"Decoded {path.name}: {arr.shape}")
        return self._to_rgb_order(arr)

    def decode(self, data: bytes) -> np.ndarray:
        """Decode an in-memory encoded image (e.g. an upload)."""
        if not data:
            raise LoadError("Empty image payload")
        arr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise LoadError("Payload is not a decodable image")
        return self._to_rgb_order(arr)

    @staticmethod
    def encode_png(buffer: RasterBuffer) -> bytes:
        out = BytesIO()
        PILImage.fromarray(buffer.pixels).save(out, format="PNG")
        return out.getvalue()

    @staticmethod
    def save(buffer: RasterBuffer, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.fromarray(buffer.pixels).save(path)
        return path

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Tuple[Path, np.ndarray]]:
        """
        Yield (path, pixels) one at a time, skipping anything unreadable.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                logger.debug(f"Skipping {p}")
                continue
            try:
                yield p, self.load(p)
            except LoadError as err:
                logger.warning(f"Skipping {p.name}: {err}")

    def load_dir(
        self, folder: Union[str, Path], *, recursive=False, exts=None
    ) -> List[Tuple[Path, np.ndarray]]:
        return list(self.iter_dir(folder, recursive=recursive, exts=exts))
