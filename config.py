"""
Runtime settings, read from the environment (and a local .env if present).
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from models.color import Color

# Load environment variables
load_dotenv()


@dataclass(frozen=True)
class Settings:
    canvas_size: int = 300
    slot_count: int = 4
    default_range: int = 3
    default_opacity: float = 0.5
    highlight_color: Color = Color(255, 255, 255)
    image_load_timeout: int = 5
    valid_image_exts: frozenset = frozenset({".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"})
    max_upload_size_mb: int = 20
    api_server_port: int = 5002
    output_dir: Path = Path("data/highlighted")


def load_settings() -> Settings:
    """Build Settings from env-vars; anything unset keeps its default."""
    exts = os.getenv("VALID_IMAGE_EXTENSIONS")
    return Settings(
        canvas_size=int(os.getenv("CANVAS_SIZE", "300")),
        slot_count=int(os.getenv("SLOT_COUNT", "4")),
        default_range=int(os.getenv("DEFAULT_RANGE", "3")),
        default_opacity=float(os.getenv("DEFAULT_OPACITY", "0.5")),
        highlight_color=Color.from_hex(os.getenv("HIGHLIGHT_COLOR", "#ffffff")),
        image_load_timeout=int(os.getenv("IMAGE_LOAD_TIMEOUT", "5")),
        valid_image_exts=(
            frozenset(e.strip().lower() for e in exts.split(",") if e.strip())
            if exts else Settings.valid_image_exts
        ),
        max_upload_size_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", "20")),
        api_server_port=int(os.getenv("API_SERVER_PORT", "5002")),
        output_dir=Path(os.getenv("OUTPUT_DIR", "data/highlighted")),
    )
