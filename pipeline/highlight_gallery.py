"""
Highlight Gallery Pipeline
Loads up to four images side by side, samples one pixel, and writes every
canvas with the matching colors highlighted. Useful for comparing palettes
without the interactive front-end.
"""

import argparse
import logging
from pathlib import Path
from typing import List, Sequence

from config import load_settings
from models.color import Color
from models.errors import LoadError
from repositories.image_repository import ImageRepository
from services.session_controller import SessionController

logger = logging.getLogger(__name__)


def highlight_gallery(
    image_paths: Sequence[str | Path],
    slot: int,
    x: float,
    y: float,
    *,
    controller: SessionController,
    output_dir: str | Path,
    image_repository: ImageRepository = ImageRepository(),
) -> List[Path]:
    """
    Run one pointer event over a set of images and save the result.

    1. Load each path into the slot with the same position
    2. Sample slot *slot* at (x, y) and highlight all slots
    3. Save every displayed canvas as <stem>_highlighted.png

    Returns:
        List[Path]: written files, in slot order. Empty if the sample
        point was ignored (unpopulated slot or off-canvas).
    """
    if len(image_paths) > len(controller.slots):
        raise ValueError(f"At most {len(controller.slots)} images, got {len(image_paths)}")

    for index, path in enumerate(image_paths):
        controller.load_image_file(index, path)

    query = controller.pointer_move(slot, x, y)
    if query is None:
        logger.warning(f"Sample point ({x}, {y}) on slot {slot} was ignored")
        return []
    logger.info(f"Sampled {query.describe()} at ({x}, {y}) on slot {slot}")

    output_dir = Path(output_dir)
    written = []
    snapshot = controller.snapshot()
    for index, path in enumerate(image_paths):
        target = output_dir / f"{index}_{Path(path).stem}_highlighted.png"
        image_repository.save(controller.get_displayed_buffer(index), target)
        logger.info(f"Slot {index}: {snapshot.match_counts.get(index, 0)} matching pixels -> {target}")
        written.append(target)
    return written


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Highlight similar colors across up to four images.")
    ap.add_argument("images", nargs="+", help="image files, one per slot")
    ap.add_argument("--slot", type=int, default=0, help="slot to sample from")
    ap.add_argument("--x", type=float, required=True, help="canvas x coordinate")
    ap.add_argument("--y", type=float, required=True, help="canvas y coordinate")
    ap.add_argument("--range", dest="range_", type=int, default=None,
                    help="per-channel tolerance, 0-255")
    ap.add_argument("--opacity", type=float, default=None, help="highlight strength, 0-1")
    ap.add_argument("--highlight-color", default=None, help="#rrggbb, defaults to white")
    ap.add_argument("--output-dir", default=None)
    return ap


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)
    settings = load_settings()

    controller = SessionController.from_settings(settings)
    try:
        if args.range_ is not None:
            controller.set_range(args.range_)
        if args.opacity is not None:
            controller.set_opacity(args.opacity)
        if args.highlight_color:
            controller.highlight_color = Color.from_hex(args.highlight_color)

        written = highlight_gallery(
            args.images, args.slot, args.x, args.y,
            controller=controller,
            output_dir=args.output_dir or settings.output_dir,
            image_repository=controller.image_repository,
        )
    except (LoadError, ValueError) as err:
        logger.error(f"Highlight failed: {err}")
        return 1
    return 0 if written else 1


if __name__ == "__main__":
    raise SystemExit(main())
