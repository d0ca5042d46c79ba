"""Command-line entry point: compose parts into a PNG, metadata and archive."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from kitbash.config import load_config, parse_color, validate_config
from kitbash.errors import DecodeError
from kitbash.export import COMPOSITE_ENTRY, METADATA_ENTRY, write_archive
from kitbash.io import iter_image_paths, load_image_file
from kitbash.scene import load_scene
from kitbash.session import KitbashSession

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compose sprite parts into a single image")
    parser.add_argument("images", nargs="*", type=Path, help="Image files or directories, back to front")
    parser.add_argument("--scene", type=Path, help="JSON scene describing nested parts and groups")
    parser.add_argument("--output-dir", type=Path, required=True, help="Output directory")
    parser.add_argument("--config", type=Path, help="Optional JSON config path")
    parser.add_argument("--canvas-width", type=int, help="Override canvas width")
    parser.add_argument("--canvas-height", type=int, help="Override canvas height")
    parser.add_argument("--background", type=str, help="Background colour, #RRGGBB or #RRGGBBAA")
    parser.add_argument("--export-scale", type=int, help="Integer export multiplier")
    parser.add_argument("--zip", action="store_true", help="Also write a ZIP with per-part renders")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    overrides = {}
    if args.canvas_width is not None:
        overrides["canvas_width"] = args.canvas_width
    if args.canvas_height is not None:
        overrides["canvas_height"] = args.canvas_height
    if args.background is not None:
        overrides["background"] = parse_color(args.background)
    if args.export_scale is not None:
        overrides["export_scale"] = args.export_scale
    if overrides:
        config = validate_config(replace(config, **overrides))

    if not args.images and not args.scene:
        raise SystemExit("Provide image files or --scene.")

    session = KitbashSession(config)
    if args.scene:
        load_scene(args.scene, session.tree)
    skipped = []
    # Decoded in argument order so the paint order is deterministic.
    for path in iter_image_paths(args.images, config.image_extensions):
        try:
            name, pixels = load_image_file(path)
        except (DecodeError, OSError) as exc:
            logger.warning("Failed to decode image: %s (%s)", path, exc)
            skipped.append(path)
            continue
        session.add_image(name, pixels)

    entries = session.export_entries(include_parts=args.zip)
    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / COMPOSITE_ENTRY).write_bytes(entries[COMPOSITE_ENTRY])
    (output_dir / METADATA_ENTRY).write_bytes(entries[METADATA_ENTRY])
    if args.zip:
        write_archive(entries, output_dir / config.archive_name)

    width, height = config.export_size
    print(f"Composed {len(session.flatten())} visible parts onto {width}x{height}")
    if skipped:
        print(f"Skipped {len(skipped)} file(s) that could not be decoded")


if __name__ == "__main__":
    main()
