"""Named export entries and ZIP archiving of a composition."""

from __future__ import annotations

import logging
import re
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Dict, Tuple

from kitbash.compositor import composite, flatten, metadata_json, render_single_part
from kitbash.compositor.blend import Color, TreeLike
from kitbash.io import encode_png

logger = logging.getLogger(__name__)

COMPOSITE_ENTRY = "composite.png"
METADATA_ENTRY = "data.json"

_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._ -]+")


def _sanitize_filename(name: str) -> str:
    """Make a part name safe for use as an archive entry name."""

    stem = name
    if stem.lower().endswith(_IMAGE_SUFFIXES):
        stem = stem.rsplit(".", 1)[0]
    stem = _UNSAFE_CHARS.sub("_", stem).strip(" .")
    return stem or "part"


def part_entry_name(index: int, name: str) -> str:
    return f"{index}_{_sanitize_filename(name)}.png"


def build_export(
    canvas_size: Tuple[int, int],
    background: Color,
    tree: TreeLike,
    *,
    export_scale: int = 1,
    include_parts: bool = True,
) -> Dict[str, bytes]:
    """Produce the named byte streams of an export, in archive order.

    Entries are one PNG per visible part (transparent background, full
    canvas), the merged composite, and the metadata document.
    """

    entries: Dict[str, bytes] = {}
    if include_parts:
        for index, item in enumerate(flatten(tree)):
            pixels = render_single_part(canvas_size, item, export_scale)
            entries[part_entry_name(index, item.name)] = encode_png(pixels)

    width, height = canvas_size
    merged = composite(width, height, background, tree, export_scale=export_scale)
    entries[COMPOSITE_ENTRY] = encode_png(merged)
    entries[METADATA_ENTRY] = metadata_json(tree).encode("utf-8")
    return entries


def archive_bytes(entries: Dict[str, bytes]) -> bytes:
    """Pack named entries into an in-memory deflate ZIP."""

    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def write_archive(entries: Dict[str, bytes], output_path: Path) -> Path:
    """Write entries to a ZIP file, appending ``.zip`` if missing."""

    if output_path.suffix != ".zip":
        output_path = output_path.with_suffix(".zip")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(archive_bytes(entries))
    logger.info("Wrote %d entries to %s", len(entries), output_path)
    return output_path
