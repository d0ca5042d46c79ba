"""Flattening, compositing and placement metadata."""

from kitbash.compositor.blend import (
    composite,
    draw_item,
    flatten,
    overlay,
    placement,
    render_single_part,
    resample_nearest,
)
from kitbash.compositor.metadata import derive_metadata, metadata_document, metadata_json

__all__ = [
    "composite",
    "derive_metadata",
    "draw_item",
    "flatten",
    "metadata_document",
    "metadata_json",
    "overlay",
    "placement",
    "render_single_part",
    "resample_nearest",
]
