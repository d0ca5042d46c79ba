"""Flattening of the part tree and straight-alpha compositing."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from kitbash.data import Group, ImagePart, Node, RenderItem, round_half_away
from kitbash.tree import PartTree

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int, int]
TreeLike = Union[PartTree, Sequence[Node]]


def _roots(tree: TreeLike) -> Iterable[Node]:
    return tree.roots if isinstance(tree, PartTree) else tree


def _flatten_into(
    nodes: Iterable[Node],
    parent_offset: Tuple[float, float],
    parent_scale: float,
    out: List[RenderItem],
) -> None:
    for node in nodes:
        if not node.visible:
            continue
        local_x, local_y = node.transform.offset
        offset = (
            parent_offset[0] + local_x * parent_scale,
            parent_offset[1] + local_y * parent_scale,
        )
        scale = parent_scale * node.transform.scale
        if isinstance(node, Group):
            _flatten_into(node.children, offset, scale, out)
        elif isinstance(node, ImagePart):
            out.append(
                RenderItem(id=node.id, name=node.name, pixels=node.pixels, offset=offset, scale=scale)
            )
        else:
            raise TypeError(f"Unexpected node type: {type(node).__name__}")


def flatten(tree: TreeLike) -> List[RenderItem]:
    """Return visible parts in paint order with absolute offset and scale.

    Traversal is depth-first pre-order. A hidden group prunes its subtree.
    """

    items: List[RenderItem] = []
    _flatten_into(_roots(tree), (0.0, 0.0), 1.0, items)
    return items


def resample_nearest(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize an RGBA uint8 image with nearest-neighbour sampling only."""

    if (pixels.shape[1], pixels.shape[0]) == (width, height):
        return np.array(pixels, copy=True)
    resized = Image.fromarray(np.ascontiguousarray(pixels)).resize(
        (width, height), resample=Image.Resampling.NEAREST
    )
    return np.asarray(resized, dtype=np.uint8).copy()


def placement(item: RenderItem, export_scale: int = 1) -> Optional[Tuple[int, int, int, int]]:
    """Return ``(x, y, width, height)`` in output pixels, or None if degenerate."""

    src_width, src_height = item.size
    scale = item.scale * export_scale
    width = round_half_away(src_width * scale)
    height = round_half_away(src_height * scale)
    if width <= 0 or height <= 0:
        return None
    x = round_half_away(item.offset[0] * export_scale)
    y = round_half_away(item.offset[1] * export_scale)
    return x, y, width, height


def overlay(canvas: np.ndarray, image: np.ndarray, x: int, y: int) -> np.ndarray:
    """Alpha-over ``image`` onto ``canvas`` in place with its top-left at (x, y).

    Pixels falling outside the canvas are clipped.
    """

    canvas_height, canvas_width = canvas.shape[:2]
    height, width = image.shape[:2]
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + width, canvas_width), min(y + height, canvas_height)
    if x0 >= x1 or y0 >= y1:
        return canvas

    src = image[y0 - y : y1 - y, x0 - x : x1 - x].astype(np.float64) / 255.0
    dst_patch = canvas[y0:y1, x0:x1]
    dst = dst_patch.astype(np.float64) / 255.0

    src_a = src[..., 3:4]
    dst_a = dst[..., 3:4]
    out_a = src_a + dst_a * (1.0 - src_a)
    safe_a = np.where(out_a <= 0.0, 1.0, out_a)
    out_rgb = (src[..., :3] * src_a + dst[..., :3] * dst_a * (1.0 - src_a)) / safe_a

    blended = np.concatenate([out_rgb, out_a], axis=-1)
    blended = np.rint(np.clip(blended, 0.0, 1.0) * 255.0).astype(np.uint8)

    # Transparent source pixels leave the destination untouched.
    untouched = image[y0 - y : y1 - y, x0 - x : x1 - x, 3:4] == 0
    canvas[y0:y1, x0:x1] = np.where(untouched, dst_patch, blended)
    return canvas


def _blank_canvas(width: int, height: int, color: Color) -> np.ndarray:
    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[...] = np.asarray(color, dtype=np.uint8)
    return canvas


def draw_item(canvas: np.ndarray, item: RenderItem, export_scale: int = 1) -> bool:
    """Resample and overlay one item; returns False if it was skipped."""

    placed = placement(item, export_scale)
    if placed is None:
        logger.debug("Skipping '%s' (id %s): scale %.4f rounds to zero size", item.name, item.id, item.scale)
        return False
    x, y, width, height = placed
    overlay(canvas, resample_nearest(item.pixels, width, height), x, y)
    return True


def composite(
    canvas_width: int,
    canvas_height: int,
    background: Color,
    tree: TreeLike,
    *,
    export_scale: int = 1,
) -> np.ndarray:
    """Merge every visible part onto a background-filled RGBA buffer."""

    canvas = _blank_canvas(canvas_width * export_scale, canvas_height * export_scale, background)
    for item in flatten(tree):
        draw_item(canvas, item, export_scale)
    return canvas


def render_single_part(
    canvas_size: Tuple[int, int],
    item: RenderItem,
    export_scale: int = 1,
) -> np.ndarray:
    """Render one flattened item alone on a transparent canvas."""

    width, height = canvas_size
    canvas = _blank_canvas(width * export_scale, height * export_scale, (0, 0, 0, 0))
    draw_item(canvas, item, export_scale)
    return canvas
