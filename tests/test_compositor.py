"""
Unit tests for flattening and compositing.
"""

import numpy as np
import pytest

from kitbash.compositor import (
    composite,
    flatten,
    overlay,
    placement,
    render_single_part,
    resample_nearest,
)
from kitbash.data import round_half_away
from kitbash.tree import PartTree

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


def add_part(tree, solid, name, size=(2, 2), color=RED, offset=(0.0, 0.0), scale=1.0, parent=None):
    part = tree.new_part(name, solid(size[0], size[1], color))
    part.transform.offset = offset
    part.transform.scale = scale
    tree.insert(part, parent)
    return part


def add_group(tree, name, offset=(0.0, 0.0), scale=1.0, parent=None, visible=True):
    group = tree.new_group(name)
    group.transform.offset = offset
    group.transform.scale = scale
    group.visible = visible
    tree.insert(group, parent)
    return group


class TestRounding:
    """Tests for half-away-from-zero rounding."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (0.5, 1),
            (1.5, 2),
            (2.5, 3),
            (-0.5, -1),
            (-2.5, -3),
            (1.4, 1),
            (-1.4, -1),
            (0.49999999999999994, 0),
            (-0.49999999999999994, 0),
            (0.0, 0),
        ],
    )
    def test_round_half_away(self, value, expected):
        assert round_half_away(value) == expected


class TestFlatten:
    """Tests for transform accumulation and traversal order."""

    def test_two_level_composition(self, solid):
        tree = PartTree()
        outer = add_group(tree, "outer", offset=(10.0, 10.0), scale=2.0)
        inner = add_group(tree, "inner", offset=(5.0, 5.0), scale=1.5, parent=outer.id)
        add_part(tree, solid, "leaf", offset=(2.0, 2.0), scale=1.0, parent=inner.id)

        (item,) = flatten(tree)
        assert item.offset == pytest.approx((26.0, 26.0))
        assert item.scale == pytest.approx(3.0)

    def test_root_part_uses_local_transform(self, solid):
        tree = PartTree()
        add_part(tree, solid, "p", offset=(3.5, -2.0), scale=0.5)
        (item,) = flatten(tree)
        assert item.offset == (3.5, -2.0)
        assert item.scale == 0.5

    def test_preorder_and_groups_not_emitted(self, solid):
        tree = PartTree()
        add_part(tree, solid, "a")
        folder = add_group(tree, "folder")
        add_part(tree, solid, "b", parent=folder.id)
        inner = add_group(tree, "inner", parent=folder.id)
        add_part(tree, solid, "c", parent=inner.id)
        add_part(tree, solid, "d")
        add_group(tree, "empty")

        assert [item.name for item in flatten(tree)] == ["a", "b", "c", "d"]

    def test_hidden_group_prunes_visible_children(self, solid):
        tree = PartTree()
        hidden = add_group(tree, "hidden", visible=False)
        child = add_part(tree, solid, "child", parent=hidden.id)
        assert child.visible is True
        assert flatten(tree) == []

    def test_hidden_part_skipped(self, solid):
        tree = PartTree()
        part = add_part(tree, solid, "p")
        part.visible = False
        add_part(tree, solid, "q")
        assert [item.name for item in flatten(tree)] == ["q"]

    def test_accepts_plain_sequence(self, solid):
        tree = PartTree()
        add_part(tree, solid, "p")
        assert [item.name for item in flatten(tree.roots)] == ["p"]


class TestResample:
    """Tests for nearest-neighbour resampling."""

    def test_upscale_repeats_pixels(self):
        source = np.zeros((1, 2, 4), dtype=np.uint8)
        source[0, 0] = RED
        source[0, 1] = BLUE
        scaled = resample_nearest(source, 4, 2)
        assert scaled.shape == (2, 4, 4)
        assert (scaled[:, :2] == RED).all()
        assert (scaled[:, 2:] == BLUE).all()

    def test_no_intermediate_colours(self):
        source = np.zeros((2, 2, 4), dtype=np.uint8)
        source[0, 0] = RED
        source[0, 1] = GREEN
        source[1, 0] = BLUE
        source[1, 1] = (255, 255, 255, 255)
        scaled = resample_nearest(source, 7, 5)
        allowed = {tuple(pixel) for pixel in source.reshape(-1, 4)}
        assert {tuple(pixel) for pixel in scaled.reshape(-1, 4)} <= allowed

    def test_returns_new_buffer(self, solid):
        source = solid(2, 2, RED)
        same = resample_nearest(source, 2, 2)
        assert same is not source
        same[0, 0] = BLUE
        assert tuple(source[0, 0]) == RED


class TestOverlay:
    """Tests for clipped alpha-over compositing."""

    def test_clips_negative_offset(self, solid):
        canvas = solid(4, 4, CLEAR)
        overlay(canvas, solid(3, 3, RED), -2, -2)
        assert tuple(canvas[0, 0]) == RED
        assert tuple(canvas[1, 1]) == CLEAR
        assert (canvas[1:, :] == 0).all()

    def test_clips_right_and_bottom_edges(self, solid):
        canvas = solid(16, 16, CLEAR)
        overlay(canvas, solid(3, 3, RED), 14, 14)
        assert canvas[..., 3].astype(bool).sum() == 4
        assert (canvas[14:, 14:] == RED).all()
        assert (canvas[:14] == 0).all()
        assert (canvas[:, :14] == 0).all()

    def test_fully_outside_is_noop(self, solid):
        canvas = solid(4, 4, GREEN)
        overlay(canvas, solid(2, 2, RED), 10, 10)
        assert (canvas == GREEN).all()

    def test_half_alpha_over_opaque(self, solid):
        canvas = solid(1, 1, (0, 0, 255, 255))
        overlay(canvas, solid(1, 1, (255, 0, 0, 128)), 0, 0)
        r, g, b, a = canvas[0, 0]
        assert a == 255
        assert r == 128
        assert b == 127
        assert g == 0

    def test_transparent_source_leaves_destination(self, solid):
        canvas = solid(2, 2, (10, 20, 30, 0))
        overlay(canvas, solid(2, 2, (200, 200, 200, 0)), 0, 0)
        assert (canvas == (10, 20, 30, 0)).all()

    def test_over_transparent_takes_source(self, solid):
        canvas = solid(1, 1, CLEAR)
        overlay(canvas, solid(1, 1, (40, 80, 120, 100)), 0, 0)
        assert tuple(canvas[0, 0]) == (40, 80, 120, 100)


class TestComposite:
    """Tests for the full compositing pass."""

    def test_empty_tree_is_background(self):
        canvas = composite(16, 8, (1, 2, 3, 4), PartTree())
        assert canvas.shape == (8, 16, 4)
        assert canvas.dtype == np.uint8
        assert (canvas == (1, 2, 3, 4)).all()

    def test_transparent_background(self):
        canvas = composite(16, 16, CLEAR, PartTree())
        assert (canvas == 0).all()

    def test_later_part_occludes_earlier(self, solid):
        tree = PartTree()
        add_part(tree, solid, "back", color=RED, offset=(1.0, 1.0))
        add_part(tree, solid, "front", color=BLUE, offset=(1.0, 1.0))
        canvas = composite(16, 16, CLEAR, tree)
        assert (canvas[1:3, 1:3] == BLUE).all()

    def test_reorder_changes_result(self, solid):
        tree = PartTree()
        back = add_part(tree, solid, "back", color=RED)
        add_part(tree, solid, "front", color=BLUE)
        tree.move(back.id, "down")
        canvas = composite(16, 16, CLEAR, tree)
        assert tuple(canvas[0, 0]) == RED

    def test_placement_rounds_offset_and_size(self, solid):
        tree = PartTree()
        add_part(tree, solid, "p", size=(3, 2), offset=(2.5, 1.4), scale=1.5)
        canvas = composite(16, 16, CLEAR, tree)
        # width round(4.5) = 5, height round(3.0) = 3, placed at (3, 1)
        painted = np.argwhere(canvas[..., 3] > 0)
        assert painted[:, 0].min() == 1 and painted[:, 0].max() == 3
        assert painted[:, 1].min() == 3 and painted[:, 1].max() == 7

    def test_nested_scale_applies_to_pixels(self, solid):
        tree = PartTree()
        group = add_group(tree, "g", offset=(4.0, 4.0), scale=2.0)
        add_part(tree, solid, "p", size=(2, 2), offset=(1.0, 0.0), parent=group.id)
        canvas = composite(16, 16, CLEAR, tree)
        assert (canvas[4:8, 6:10] == RED).all()
        assert canvas[..., 3].astype(bool).sum() == 16

    def test_hidden_ancestor_not_drawn(self, solid):
        tree = PartTree()
        hidden = add_group(tree, "hidden", visible=False)
        add_part(tree, solid, "p", parent=hidden.id)
        canvas = composite(16, 16, GREEN, tree)
        assert (canvas == GREEN).all()

    def test_degenerate_scale_contributes_nothing(self, solid):
        tree = PartTree()
        add_part(tree, solid, "tiny", size=(2, 2), scale=0.1)
        assert [item.name for item in flatten(tree)] == ["tiny"]
        assert placement(flatten(tree)[0]) is None
        canvas = composite(16, 16, GREEN, tree)
        assert (canvas == GREEN).all()

    def test_composite_is_idempotent(self, solid):
        tree = PartTree()
        add_part(tree, solid, "a", size=(3, 3), color=(255, 0, 0, 128), offset=(1.2, 2.7), scale=1.7)
        add_part(tree, solid, "b", size=(2, 5), color=BLUE, offset=(-1.0, 4.0))
        first = composite(16, 16, (9, 9, 9, 255), tree)
        second = composite(16, 16, (9, 9, 9, 255), tree)
        assert first.tobytes() == second.tobytes()

    def test_source_pixels_untouched(self, solid):
        tree = PartTree()
        part = add_part(tree, solid, "p", scale=3.0)
        before = part.pixels.copy()
        composite(16, 16, CLEAR, tree)
        assert (part.pixels == before).all()

    def test_export_scale_multiplies_canvas_and_placement(self, solid):
        tree = PartTree()
        add_part(tree, solid, "p", size=(2, 2), offset=(1.0, 1.0))
        canvas = composite(16, 16, CLEAR, tree, export_scale=3)
        assert canvas.shape == (48, 48, 4)
        assert (canvas[3:9, 3:9] == RED).all()
        assert canvas[..., 3].astype(bool).sum() == 36


class TestRenderSinglePart:
    """Tests for isolated per-part renders."""

    def test_single_part_on_transparent_canvas(self, solid):
        tree = PartTree()
        add_part(tree, solid, "back", color=GREEN, size=(16, 16))
        add_part(tree, solid, "front", color=RED, offset=(2.0, 3.0))
        front = flatten(tree)[1]
        pixels = render_single_part((16, 16), front)
        assert pixels.shape == (16, 16, 4)
        assert (pixels[3:5, 2:4] == RED).all()
        assert pixels[..., 3].astype(bool).sum() == 4

    def test_degenerate_part_is_blank(self, solid):
        tree = PartTree()
        add_part(tree, solid, "tiny", scale=0.01)
        pixels = render_single_part((16, 16), flatten(tree)[0], export_scale=2)
        assert pixels.shape == (32, 32, 4)
        assert (pixels == 0).all()
