"""Hierarchical part tree: creation, lookup, deletion and sibling reordering."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from kitbash.data import Group, ImagePart, Node, Transform

logger = logging.getLogger(__name__)


class Direction(IntEnum):
    """Reorder direction; UP moves towards the back (index - 1)."""

    UP = -1
    DOWN = 1

    @classmethod
    def parse(cls, value: "Direction | int | str") -> "Direction":
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown direction '{value}'. Available: up, down") from None
        return cls(value)


def iter_nodes(nodes: List[Node]) -> Iterator[Node]:
    """Yield every node depth-first, pre-order."""

    for node in nodes:
        yield node
        if isinstance(node, Group):
            yield from iter_nodes(node.children)


def find_node(nodes: List[Node], node_id: int) -> Optional[Node]:
    """Return the first node with ``node_id`` at any depth, or None."""

    for node in iter_nodes(nodes):
        if node.id == node_id:
            return node
    return None


def find_sequence(nodes: List[Node], node_id: int) -> Optional[Tuple[List[Node], int]]:
    """Return the sibling list holding ``node_id`` and its index in it."""

    for index, node in enumerate(nodes):
        if node.id == node_id:
            return nodes, index
    for node in nodes:
        if isinstance(node, Group):
            found = find_sequence(node.children, node_id)
            if found is not None:
                return found
    return None


def delete_node(nodes: List[Node], node_id: int) -> bool:
    """Remove the node (and its subtree) with ``node_id``.

    The given sequence is searched before descending into groups.
    """

    found = find_sequence(nodes, node_id)
    if found is None:
        return False
    sequence, index = found
    del sequence[index]
    return True


def reorder(sequence: List[Node], index: int, direction: "Direction | int | str") -> bool:
    """Swap ``sequence[index]`` with its neighbour in ``direction``.

    Returns False without touching the sequence when either index falls
    outside it.
    """

    target = index + int(Direction.parse(direction))
    if not (0 <= index < len(sequence)) or not (0 <= target < len(sequence)):
        return False
    sequence[index], sequence[target] = sequence[target], sequence[index]
    return True


def set_visible(node: Node, visible: bool) -> None:
    node.visible = bool(visible)


def transform_mut(node: Node) -> Transform:
    return node.transform


def describe_node(node: Node) -> Dict[str, Any]:
    """JSON-ready summary of a node and, for groups, its subtree."""

    payload: Dict[str, Any] = {
        "id": node.id,
        "name": node.name,
        "visible": node.visible,
        "offset": {"x": node.transform.offset[0], "y": node.transform.offset[1]},
        "scale": node.transform.scale,
    }
    if isinstance(node, Group):
        payload["type"] = "group"
        payload["children"] = [describe_node(child) for child in node.children]
    else:
        width, height = node.size
        payload["type"] = "part"
        payload["size"] = {"width": width, "height": height}
    return payload


class PartTree:
    """Ordered root sequence of parts and groups with a single id counter.

    Root order is paint order: earlier nodes are drawn first (behind).
    """

    def __init__(self) -> None:
        self.roots: List[Node] = []
        self._next_id = 0

    def _allocate_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def new_part(self, name: str, pixels: np.ndarray) -> ImagePart:
        """Create a detached part with the next id."""

        return ImagePart(id=self._allocate_id(), name=name, pixels=pixels)

    def new_group(self, name: str) -> Group:
        """Create a detached, empty group with the next id."""

        return Group(id=self._allocate_id(), name=name)

    def __iter__(self) -> Iterator[Node]:
        return iter_nodes(self.roots)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def ids(self) -> List[int]:
        return [node.id for node in self]

    def find(self, node_id: int) -> Optional[Node]:
        return find_node(self.roots, node_id)

    def find_group(self, node_id: Optional[int]) -> Optional[Group]:
        if node_id is None:
            return None
        node = self.find(node_id)
        return node if isinstance(node, Group) else None

    def contains(self, ancestor_id: int, node_id: int) -> bool:
        """Whether ``node_id`` is ``ancestor_id`` or lies in its subtree."""

        ancestor = self.find(ancestor_id)
        if ancestor is None:
            return False
        return find_node([ancestor], node_id) is not None

    def insert(self, node: Node, target_group_id: Optional[int] = None) -> Optional[Group]:
        """Append ``node`` to the target group, or to the root sequence.

        Returns the group the node was appended to, or None for the root.
        """

        existing = set(self.ids())
        incoming = [item.id for item in iter_nodes([node])]
        if existing.intersection(incoming) or len(set(incoming)) != len(incoming):
            raise ValueError(f"Node id {node.id} (or a descendant id) is already in use.")
        self._next_id = max(self._next_id, max(incoming) + 1)

        group = self.find_group(target_group_id)
        if group is not None:
            group.children.append(node)
        else:
            self.roots.append(node)
        return group

    def delete(self, node_id: int) -> bool:
        removed = delete_node(self.roots, node_id)
        if removed:
            logger.info("Deleted node %s", node_id)
        return removed

    def move(self, node_id: int, direction: "Direction | int | str") -> bool:
        """Move a node one step within its own sibling sequence."""

        found = find_sequence(self.roots, node_id)
        if found is None:
            return False
        sequence, index = found
        return reorder(sequence, index, direction)

    def describe(self) -> List[Dict[str, Any]]:
        return [describe_node(node) for node in self.roots]
