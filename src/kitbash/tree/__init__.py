"""Part tree model."""

from kitbash.tree.model import (
    Direction,
    PartTree,
    delete_node,
    describe_node,
    find_node,
    find_sequence,
    iter_nodes,
    reorder,
    set_visible,
    transform_mut,
)

__all__ = [
    "Direction",
    "PartTree",
    "delete_node",
    "describe_node",
    "find_node",
    "find_sequence",
    "iter_nodes",
    "reorder",
    "set_visible",
    "transform_mut",
]
