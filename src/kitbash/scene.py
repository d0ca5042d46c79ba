"""JSON scene documents describing a nested part tree."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from kitbash.data import Node
from kitbash.errors import DecodeError
from kitbash.io import load_image_file
from kitbash.tree import PartTree

logger = logging.getLogger(__name__)


def _apply_common(node: Node, spec: Dict[str, Any]) -> None:
    offset = spec.get("offset")
    if offset is not None:
        if isinstance(offset, dict):
            node.transform.offset = (float(offset.get("x", 0.0)), float(offset.get("y", 0.0)))
        else:
            node.transform.offset = (float(offset[0]), float(offset[1]))
    node.transform.scale = float(spec.get("scale", 1.0))
    node.visible = bool(spec.get("visible", True))


def _build(tree: PartTree, specs: List[Dict[str, Any]], base_dir: Path, parent_id: Optional[int]) -> None:
    for spec in specs:
        kind = spec.get("type", "part")
        if kind == "group":
            group = tree.new_group(str(spec.get("name", "Group")))
            _apply_common(group, spec)
            tree.insert(group, parent_id)
            _build(tree, spec.get("children", []), base_dir, group.id)
        elif kind == "part":
            path = Path(spec["path"])
            if not path.is_absolute():
                path = base_dir / path
            try:
                file_name, pixels = load_image_file(path)
            except (DecodeError, OSError) as exc:
                logger.warning("Skipping scene part %s: %s", path, exc)
                continue
            part = tree.new_part(str(spec.get("name", file_name)), pixels)
            _apply_common(part, spec)
            tree.insert(part, parent_id)
        else:
            raise ValueError(f"Unknown scene node type '{kind}'. Expected 'part' or 'group'.")


def load_scene(path: Path, tree: Optional[PartTree] = None) -> PartTree:
    """Build (or extend) a tree from a scene file.

    Relative part paths resolve against the scene file's directory.
    """

    document = json.loads(Path(path).read_text())
    tree = tree if tree is not None else PartTree()
    _build(tree, document.get("nodes", []), Path(path).parent, None)
    return tree
