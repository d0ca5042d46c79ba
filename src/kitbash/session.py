"""Single-owner editing session: tree, selection, canvas settings and imports."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from kitbash.compositor import composite, derive_metadata, flatten, metadata_document
from kitbash.config import KitbashConfig, validate_config
from kitbash.data import Group, ImagePart, Node, PartMetadata, RenderItem
from kitbash.export import archive_bytes, build_export
from kitbash.importer import ImportFailure, ImportQueue
from kitbash.tree import Direction, PartTree, set_visible, transform_mut

logger = logging.getLogger(__name__)


class KitbashSession:
    """Owns one part tree and serialises every read and write to it.

    Decoded imports are applied by ``process_imports``, which every read
    calls first, so a flatten or composite never races with an insertion.
    """

    def __init__(self, config: Optional[KitbashConfig] = None) -> None:
        self.config = validate_config(config or KitbashConfig())
        self.tree = PartTree()
        self.imports = ImportQueue()
        self.selected_id: Optional[int] = None

    def configure(self, **changes: Any) -> KitbashConfig:
        self.config = validate_config(replace(self.config, **changes))
        return self.config

    # Structure

    def _insert(self, node: Node) -> Node:
        self.tree.insert(node, self.selected_id)
        return node

    def add_image(self, name: str, pixels: np.ndarray) -> ImagePart:
        """Insert a decoded image under the selected group, or at the root."""

        part = self.tree.new_part(name, pixels)
        self._insert(part)
        logger.info("Added part '%s' (id %s)", name, part.id)
        return part

    def add_group(self, name: str) -> Group:
        group = self.tree.new_group(name)
        self._insert(group)
        return group

    def import_bytes(self, name: str, data: bytes) -> None:
        """Queue encoded image bytes for background decoding."""

        self.imports.submit(name, data)

    def process_imports(self) -> List[ImagePart]:
        """Insert every decoded image that is ready, in arrival order."""

        return [self.add_image(item.name, item.pixels) for item in self.imports.drain()]

    def import_failures(self, clear: bool = False) -> List[ImportFailure]:
        return self.imports.failures(clear=clear)

    def find(self, node_id: int) -> Optional[Node]:
        return self.tree.find(node_id)

    def select(self, node_id: Optional[int]) -> Optional[Node]:
        """Select a node by id; an unknown id clears the selection."""

        node = self.tree.find(node_id) if node_id is not None else None
        self.selected_id = node.id if node is not None else None
        return node

    def selected(self) -> Optional[Node]:
        if self.selected_id is None:
            return None
        return self.tree.find(self.selected_id)

    def delete(self, node_id: int) -> bool:
        clears_selection = self.selected_id is not None and self.tree.contains(node_id, self.selected_id)
        removed = self.tree.delete(node_id)
        if removed and clears_selection:
            self.selected_id = None
        return removed

    def move(self, node_id: int, direction: "Direction | int | str") -> bool:
        return self.tree.move(node_id, direction)

    # Per-node edits

    def set_visible(self, node_id: int, visible: bool) -> bool:
        node = self.tree.find(node_id)
        if node is None:
            return False
        set_visible(node, visible)
        return True

    def rename(self, node_id: int, name: str) -> bool:
        node = self.tree.find(node_id)
        if node is None:
            return False
        node.name = name
        return True

    def update_transform(
        self,
        node_id: int,
        offset: Optional[Tuple[float, float]] = None,
        scale: Optional[float] = None,
    ) -> bool:
        node = self.tree.find(node_id)
        if node is None:
            return False
        transform = transform_mut(node)
        if offset is not None:
            transform.offset = (float(offset[0]), float(offset[1]))
        if scale is not None:
            transform.scale = float(scale)
        return True

    def snap_to_pixel(self, node_id: int) -> bool:
        node = self.tree.find(node_id)
        if node is None:
            return False
        transform_mut(node).snap()
        return True

    def reset_transform(self, node_id: int) -> bool:
        node = self.tree.find(node_id)
        if node is None:
            return False
        transform_mut(node).reset()
        return True

    # Output

    def flatten(self) -> List[RenderItem]:
        self.process_imports()
        return flatten(self.tree)

    def composite(self, export_scale: int = 1) -> np.ndarray:
        self.process_imports()
        return composite(
            self.config.canvas_width,
            self.config.canvas_height,
            self.config.background,
            self.tree,
            export_scale=export_scale,
        )

    def metadata(self) -> List[PartMetadata]:
        self.process_imports()
        return derive_metadata(self.tree)

    def metadata_document(self) -> List[Dict[str, Any]]:
        self.process_imports()
        return metadata_document(self.tree)

    def export_entries(self, include_parts: bool = True) -> Dict[str, bytes]:
        """Named PNG/JSON byte streams at the configured export scale."""

        self.process_imports()
        entries = build_export(
            self.config.canvas_size,
            self.config.background,
            self.tree,
            export_scale=self.config.export_scale,
            include_parts=include_parts,
        )
        logger.info(
            "Exported %d entries at %dx%d",
            len(entries),
            *self.config.export_size,
        )
        return entries

    def export_archive(self) -> bytes:
        return archive_bytes(self.export_entries())
