"""Per-part placement records in paint order."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from kitbash.compositor.blend import TreeLike, flatten
from kitbash.data import PartMetadata, round_half_away


def derive_metadata(tree: TreeLike) -> List[PartMetadata]:
    """One record per flattened item; list position is the z-index."""

    return [
        PartMetadata(
            name=item.name,
            scale=item.scale,
            offset=(round_half_away(item.offset[0]), round_half_away(item.offset[1])),
        )
        for item in flatten(tree)
    ]


def metadata_document(tree: TreeLike) -> List[Dict[str, Any]]:
    return [record.to_dict() for record in derive_metadata(tree)]


def metadata_json(tree: TreeLike) -> str:
    """Pretty-printed metadata document."""

    return json.dumps(metadata_document(tree), indent=2)
