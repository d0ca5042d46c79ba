"""Core data structures shared by the tree model and the compositor."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

import numpy as np


@dataclass
class Transform:
    """Offset and uniform scale relative to the parent's coordinate space."""

    offset: Tuple[float, float] = (0.0, 0.0)
    scale: float = 1.0

    def reset(self) -> None:
        self.offset = (0.0, 0.0)
        self.scale = 1.0

    def snap(self) -> None:
        """Round the offset to whole pixels."""

        self.offset = (float(round_half_away(self.offset[0])), float(round_half_away(self.offset[1])))


@dataclass(eq=False)
class ImagePart:
    """Leaf node wrapping one decoded straight-alpha RGBA image.

    The pixel buffer is copied on construction and frozen; resampling always
    produces a new array.
    """

    id: int
    name: str
    pixels: np.ndarray
    transform: Transform = field(default_factory=Transform)
    visible: bool = True

    def __post_init__(self) -> None:
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Part pixels must have shape (height, width, 4), got {pixels.shape}.")
        pixels.flags.writeable = False
        self.pixels = pixels

    @property
    def size(self) -> Tuple[int, int]:
        """Source (width, height) in pixels."""

        return int(self.pixels.shape[1]), int(self.pixels.shape[0])


@dataclass(eq=False)
class Group:
    """Container node; owns its children, which paint in list order."""

    id: int
    name: str
    children: List["Node"] = field(default_factory=list)
    transform: Transform = field(default_factory=Transform)
    visible: bool = True


Node = Union[ImagePart, Group]


@dataclass(frozen=True, eq=False)
class RenderItem:
    """A visible part with its transform composed against every ancestor."""

    id: int
    name: str
    pixels: np.ndarray
    offset: Tuple[float, float]
    scale: float

    @property
    def size(self) -> Tuple[int, int]:
        return int(self.pixels.shape[1]), int(self.pixels.shape[0])


@dataclass(frozen=True)
class PartMetadata:
    """Placement record persisted alongside the exported images."""

    name: str
    scale: float
    offset: Tuple[int, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "scale": self.scale,
            "offset": {"x": self.offset[0], "y": self.offset[1]},
        }


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""

    absolute = abs(value)
    magnitude = math.floor(absolute)
    if absolute - magnitude >= 0.5:
        magnitude += 1
    return -magnitude if value < 0 else magnitude
