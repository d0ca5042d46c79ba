"""Configuration schema and loading utilities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

MIN_CANVAS_SIZE = 16
MAX_CANVAS_SIZE = 1024
MIN_EXPORT_SCALE = 1
MAX_EXPORT_SCALE = 10

ColorSpec = Union[str, Sequence[int]]


@dataclass(frozen=True)
class KitbashConfig:
    """Canvas and export settings for a composition."""

    canvas_width: int = 64
    canvas_height: int = 64
    background: Tuple[int, int, int, int] = (0, 0, 0, 0)
    export_scale: int = 1
    image_extensions: List[str] = field(default_factory=lambda: [".png", ".jpg", ".jpeg", ".webp"])
    archive_name: str = "kitbash_layers.zip"

    @property
    def canvas_size(self) -> Tuple[int, int]:
        return self.canvas_width, self.canvas_height

    @property
    def export_size(self) -> Tuple[int, int]:
        return self.canvas_width * self.export_scale, self.canvas_height * self.export_scale


def parse_color(value: ColorSpec) -> Tuple[int, int, int, int]:
    """Parse ``#RRGGBB``, ``#RRGGBBAA`` or a 3/4 element sequence into RGBA."""

    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) not in (6, 8):
            raise ValueError(f"Colour '{value}' must be #RRGGBB or #RRGGBBAA.")
        try:
            channels = [int(text[i : i + 2], 16) for i in range(0, len(text), 2)]
        except ValueError:
            raise ValueError(f"Colour '{value}' is not valid hex.") from None
    else:
        channels = [int(channel) for channel in value]
        if len(channels) not in (3, 4):
            raise ValueError(f"Colour {list(value)} must have 3 or 4 channels.")
    if len(channels) == 3:
        channels.append(255)
    if any(channel < 0 or channel > 255 for channel in channels):
        raise ValueError(f"Colour channels must be within 0..255, got {channels}.")
    return channels[0], channels[1], channels[2], channels[3]


def validate_config(config: KitbashConfig) -> KitbashConfig:
    """Raise ValueError if the canvas or export settings are out of range."""

    for label, size in (("canvas_width", config.canvas_width), ("canvas_height", config.canvas_height)):
        if not MIN_CANVAS_SIZE <= size <= MAX_CANVAS_SIZE:
            raise ValueError(f"{label} must be within {MIN_CANVAS_SIZE}..{MAX_CANVAS_SIZE}, got {size}.")
    if not MIN_EXPORT_SCALE <= config.export_scale <= MAX_EXPORT_SCALE:
        raise ValueError(
            f"export_scale must be within {MIN_EXPORT_SCALE}..{MAX_EXPORT_SCALE}, got {config.export_scale}."
        )
    return config


def _merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge overrides into base without mutating either input."""

    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_dict(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[Path] = None) -> KitbashConfig:
    """Load configuration from JSON over the defaults."""

    base = {
        "canvas_width": 64,
        "canvas_height": 64,
        "background": [0, 0, 0, 0],
        "export_scale": 1,
        "image_extensions": [".png", ".jpg", ".jpeg", ".webp"],
        "archive_name": "kitbash_layers.zip",
    }

    if path:
        raw = json.loads(Path(path).read_text())
        merged = _merge_dict(base, raw)
    else:
        merged = base

    config = KitbashConfig(
        canvas_width=int(merged["canvas_width"]),
        canvas_height=int(merged["canvas_height"]),
        background=parse_color(merged["background"]),
        export_scale=int(merged["export_scale"]),
        image_extensions=[str(ext).lower() for ext in merged["image_extensions"]],
        archive_name=str(merged["archive_name"]),
    )
    return validate_config(config)
