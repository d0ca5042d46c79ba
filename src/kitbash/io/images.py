"""Image decoding and PNG encoding."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import numpy as np
from PIL import Image

from kitbash.errors import DecodeError


def _image_to_rgba(image: Image.Image) -> np.ndarray:
    """Convert a PIL image to a straight-alpha RGBA uint8 array."""

    return np.asarray(image.convert("RGBA"), dtype=np.uint8).copy()


def decode_image(data: bytes, name: str = "<bytes>") -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, WebP, ...) into RGBA pixels."""

    try:
        with Image.open(BytesIO(data)) as image:
            return _image_to_rgba(image)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(name, str(exc) or type(exc).__name__) from exc


def image_from_buffer(width: int, height: int, pixels: bytes, name: str = "<buffer>") -> np.ndarray:
    """Wrap an already-decoded RGBA byte buffer of ``width*height*4`` bytes."""

    expected = width * height * 4
    if width <= 0 or height <= 0 or len(pixels) != expected:
        raise DecodeError(name, f"expected {expected} bytes for {width}x{height} RGBA, got {len(pixels)}")
    return np.frombuffer(bytes(pixels), dtype=np.uint8).reshape(height, width, 4).copy()


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode an RGBA uint8 array as PNG bytes."""

    buffer = BytesIO()
    Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(buffer, format="PNG")
    return buffer.getvalue()


def load_image_file(path: Path) -> Tuple[str, np.ndarray]:
    """Read and decode an image file; the display name is the file name."""

    return path.name, decode_image(Path(path).read_bytes(), path.name)


def iter_image_paths(paths: Iterable[Path], extensions: Sequence[str]) -> List[Path]:
    """Expand directories to their image files, sorted, keeping file arguments as given."""

    allowed = {ext.lower() for ext in extensions}
    resolved: List[Path] = []
    for path in paths:
        if path.is_dir():
            resolved.extend(
                child for child in sorted(path.iterdir()) if child.suffix.lower() in allowed
            )
        else:
            resolved.append(path)
    return resolved
