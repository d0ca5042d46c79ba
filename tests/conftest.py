import sys
from pathlib import Path
from typing import Tuple

import numpy as np
import pytest

# Add src to sys.path so we can import kitbash
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())


def make_solid(width: int, height: int, color: Tuple[int, int, int, int]) -> np.ndarray:
    """Return a (height, width, 4) uint8 image filled with one colour."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[...] = color
    return pixels


RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


@pytest.fixture
def solid():
    """Factory for solid-colour RGBA arrays."""
    return make_solid


@pytest.fixture
def png_bytes():
    """Factory for encoded PNG bytes of a solid-colour image."""
    from io import BytesIO

    from PIL import Image

    def _make(width: int, height: int, color: Tuple[int, int, int, int]) -> bytes:
        buffer = BytesIO()
        Image.fromarray(make_solid(width, height, color)).save(buffer, format="PNG")
        return buffer.getvalue()

    return _make
