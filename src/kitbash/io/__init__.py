"""Image I/O utilities."""

from kitbash.io.images import (
    decode_image,
    encode_png,
    image_from_buffer,
    iter_image_paths,
    load_image_file,
)

__all__ = [
    "decode_image",
    "encode_png",
    "image_from_buffer",
    "iter_image_paths",
    "load_image_file",
]
