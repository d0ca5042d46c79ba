"""Exception types raised by the package."""

from __future__ import annotations


class KitbashError(Exception):
    """Base class for package errors."""


class DecodeError(KitbashError, ValueError):
    """Image bytes could not be decoded into an RGBA pixel grid."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Failed to decode image '{name}': {reason}")
        self.name = name
        self.reason = reason
