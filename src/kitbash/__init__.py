"""Sprite-part tree model and pixel-perfect compositor."""

__version__ = "0.1.0"
