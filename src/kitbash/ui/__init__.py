"""HTTP surface."""

from kitbash.ui.app import create_app

__all__ = ["create_app"]
