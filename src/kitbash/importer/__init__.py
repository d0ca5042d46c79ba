"""Asynchronous image import."""

from kitbash.importer.decoder import DecodedImport, ImportFailure, ImportQueue

__all__ = ["DecodedImport", "ImportFailure", "ImportQueue"]
