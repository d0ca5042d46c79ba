"""Export bundles and archives."""

from kitbash.export.bundle import (
    COMPOSITE_ENTRY,
    METADATA_ENTRY,
    archive_bytes,
    build_export,
    part_entry_name,
    write_archive,
)

__all__ = [
    "COMPOSITE_ENTRY",
    "METADATA_ENTRY",
    "archive_bytes",
    "build_export",
    "part_entry_name",
    "write_archive",
]
