"""Route library services."""

from .transfer import build_export_document, import_routes, parse_import_document, route_timestamp, write_backup

__all__ = [
    "build_export_document",
    "write_backup",
    "import_routes",
    "parse_import_document",
    "route_timestamp",
]
