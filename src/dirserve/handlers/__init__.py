"""
=============================================================================
CONTENT HANDLERS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ Module        │ Job                                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │ resolver.py   │ Decoded path → canonical path inside the root,     │
    │               │ or PathForbidden (403) / PathNotFound (404)         │
    ├─────────────────────────────────────────────────────────────────────┤
    │ static.py     │ Canonical path → listing page, file bytes, or 404  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .resolver import (
    ServerRoot,
    ResolvedPath,
    PathResolver,
    ResolveError,
    PathNotFound,
    PathForbidden,
    is_contained,
)
from .static import (
    StaticContentHandler,
    FileKind,
    DirEntryView,
    list_directory,
    render_listing,
    LARGE_FILE_THRESHOLD,
    CHUNK_SIZE,
)

__all__ = [
    "ServerRoot",
    "ResolvedPath",
    "PathResolver",
    "ResolveError",
    "PathNotFound",
    "PathForbidden",
    "is_contained",
    "StaticContentHandler",
    "FileKind",
    "DirEntryView",
    "list_directory",
    "render_listing",
    "LARGE_FILE_THRESHOLD",
    "CHUNK_SIZE",
]
