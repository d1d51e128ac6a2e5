"""
=============================================================================
STATIC CONTENT HANDLER
=============================================================================

Given a resolved path, decides what to send: a directory listing, the
file's bytes, or a 404.

=============================================================================
CLASSIFICATION
=============================================================================

    os.stat(path)
        │
        ├── regular file   → FILE        → file transfer
        ├── directory      → DIRECTORY   → HTML listing
        └── anything else  → NOT_FOUND   → 404
            (FIFO, socket, device, or the path vanished since resolve)

Every request stats the filesystem again. Nothing is cached.

=============================================================================
FILE TRANSFER: TWO STRATEGIES, ONE RESULT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SMALL FILE  (< 1 MiB)                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │   content = f.read()                  one allocation of file size   │
    │   sendall(head + content)             one write                     │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    LARGE FILE  (>= 1 MiB)                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │   sendall(head)                       Content-Length from fstat()   │
    │   while remaining:                                                   │
    │       chunk = f.read(1 MiB)           peak memory: one chunk         │
    │       sendall(chunk)                                                 │
    └─────────────────────────────────────────────────────────────────────┘

The client cannot tell them apart: same headers, same bytes. The
choice only trades memory for one fewer syscall on small files.

A large file that shrinks while it is being sent is truncated (the
client sees fewer bytes than Content-Length). One that grows is capped
at the announced length.

=============================================================================
DIRECTORY LISTING
=============================================================================

    Index of /docs
    ─────────────────────────────────────────
    .. (Parent Directory)                       ← omitted for "/" only
    guides                             <DIR>
    notes.txt                       42 bytes

Links are built from the path the client REQUESTED, not the resolved
one, so a listing reached through a symlinked directory keeps linking
through that symlink:

    requested "/docs"  + entry "notes.txt"  → href "/docs/notes.txt"
    requested "/docs/" + entry "notes.txt"  → href "/docs/notes.txt"

Hrefs are percent-encoded and names HTML-escaped, so a file called
"a b#1.txt" links to "/a%20b%231.txt", which decodes back to the same
name when requested.

=============================================================================
"""

import os
import stat
import html
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import BinaryIO, List, Optional
from urllib.parse import quote

from ..core.connection import Connection
from ..http.response import ResponseBuilder, not_found
from ..http.status_codes import HTTPStatus
from .resolver import ResolvedPath


logger = logging.getLogger(__name__)


LARGE_FILE_THRESHOLD = 1024 * 1024   # Files this size or bigger are streamed
CHUNK_SIZE = 1024 * 1024             # Bytes per streamed chunk


class FileKind(Enum):
    """What a resolved path turned out to be."""
    FILE = "file"
    DIRECTORY = "directory"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class DirEntryView:
    """
    One child of a listed directory.

    Attributes:
        name: Entry name (no path).
        is_dir: True for directories.
        size: Size in bytes for files, 0 for directories.
    """
    name: str
    is_dir: bool
    size: int


LISTING_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif; margin: 2em; background-color: #f9f9f9; color: #333; }
    h1 { color: #111; }
    ul { list-style-type: none; padding: 0; }
    li { display: flex; justify-content: space-between; padding: 10px; border-bottom: 1px solid #eee; }
    li:hover { background-color: #f0f0f0; }
    a { text-decoration: none; color: #007aff; }
    .dir a { font-weight: bold; }
    .size { color: #888; font-size: 0.9em; text-align: right; }
"""


class StaticContentHandler:
    """
    Produces the response for a resolved path and writes it.

    =========================================================================
    USAGE
    =========================================================================

        content = StaticContentHandler()

        kind = content.classify(resolved.path)
        status = content.respond(resolved, kind, conn)

    The thresholds are constructor arguments so tests can exercise the
    streaming path without writing megabytes of data.

    =========================================================================
    """

    def __init__(
        self,
        large_file_threshold: int = LARGE_FILE_THRESHOLD,
        chunk_size: int = CHUNK_SIZE,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.large_file_threshold = large_file_threshold
        self.chunk_size = chunk_size

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    @staticmethod
    def classify(path: Path) -> FileKind:
        """Classify a path with a fresh stat() call."""
        try:
            mode = os.stat(path).st_mode
        except OSError:
            return FileKind.NOT_FOUND

        if stat.S_ISREG(mode):
            return FileKind.FILE
        if stat.S_ISDIR(mode):
            return FileKind.DIRECTORY
        return FileKind.NOT_FOUND

    def respond(self, resolved: ResolvedPath, kind: FileKind, conn: Connection) -> HTTPStatus:
        """
        Write the response for a classified path.

        Returns:
            The status of the response that was written (or attempted,
            when the client went away mid-write).
        """
        if kind is FileKind.DIRECTORY:
            return self.send_listing(resolved, conn)
        if kind is FileKind.FILE:
            return self.send_file(resolved.path, conn)

        conn.send_response(not_found().to_bytes())
        return HTTPStatus.NOT_FOUND

    # =========================================================================
    # DIRECTORY LISTING
    # =========================================================================

    def send_listing(self, resolved: ResolvedPath, conn: Connection) -> HTTPStatus:
        """Render the listing page for a directory and send it."""
        try:
            entries = list_directory(resolved.path)
        except (FileNotFoundError, NotADirectoryError):
            # Vanished (or replaced) between classify and scandir
            logger.info(f"[{conn.id}] Directory disappeared: {resolved.path}")
            conn.send_response(not_found().to_bytes())
            return HTTPStatus.NOT_FOUND

        page = render_listing(resolved.requested, entries)
        response = ResponseBuilder().html(page).build()
        conn.send_response(response.to_bytes())
        return HTTPStatus.OK

    # =========================================================================
    # FILE TRANSFER
    # =========================================================================

    def send_file(self, path: Path, conn: Connection) -> HTTPStatus:
        """
        Send a regular file, whole or chunked depending on its size.

        Failures before the head is written produce a 404. Failures after
        it truncate the response.
        """
        try:
            f = open(path, "rb")
        except OSError as e:
            logger.warning(f"[{conn.id}] Cannot open {path}: {e}")
            conn.send_response(not_found().to_bytes())
            return HTTPStatus.NOT_FOUND

        with f:
            try:
                size = os.fstat(f.fileno()).st_size
                if size < self.large_file_threshold:
                    content = f.read()
                else:
                    content = None
            except OSError as e:
                logger.warning(f"[{conn.id}] Cannot read {path}: {e}")
                conn.send_response(not_found().to_bytes())
                return HTTPStatus.NOT_FOUND

            if content is not None:
                self._send_whole(content, conn)
            else:
                self._send_chunked(f, size, conn, path)

        return HTTPStatus.OK

    @staticmethod
    def _send_whole(content: bytes, conn: Connection) -> bool:
        """Head and body in one write."""
        response = ResponseBuilder().octet_stream(content).build()
        return conn.send_response(response.to_bytes())

    def _send_chunked(self, f: BinaryIO, size: int, conn: Connection, path: Path) -> bool:
        """Head first, then at most `size` bytes in chunk_size pieces."""
        response = (ResponseBuilder()
            .octet_stream()
            .content_length(size)
            .build())

        if not conn.send_response(response.head_bytes()):
            return False

        remaining = size
        while remaining > 0:
            try:
                chunk = f.read(min(self.chunk_size, remaining))
            except OSError as e:
                logger.warning(f"[{conn.id}] Read failed mid-transfer of {path}: {e}")
                return False

            if not chunk:
                logger.warning(
                    f"[{conn.id}] {path} shrank during transfer, "
                    f"{remaining} of {size} bytes not sent"
                )
                return False

            if not conn.send_response(chunk):
                return False
            remaining -= len(chunk)

        return True


# =============================================================================
# LISTING HELPERS
# =============================================================================

def list_directory(path: Path) -> List[DirEntryView]:
    """
    Enumerate the immediate children of a directory.

    Only regular files and directories with UTF-8 names are listed
    (symlinks are not followed). Entries are sorted by name.

    Raises:
        FileNotFoundError / NotADirectoryError: The directory is gone.
        Any other OSError is logged and yields a partial (or empty) list.
    """
    entries: List[DirEntryView] = []
    try:
        with os.scandir(path) as it:
            for entry in it:
                view = _entry_view(entry)
                if view is not None:
                    entries.append(view)
    except (FileNotFoundError, NotADirectoryError):
        raise
    except OSError as e:
        logger.warning(f"Error listing {path}: {e}")

    entries.sort(key=lambda e: e.name)
    return entries


def _entry_view(entry: os.DirEntry) -> Optional[DirEntryView]:
    # Names that are not valid UTF-8 come back surrogate-escaped and could
    # not be linked or requested, so they are left out
    try:
        entry.name.encode("utf-8")
    except UnicodeEncodeError:
        logger.debug(f"Skipping non-UTF-8 name {entry.name!r} in {entry.path!r}")
        return None

    try:
        if entry.is_dir(follow_symlinks=False):
            return DirEntryView(name=entry.name, is_dir=True, size=0)
        if entry.is_file(follow_symlinks=False):
            size = entry.stat(follow_symlinks=False).st_size
            return DirEntryView(name=entry.name, is_dir=False, size=size)
    except OSError as e:
        logger.debug(f"Skipping {entry.path}: {e}")
    return None


def join_link(requested: str, name: str) -> str:
    """Join the requested path and an entry name with exactly one '/'."""
    if requested.endswith("/"):
        return f"{requested}{name}"
    return f"{requested}/{name}"


def parent_link(requested: str) -> str:
    """POSIX parent of the requested path ("/" for top-level entries)."""
    parent = str(PurePosixPath(requested).parent)
    return "/" if parent == "." else parent


def render_listing(requested: str, entries: List[DirEntryView]) -> str:
    """
    Build the HTML listing page.

    Args:
        requested: Decoded path the client asked for.
        entries: Children to list, in display order.
    """
    title = html.escape(requested)
    parts = [
        "<!DOCTYPE html><html><head><title>File List</title>",
        f"<style>{LISTING_STYLE}</style></head><body>",
        f"<h1>Index of {title}</h1><ul>",
    ]

    if requested != "/":
        parts.append(
            f"<li class='dir'><a href='{quote(parent_link(requested))}'>"
            f".. (Parent Directory)</a><span class='size'></span></li>"
        )

    for entry in entries:
        href = quote(join_link(requested, entry.name))
        css_class = "dir" if entry.is_dir else "file"
        size_info = "&lt;DIR&gt;" if entry.is_dir else f"{entry.size} bytes"
        parts.append(
            f"<li class='{css_class}'><a href='{href}'>{html.escape(entry.name)}</a>"
            f"<span class='size'>{size_info}</span></li>"
        )

    parts.append("</ul></body></html>")
    return "".join(parts)
