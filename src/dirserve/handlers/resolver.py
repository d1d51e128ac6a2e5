"""
=============================================================================
PATH RESOLVER
=============================================================================

Turns the path a client asked for into a filesystem path that is
PROVEN to be inside the served root, or rejects it.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    ATTACK ATTEMPT:
    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /../../etc/passwd HTTP/1.1                                     │
    │                                                                      │
    │  Naive join:   /srv/files/../../etc/passwd                          │
    │  Real target:  /etc/passwd              (SECURITY BREACH!)          │
    └─────────────────────────────────────────────────────────────────────┘

    Symlinks do the same thing without any ".." in the URL:

        /srv/files/innocent -> /etc
        GET /innocent/passwd

=============================================================================
THE TWO-STAGE CHECK
=============================================================================

    raw path "/docs/../a.txt"
         │
         ▼
    1. Strip leading "/"         "docs/../a.txt"
         │                       (a leading "/" means the served root,
         │                        never the filesystem root)
         ▼
    2. Join onto the root        /srv/files/docs/../a.txt
         │
         ▼
    3. CANONICALIZE              Path.resolve(strict=True)
         │                       - resolves "..", ".", symlinks
         │                       - path must exist
         │                       └── fails? → PathNotFound (404)
         ▼
    4. CONTAINMENT               canonical.relative_to(root)
         │                       - compares path COMPONENTS
         │                       └── fails? → PathForbidden (403)
         ▼
    ResolvedPath(/srv/files/a.txt)

Why components and not startswith()?

    root            /srv/files
    candidate       /srv/files-private/secret.txt

    "/srv/files-private/...".startswith("/srv/files")   → True   WRONG
    Path(...).relative_to(Path("/srv/files"))           → ValueError

Containment is checked only on the canonical path. Before step 3 the
path may still contain ".." or symlinks, so no check on it means
anything.

=============================================================================
TIME OF CHECK VS TIME OF USE
=============================================================================

A ResolvedPath is only valid for the request that produced it. The
filesystem can change between resolve() and the moment the file is
opened (a directory swapped for a symlink, for example). That window is
an accepted risk for this server; results are never cached across
requests, so the window is never wider than one request.

=============================================================================
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class ResolveError(Exception):
    """
    Base class for path resolution failures.

    status_code is the HTTP status the client receives.
    """

    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, requested: str, message: str = ""):
        self.requested = requested
        super().__init__(message or f"{self.status_code.phrase}: {requested}")


class PathNotFound(ResolveError):
    """The path does not exist or cannot be canonicalized."""

    status_code = HTTPStatus.NOT_FOUND


class PathForbidden(ResolveError):
    """The canonical path lies outside the served root."""

    status_code = HTTPStatus.FORBIDDEN


@dataclass(frozen=True)
class ServerRoot:
    """
    The directory boundary nothing may be served outside of.

    Built once at startup with establish() and shared read-only by
    every worker thread; frozen, so no locking is needed.
    """

    path: Path

    @classmethod
    def establish(cls, directory: Union[str, Path]) -> "ServerRoot":
        """
        Canonicalize and validate the served directory.

        Raises:
            ValueError: If the directory does not exist or is not a directory.
        """
        try:
            canonical = Path(directory).resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise ValueError(f"Served root does not exist: {directory}") from e

        if not canonical.is_dir():
            raise ValueError(f"Served root is not a directory: {directory}")

        return cls(canonical)

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class ResolvedPath:
    """
    A canonical path proven to be inside the root at resolution time.

    Attributes:
        path: Absolute canonical filesystem path.
        requested: The decoded path the client asked for, used to build
                   links in directory listings.
    """

    path: Path
    requested: str


class PathResolver:
    """
    Resolves client paths against a ServerRoot.

    Stateless apart from the root, so one instance is shared by all
    workers.

        resolver = PathResolver(ServerRoot.establish("/srv/files"))
        resolver.resolve("/a.txt")          # ResolvedPath(/srv/files/a.txt)
        resolver.resolve("/missing")        # raises PathNotFound
        resolver.resolve("/../etc/passwd")  # raises PathForbidden
    """

    def __init__(self, root: ServerRoot):
        self.root = root

    def resolve(self, requested: str) -> ResolvedPath:
        """
        Canonicalize a decoded request path and check containment.

        Args:
            requested: URL-decoded path from the request line.

        Returns:
            The contained, canonical path.

        Raises:
            PathNotFound: If the path cannot be canonicalized.
            PathForbidden: If the canonical path escapes the root.
        """
        # ─────────────────────────────────────────────────────────────────
        # STAGE 1: CANONICALIZE (must exist)
        # ─────────────────────────────────────────────────────────────────
        joined = self.root.path / requested.lstrip("/")

        try:
            canonical = joined.resolve(strict=True)
        except (OSError, RuntimeError, ValueError) as e:
            # OSError: missing, ENOTDIR, EACCES, ELOOP
            # RuntimeError: symlink loop on older interpreters
            # ValueError: embedded NUL byte
            logger.debug(f"Cannot canonicalize {requested!r}: {e}")
            raise PathNotFound(requested) from e

        # ─────────────────────────────────────────────────────────────────
        # STAGE 2: CONTAINMENT (component-wise)
        # ─────────────────────────────────────────────────────────────────
        if not is_contained(canonical, self.root.path):
            logger.warning(f"Path traversal attempt: {requested!r} -> {canonical}")
            raise PathForbidden(requested)

        return ResolvedPath(path=canonical, requested=requested)


def is_contained(candidate: Path, root: Path) -> bool:
    """
    True when candidate is root itself or a descendant of it.

    Compares path components, so /srv/files-private is NOT inside
    /srv/files.
    """
    try:
        candidate.relative_to(root)
    except ValueError:
        return False
    return True
