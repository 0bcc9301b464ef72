"""
=============================================================================
STATIC FILE MIDDLEWARE
=============================================================================

Serves files from a directory, mounted under a prefix:

    app.use("/assets", static_files("./public"))
    app.static("/assets", "./public")            # same thing

    GET /assets/css/site.css  →  ./public/css/site.css

The middleware sees req.relative_path ("/css/site.css"), i.e. the path
with its mount prefix already stripped by the dispatch pipeline.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    GET /assets/../../../etc/passwd

    1. Resolve the full path (follow .. and symlinks)
    2. Check it is still inside root_dir
    3. If not → 403 Forbidden

    PYTHON PROTECTION:
        full_path = (root_dir / user_input).resolve()
        full_path.relative_to(root_dir)  # Raises if outside root!

=============================================================================
CACHING
=============================================================================

    ETag: "<mtime>-<size>"           fingerprint of this file version
    If-None-Match: "<same>"     →    304 Not Modified, no body
    Cache-Control: public, max-age=<cache_max_age>
    Last-Modified: <HTTP-date>

=============================================================================
FALLTHROUGH
=============================================================================

    fallthrough=True (default)   missing file → next()
                                 (later routes/middleware may answer)
    fallthrough=False            missing file → next(HTTPError(404))

Non-GET/HEAD requests always fall through untouched.

=============================================================================
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

from ..errors import HTTPError
from ..http.cookies import format_http_date
from ..http.mime_types import get_content_type
from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import HTTPStatus
from .base import Middleware, Next


logger = logging.getLogger(__name__)


class StaticFiles(Middleware):
    """
    Middleware serving files below ``root_dir``.

    Args:
        root_dir: Directory to serve. All files MUST be inside it.
        index_file: File served for directory requests (None to disable).
        cache_max_age: Cache-Control max-age in seconds.
        fallthrough: Call next() for missing files instead of a 404 error.
    """

    def __init__(
        self,
        root_dir: str,
        index_file: Optional[str] = "index.html",
        cache_max_age: int = 3600,
        fallthrough: bool = True,
    ):
        # Resolve to absolute path for the traversal check
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.cache_max_age = cache_max_age
        self.fallthrough = fallthrough

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    @property
    def name(self) -> str:
        return f"static_files({self.root_dir})"

    def __call__(self, req: Request, res: Response, next: Next) -> None:
        if req.method not in ("GET", "HEAD"):
            next()
            return

        file_path = unquote(req.relative_path).lstrip("/")
        if "\x00" in file_path:
            next(HTTPError(HTTPStatus.BAD_REQUEST))
            return

        full_path = (self.root_dir / file_path).resolve()

        # ─────────────────────────────────────────────────────────────────
        # SECURITY: PATH TRAVERSAL CHECK
        # ─────────────────────────────────────────────────────────────────
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning("Path traversal attempt: %s", req.path)
            next(HTTPError(HTTPStatus.FORBIDDEN))
            return

        if full_path.is_dir() and self.index_file:
            full_path = full_path / self.index_file

        if not full_path.is_file():
            if self.fallthrough:
                next()
            else:
                next(HTTPError(HTTPStatus.NOT_FOUND))
            return

        self._serve_file(full_path, req, res, next)

    def _serve_file(self, path: Path, req: Request, res: Response, next: Next) -> None:
        """
        Serve a single file with caching headers.

        ETag from mtime and size; a matching If-None-Match gets a 304.
        """
        try:
            stat = path.stat()
            etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'

            if req.get("if-none-match") == etag:
                res.status(HTTPStatus.NOT_MODIFIED).set("ETag", etag).end()
                return

            content = b"" if req.method == "HEAD" else path.read_bytes()
        except PermissionError:
            next(HTTPError(HTTPStatus.FORBIDDEN, "Permission denied"))
            return

        mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        res.set({
            "Content-Type": get_content_type(str(path)),
            "Content-Length": str(stat.st_size),
            "ETag": etag,
            "Last-Modified": format_http_date(mtime),
            "Cache-Control": f"public, max-age={self.cache_max_age}",
        })
        res.end(content)


def static_files(
    root_dir: str,
    index_file: Optional[str] = "index.html",
    cache_max_age: int = 3600,
    fallthrough: bool = True,
) -> StaticFiles:
    """
    Create static file middleware.

        app.use("/static", static_files("/var/www/static", cache_max_age=86400))
    """
    return StaticFiles(
        root_dir,
        index_file=index_file,
        cache_max_age=cache_max_age,
        fallthrough=fallthrough,
    )
