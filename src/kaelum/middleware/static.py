"""Static file serving middleware.

Serves files from a directory for matching URL prefixes. Supports
root-level serving (``prefix="/"``) with automatic index file resolution
and an optional custom 404 page.

Falls through to the next handler for non-matching paths and missing
files, so application routes still answer.
"""

import mimetypes
from pathlib import Path

from kaelum.errors import HTTPError
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.middleware.protocol import Next


class StaticFiles:
    """Middleware that serves static files from a directory.

    Security: resolves symlinks and verifies the final path is within the
    configured directory to prevent path traversal.

    Usage::

        # What the ``static`` option installs
        StaticFiles("./public", prefix="/")

        # Under a prefix, with a custom 404 page
        app.set_middleware(StaticFiles(
            directory="./assets",
            prefix="/assets",
            not_found_page="404.html",
        ))
    """

    __slots__ = ("_cache_control", "_directory", "_index", "_not_found_page", "_prefix")

    def __init__(
        self,
        directory: str | Path,
        prefix: str = "/",
        *,
        index: str = "index.html",
        not_found_page: str | None = None,
        cache_control: str = "public, max-age=3600",
    ) -> None:
        self._directory = Path(directory).resolve()
        self._index = index
        self._not_found_page = not_found_page
        self._cache_control = cache_control

        # Root prefix "/" normalizes to "" so every path is a candidate.
        stripped = "/" + prefix.strip("/")
        self._prefix = stripped if stripped != "/" else ""

    @property
    def directory(self) -> Path:
        return self._directory

    async def __call__(self, request: Request, next: Next) -> Response:
        """Serve a static file or fall through."""
        if request.method not in ("GET", "HEAD"):
            return await next(request)

        path = request.path

        if self._prefix:
            if not path.startswith(self._prefix + "/") and path != self._prefix:
                return await next(request)
            relative = path[len(self._prefix) :].lstrip("/")
        else:
            relative = path.lstrip("/")

        file_path = (self._directory / relative).resolve() if relative else self._directory
        if not file_path.is_relative_to(self._directory):
            return Response(body="Forbidden", status=403)

        if file_path.is_dir():
            index_path = file_path / self._index
            if not path.endswith("/") and relative and index_path.is_file():
                return Response(body="", status=301).with_header("Location", path + "/")
            if not index_path.is_file():
                return await self._handle_not_found(next, request)
            file_path = index_path

        if not file_path.is_file():
            return await self._handle_not_found(next, request)

        return self._serve_file(file_path)

    def _serve_file(self, file_path: Path, *, status: int = 200) -> Response:
        content_type, _ = mimetypes.guess_type(str(file_path))
        if content_type is None:
            content_type = "application/octet-stream"
        return Response(
            body=file_path.read_bytes(),
            content_type=content_type,
            status=status,
        ).with_header("Cache-Control", self._cache_control)

    async def _handle_not_found(self, next: Next, request: Request) -> Response:
        """Fall through to the rest of the pipeline; serve the custom 404
        page if nothing there answers either.
        """
        if not self._not_found_page:
            return await next(request)

        error_path = (self._directory / self._not_found_page).resolve()
        if not (error_path.is_relative_to(self._directory) and error_path.is_file()):
            return await next(request)

        try:
            return await next(request)
        except HTTPError as exc:
            if exc.status != 404:
                raise
            return self._serve_file(error_path, status=404)
