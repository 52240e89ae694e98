"""
Static File Service Module

Serves the public directory through Starlette's StaticFiles with in-memory
caches in front of the filesystem.

Features:
    - index.html fallback for directories (StaticFiles html mode)
    - Conditional GET via ETag / Last-Modified (304 responses)
    - Stat cache: path -> (full path, stat result), bounded by entry count
    - Content cache: path -> bytes, bounded by total byte size
    - Both caches evict least-recently-used entries beyond their ceiling and
      expire entries after the cache duration regardless of use
    - Cache-Control: public, max-age=<cache duration> on file responses

Usage:
    from siteserver.services.static_service import CachedStaticFiles

    app.mount("/", CachedStaticFiles(directory="public", cache_duration_ms=3600000))
"""

import os
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import anyio
from cachetools import TTLCache
from starlette.datastructures import Headers
from starlette.responses import FileResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope


logger = logging.getLogger(__name__)


DEFAULT_STAT_MAX_ENTRIES = 1000
DEFAULT_CONTENT_MAX_BYTES = 4 * 1000 * 1000 * 1000  # 4GB

LookupResult = Tuple[str, Optional[os.stat_result]]


@dataclass(frozen=True)
class StaticCacheLimits:
    """
    Cache ceilings for the static file service.

    Attributes:
        stat_max_entries: Maximum number of cached stat results
        content_max_bytes: Maximum total size of cached file contents
    """
    stat_max_entries: int = DEFAULT_STAT_MAX_ENTRIES
    content_max_bytes: int = DEFAULT_CONTENT_MAX_BYTES


class CachedStaticFiles(StaticFiles):
    """
    StaticFiles with bounded, expiring stat and content caches.

    lookup_path runs in a worker thread, so cache access is guarded by a lock.

    Attributes:
        cache_control: Cache-Control header value for file responses
        stat_cache: Cached lookup results keyed by request path
        content_cache: Cached file bytes keyed by full path
    """

    def __init__(
        self,
        *,
        directory: str,
        cache_duration_ms: int,
        limits: Optional[StaticCacheLimits] = None,
        timer: Optional[Callable[[], float]] = None,
        **kwargs
    ):
        """
        Initialize the static file service.

        Args:
            directory: Directory to serve
            cache_duration_ms: Time-to-live for cache entries in milliseconds
            limits: Cache ceilings (default: 1000 stats, 4GB of content)
            timer: Clock for cache expiry (default: time.monotonic)
            **kwargs: Passed through to StaticFiles (html, check_dir, ...)
        """
        kwargs.setdefault("html", True)
        super().__init__(directory=directory, **kwargs)

        self.limits = limits or StaticCacheLimits()
        ttl = cache_duration_ms / 1000
        self.cache_control = f"public, max-age={cache_duration_ms // 1000}"

        timer_kwargs = {"timer": timer} if timer else {}
        self.stat_cache: TTLCache = TTLCache(
            maxsize=self.limits.stat_max_entries,
            ttl=ttl,
            **timer_kwargs
        )
        self.content_cache: TTLCache = TTLCache(
            maxsize=self.limits.content_max_bytes,
            ttl=ttl,
            getsizeof=len,
            **timer_kwargs
        )
        self._lock = threading.Lock()

        logger.info(
            f"Serving '{directory}' (cache ttl {ttl:.0f}s, "
            f"{self.limits.stat_max_entries} stats, "
            f"{self.limits.content_max_bytes} content bytes)"
        )

    def lookup_path(self, path: str) -> LookupResult:
        """Resolve a request path, consulting the stat cache first."""
        with self._lock:
            cached = self.stat_cache.get(path)

        if cached is not None:
            return cached

        full_path, stat_result = super().lookup_path(path)

        # Misses are not cached so new files show up immediately
        if stat_result is not None:
            with self._lock:
                self.stat_cache[path] = (full_path, stat_result)

        return full_path, stat_result

    async def get_response(self, path: str, scope: Scope) -> Response:
        """Serve a file, from the content cache when possible."""
        response = await super().get_response(path, scope)

        if response.status_code not in (200, 304):
            return response

        if self._can_serve_from_memory(response, scope):
            content = await anyio.to_thread.run_sync(
                self._load_content,
                response.path,
                response.stat_result
            )
            if content is not None:
                headers = {
                    key: value for key, value in response.headers.items()
                    if key != "content-length"
                }
                response = Response(
                    content,
                    status_code=response.status_code,
                    headers=headers
                )

        response.headers["Cache-Control"] = self.cache_control
        return response

    def _can_serve_from_memory(self, response: Response, scope: Scope) -> bool:
        # HEAD and range requests keep FileResponse semantics
        if not isinstance(response, FileResponse) or response.status_code != 200:
            return False
        if scope["method"] != "GET":
            return False
        return "range" not in Headers(scope=scope)

    def _load_content(
        self,
        full_path: str,
        stat_result: Optional[os.stat_result]
    ) -> Optional[bytes]:
        """
        Return file bytes from the cache, reading and caching on a miss.

        Returns:
            File content, or None if the file is too large to cache
        """
        with self._lock:
            content = self.content_cache.get(full_path)

        if content is not None:
            return content

        size = stat_result.st_size if stat_result else os.path.getsize(full_path)
        if size > self.content_cache.maxsize:
            return None

        with open(full_path, "rb") as f:
            content = f.read()

        # File may have grown since the stat
        if len(content) <= self.content_cache.maxsize:
            with self._lock:
                self.content_cache[full_path] = content

        return content

    def clear_caches(self) -> None:
        """Drop every cached stat result and file content."""
        with self._lock:
            self.stat_cache.clear()
            self.content_cache.clear()
