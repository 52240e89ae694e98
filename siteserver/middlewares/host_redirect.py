"""
Host Redirect Middleware

Redirects every request that was not addressed to the canonical hostname
to the same path and query on that hostname, keeping the original scheme.

Usage:
    from siteserver.middlewares.host_redirect import HostRedirectMiddleware

    app.add_middleware(HostRedirectMiddleware, hostname="example.com")
"""

import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from ..utils.request_url import original_url, request_hostname


logger = logging.getLogger(__name__)


class HostRedirectMiddleware(BaseHTTPMiddleware):
    """
    Canonical hostname middleware.

    Hostnames are compared case-sensitively and without the port.

    Attributes:
        hostname: The canonical hostname
    """

    def __init__(self, app: ASGIApp, hostname: str):
        super().__init__(app)
        self.hostname = hostname

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Redirect to the canonical hostname or pass the request on."""
        if request_hostname(request) == self.hostname:
            return await call_next(request)

        location = f"{request.url.scheme}://{self.hostname}{original_url(request)}"
        logger.debug(
            f"Redirecting {request.headers.get('host')!r} to {location}",
            extra={
                "client": request.client.host if request.client else None,
                "url": original_url(request)
            }
        )

        return RedirectResponse(location, status_code=302)
