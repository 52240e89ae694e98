"""
HTTPS Redirect Middleware

Answers every request with a redirect to the HTTPS form of the same path
on the configured hostname. Meant to be the only handler of the plaintext
listener that runs next to a TLS server.
"""

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse
from starlette.types import ASGIApp

from ..utils.request_url import original_url


class HttpsRedirectMiddleware(BaseHTTPMiddleware):
    """Redirect every request to https://<hostname><path>."""

    def __init__(self, app: ASGIApp, hostname: str):
        super().__init__(app)
        self.hostname = hostname

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> RedirectResponse:
        return RedirectResponse(
            f"https://{self.hostname}{original_url(request)}",
            status_code=302
        )
