"""
Basic Authentication Middleware

Validates HTTP Basic credentials from the Authorization header.
Rejects unauthorized requests with a 401 challenge so browsers prompt
for a username and password.
"""

import base64
import binascii
import logging
import secrets
from typing import Callable, Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp


logger = logging.getLogger(__name__)


DEFAULT_REALM = "siteserver"


class BasicAuthMiddleware(BaseHTTPMiddleware):
    """
    HTTP Basic authentication middleware.

    Every request must carry credentials matching one of the configured
    users. Missing or wrong credentials get a 401 with a
    WWW-Authenticate challenge.
    """

    def __init__(
        self,
        app: ASGIApp,
        users: Dict[str, str],
        realm: str = DEFAULT_REALM
    ):
        """
        Initialize auth middleware.

        Args:
            app: ASGI application
            users: Mapping of username to password
            realm: Realm sent in the challenge header
        """
        super().__init__(app)
        self.users = dict(users)
        self.realm = realm

        logger.info(
            f"Basic authentication ENABLED for {len(self.users)} user(s)")

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Process request and validate credentials."""
        credentials = self._parse_credentials(request)

        if credentials is None or not self._is_authorized(*credentials):
            logger.debug(
                "Rejected request without valid credentials",
                extra={
                    "client": request.client.host if request.client else None,
                    "url": request.url.path
                }
            )
            return self._unauthorized_response()

        return await call_next(request)

    def _parse_credentials(self, request: Request) -> Optional[Tuple[str, str]]:
        """
        Extract username and password from the Authorization header.

        Returns:
            (username, password) or None if absent or malformed
        """
        auth_header = request.headers.get("Authorization", "")
        scheme, _, encoded = auth_header.partition(" ")

        if scheme.lower() != "basic" or not encoded:
            return None

        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None

        username, separator, password = decoded.partition(":")
        if not separator:
            return None

        return username, password

    def _is_authorized(self, username: str, password: str) -> bool:
        """Compare credentials in constant time."""
        authorized = False

        for user, expected in self.users.items():
            user_ok = secrets.compare_digest(username.encode(), user.encode())
            password_ok = secrets.compare_digest(password.encode(), expected.encode())
            authorized |= user_ok and password_ok

        return authorized

    def _unauthorized_response(self) -> PlainTextResponse:
        """Return 401 Unauthorized response with a Basic challenge."""
        return PlainTextResponse(
            "Unauthorized",
            status_code=401,
            headers={"WWW-Authenticate": f'Basic realm="{self.realm}"'}
        )
