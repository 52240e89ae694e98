"""
Server Factory Module

Builds uvicorn servers for an ASGI application, either plaintext or
TLS-terminated depending on the SSL configuration.

Usage:
    from siteserver.core.server import create_server

    server = create_server(app, config.ssl, host="0.0.0.0", port=443)
    await server.serve()
"""

import logging

import uvicorn
from starlette.types import ASGIApp

from .config import SslConfig
from .errors import StartupError


logger = logging.getLogger(__name__)


def create_server(
    app: ASGIApp,
    ssl_config: SslConfig,
    host: str = "0.0.0.0",
    port: int = 80
) -> uvicorn.Server:
    """
    Create a uvicorn server for the application.

    The configuration is loaded immediately, so TLS certificate and key
    are read here rather than when the server starts serving.

    Args:
        app: ASGI application to serve
        ssl_config: TLS settings
        host: Bind address
        port: Port to listen on

    Returns:
        Configured uvicorn.Server

    Raises:
        StartupError: If the TLS certificate or key cannot be loaded
    """
    options = {
        "host": host,
        "port": port,
        "log_config": None,
        "access_log": False,
    }

    if ssl_config.enabled:
        options["ssl_certfile"] = ssl_config.cert
        options["ssl_keyfile"] = ssl_config.key

    config = uvicorn.Config(app, **options)

    try:
        config.load()
    except OSError as e:
        raise StartupError(
            f"Failed to load TLS certificate/key: {e}",
            path=f"{ssl_config.cert}, {ssl_config.key}"
        )

    scheme = "https" if ssl_config.enabled else "http"
    logger.debug(f"Created {scheme} server for {host}:{port}")

    return uvicorn.Server(config)
