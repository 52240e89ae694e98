"""
Server Startup Module

This module wires the applications to their listeners and runs them.

Startup Order:
    1. Read the version from the package manifest
    2. Create the site application and its server (TLS files load here)
    3. If TLS is enabled, create the plaintext HTTPS-redirect server
    4. Log version and credentials
    5. Serve until one of the servers exits, then stop the others

Usage:
    from siteserver.lifecycle.startup import serve

    asyncio.run(serve(config))
"""

import asyncio
import logging
from typing import List, Optional

import uvicorn

from ..core.config import ServerConfig, SslConfig
from ..core.package_info import get_package_info
from ..core.server import create_server
from ..main import create_app, create_redirect_app
from ..services.statistics_service import RequestStatistics


logger = logging.getLogger(__name__)


def build_servers(
    config: ServerConfig,
    statistics: Optional[RequestStatistics] = None
) -> List[uvicorn.Server]:
    """
    Create the main server and, with TLS enabled, the redirect server.

    Args:
        config: Server configuration
        statistics: Optional counters for the statistics middleware

    Returns:
        Servers to run, main server first

    Raises:
        StartupError: If the TLS certificate or key cannot be loaded
    """
    app = create_app(config, statistics=statistics)
    servers = [create_server(app, config.ssl, host=config.host, port=config.port)]

    if config.ssl.enabled:
        redirect_app = create_redirect_app(config.hostname)
        servers.append(
            create_server(
                redirect_app,
                SslConfig(enabled=False),
                host=config.host,
                port=config.redirect_port
            )
        )

    return servers


def log_startup(config: ServerConfig, version: str) -> None:
    """Log the running version and, if enabled, the auth credentials."""
    scheme = "https" if config.ssl.enabled else "http"
    logger.info(
        f"Started server v{version} on port {config.port} "
        f"({scheme}://{config.hostname})"
    )

    if config.ssl.enabled:
        logger.info(
            f"Redirecting http on port {config.redirect_port} to https")

    if config.auth.enabled:
        logger.info(
            f"Basic auth is enabled, use "
            f"{config.auth.username}:{config.auth.password} to authenticate"
        )


async def run_servers(servers: List[uvicorn.Server]) -> None:
    """
    Run servers on the current event loop.

    When any server exits (signal or bind failure) the others are told to
    exit as well. Errors from the server that stopped first are re-raised.
    """
    tasks = [asyncio.create_task(server.serve()) for server in servers]

    done, pending = await asyncio.wait(
        tasks, return_when=asyncio.FIRST_COMPLETED)

    for server in servers:
        server.should_exit = True

    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    for task in done:
        task.result()


async def serve(
    config: ServerConfig,
    statistics: Optional[RequestStatistics] = None
) -> None:
    """
    Start the site and keep serving until shutdown.

    Raises:
        StartupError: If the manifest or TLS files cannot be read
    """
    package_info = await get_package_info(config.manifest_path)
    servers = build_servers(config, statistics=statistics)

    log_startup(config, package_info.version)

    await run_servers(servers)

    logger.info("Server stopped")
