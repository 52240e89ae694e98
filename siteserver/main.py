"""
Main Application Module

This module defines the FastAPI application factories: the site itself and
the plaintext application that only redirects to HTTPS.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware

from .core.config import ServerConfig
from .middlewares.auth import BasicAuthMiddleware
from .middlewares.host_redirect import HostRedirectMiddleware
from .middlewares.https_redirect import HttpsRedirectMiddleware
from .middlewares.statistics import StatisticsMiddleware
from .services.static_service import CachedStaticFiles
from .services.statistics_service import RequestStatistics


logger = logging.getLogger(__name__)


def create_app(
    config: ServerConfig,
    statistics: Optional[RequestStatistics] = None
) -> FastAPI:
    """
    Create and configure the site application.

    Args:
        config: Server configuration
        statistics: Counters for the statistics middleware. When given, the
            middleware is mounted even if config.statistics_enabled is False.

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="siteserver",
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )

    if statistics is None and config.statistics_enabled:
        statistics = RequestStatistics()

    # Add Middlewares (Order matters!)
    # Execution order: last added -> first executed

    # 4. Gzip (innermost, wraps the file responses)
    app.add_middleware(GZipMiddleware)

    # 3. Statistics (only if configured, behind auth)
    if statistics is not None:
        app.add_middleware(StatisticsMiddleware, statistics=statistics)
        app.state.statistics = statistics

    # 2. Basic auth
    if config.auth.enabled:
        app.add_middleware(
            BasicAuthMiddleware,
            users={config.auth.username: config.auth.password}
        )

    # 1. Canonical hostname (first to run)
    app.add_middleware(HostRedirectMiddleware, hostname=config.hostname)

    app.mount(
        "/",
        CachedStaticFiles(
            directory=config.public_path,
            cache_duration_ms=config.cache_duration_ms
        ),
        name="public"
    )

    logger.info("Site application created")
    return app


def create_redirect_app(hostname: str) -> FastAPI:
    """
    Create the plaintext application that redirects everything to HTTPS.

    Args:
        hostname: Hostname to redirect to

    Returns:
        FastAPI app whose only handler is the HTTPS redirect
    """
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.add_middleware(HttpsRedirectMiddleware, hostname=hostname)
    return app
